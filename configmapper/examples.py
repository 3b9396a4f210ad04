EXAMPLE_CONFIGMAPPER_CONF = """
# Namespace used by `generate` when neither --namespace nor --env is given.
DEFAULT_NAMESPACE = '{k8s_prefix}-dev'

ENVS = {{
    'dev': {{
        'k8s_namespace': '{k8s_prefix}-dev',
    }},
    'test': {{
        'k8s_namespace': '{k8s_prefix}-test',
    }},
    'stable': {{
        'k8s_namespace': '{k8s_prefix}-stable',
        'k8s_context': '{k8s_context}',
    }},
}}
"""
