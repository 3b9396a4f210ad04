from typing import Tuple


def split_pair(text: str) -> Tuple[str, str]:
    """
    Splits `KEY=VALUE` on the first `=`, value may contain further `=`.
    """
    if '=' not in text:
        raise ValueError(f"'{text}' is not in KEY=VALUE format")
    key, value = text.split('=', 1)
    return key, value


class NamespaceWithDefaultValue:
    """
    Argparse namespace class returning `default_value` if attribute is not defined

    Wrapped namespace is kept under underscored names, so options like `--namespace` do not clash.
    """
    def __init__(self, namespace, default_value=None):
        self._namespace = namespace
        self._default_value = default_value

    def __getattr__(self, name):
        if hasattr(self._namespace, name):
            return getattr(self._namespace, name)
        return self._default_value
