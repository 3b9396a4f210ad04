import re

from setuptools import setup


with open("configmapper/configmapper.py", "rt", encoding="utf8") as f:
    version = re.search(r'VERSION = \'(.*?)\'', f.read()).group(1)

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name='configmapper',
    version=version,
    description='Kubernetes ConfigMap generator and validator',
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=[
        'argcomplete>=1.9.5',
        'pystache',
        'PyYAML>=5.1',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'configmapper = configmapper.configmapper:run'
        ]
    },
    packages=['configmapper'],
    classifiers=[
        'Programming Language :: Python :: 3',
    ],
    python_requires='>=3.6',
)
