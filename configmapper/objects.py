import base64
import re
from typing import Any, Mapping, Optional, Dict as DictType

import yaml

from .exceptions import InvalidInput, SchemaError

__all__ = (
    'ConfigMap',
    'build',
    'serialize',
    'parse',
    'is_label',
)

API_VERSION = 'v1'
KIND = 'ConfigMap'
DEFAULT_NAMESPACE = 'default'
LABEL_MAX_LENGTH = 63
LABEL_PATTERN = re.compile(r'[a-z0-9]([-a-z0-9]*[a-z0-9])?')


def is_label(value: Any) -> bool:
    """
    Checks DNS label: lowercase alphanumerics and `-`, not starting or ending with `-`.
    """
    return (
        isinstance(value, str)
        and len(value) <= LABEL_MAX_LENGTH
        and LABEL_PATTERN.fullmatch(value) is not None
    )


class QuotedStr(str):
    pass


class ManifestDumper(yaml.SafeDumper):
    """
    Dumper keeping insertion order and emitting `QuotedStr` as double-quoted scalars.
    """


def _represent_quoted(dumper, value):
    return dumper.represent_scalar('tag:yaml.org,2002:str', str(value), style='"')


ManifestDumper.add_representer(QuotedStr, _represent_quoted)


class ConfigMap:
    """
    Kubernetes ConfigMap manifest.

    Instances are not meant to be changed once created, use `replace` to get a modified copy.
    """
    __slots__ = (
        'api_version', 'kind', 'name', 'namespace', 'entries', 'binary_data',
        'labels', 'annotations', 'immutable',
    )

    NAME = 'ConfigMap'

    def __init__(
        self,
        name: str,
        namespace: Optional[str] = None,
        entries: Mapping[str, Any] = None,
        binary_data: Mapping[str, str] = None,
        labels: Mapping[str, str] = None,
        annotations: Mapping[str, str] = None,
        immutable: bool = False,
        api_version: str = API_VERSION,
        kind: str = KIND,
    ):
        init = super().__setattr__
        init('api_version', api_version)
        init('kind', kind)
        init('name', name)
        init('namespace', DEFAULT_NAMESPACE if namespace is None else namespace)
        init('entries', self._copy(entries))
        init('binary_data', self._copy(binary_data))
        init('labels', self._copy(labels))
        init('annotations', self._copy(annotations))
        init('immutable', immutable)

    @staticmethod
    def _copy(value):
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return dict(value)
        # parsed documents may carry anything here, the validator reports it
        return value

    def __setattr__(self, key, value):
        raise AttributeError(f"{self.NAME} is read-only, use replace() to change {key}")

    def _fields(self) -> tuple:
        return tuple(
            tuple(val.items()) if isinstance(val, dict) else val
            for val in (getattr(self, key) for key in self.__slots__)
        )

    def __eq__(self, other):
        if not isinstance(other, ConfigMap):
            return NotImplemented
        return self._fields() == other._fields()

    __hash__ = None

    def __repr__(self):
        return f'configmapper.objects.ConfigMap(name={self.name!r}, namespace={self.namespace!r}, entries={self.entries!r})'

    def replace(self, **changes) -> 'ConfigMap':
        fields = {key: getattr(self, key) for key in self.__slots__}
        fields.update(changes)
        return self.__class__(**fields)

    def serialize(self) -> DictType[str, Any]:
        """
        Returns manifest as dict, keys in the order they are written out.
        """
        metadata = {
            'name': self.name,
            'namespace': self.namespace,
        }
        if self.labels:
            metadata['labels'] = self._copy(self.labels)
        if self.annotations:
            metadata['annotations'] = self._copy(self.annotations)

        res = {
            'apiVersion': self.api_version,
            'kind': self.kind,
            'metadata': metadata,
            'data': self._copy(self.entries),
        }
        if self.binary_data:
            res['binaryData'] = self._copy(self.binary_data)
        if self.immutable is not False and self.immutable is not None:
            res['immutable'] = self.immutable

        return res

    def to_yaml(self) -> str:
        res = self.serialize()
        if isinstance(res['data'], dict):
            res['data'] = {
                key: QuotedStr(val) if isinstance(val, str) else val
                for key, val in res['data'].items()
            }
        return yaml.dump(
            res,
            Dumper=ManifestDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=float('inf'),
        )

    @classmethod
    def from_manifest(cls, manifest: Any) -> 'ConfigMap':
        """
        Creates ConfigMap from loaded manifest, values are kept as they are.
        """
        if not isinstance(manifest, Mapping):
            raise SchemaError(0, f'document must be a mapping, got {type(manifest).__name__}')

        metadata = manifest.get('metadata')
        if not isinstance(metadata, Mapping):
            metadata = {}

        return cls(
            name=metadata.get('name'),
            namespace=metadata.get('namespace'),
            entries=manifest.get('data'),
            binary_data=manifest.get('binaryData'),
            labels=metadata.get('labels'),
            annotations=metadata.get('annotations'),
            immutable=manifest.get('immutable', False),
            api_version=manifest.get('apiVersion'),
            kind=manifest.get('kind'),
        )


def _string_value(key: str, value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise InvalidInput(f'value of `{key}` must be a string, got {type(value).__name__}')


def _string_mapping(what: str, data: Optional[Mapping[str, str]]) -> DictType[str, str]:
    res = {}
    for key, value in (data or {}).items():
        if not isinstance(key, str) or not key:
            raise InvalidInput(f'{what} keys must be non-empty strings, got {key!r}')
        if not isinstance(value, str):
            raise InvalidInput(f'{what} `{key}` must be a string, got {type(value).__name__}')
        res[key] = value
    return res


def _binary_mapping(data: Optional[Mapping[str, bytes]], entries: Mapping[str, str]) -> DictType[str, str]:
    res = {}
    for key, value in (data or {}).items():
        if not isinstance(key, str) or not key:
            raise InvalidInput(f'binary data keys must be non-empty strings, got {key!r}')
        if key in entries:
            raise InvalidInput(f'`{key}` cannot be in both data and binary data')
        if not isinstance(value, (bytes, bytearray)):
            raise InvalidInput(f'binary data `{key}` must be bytes, got {type(value).__name__}')
        res[key] = base64.b64encode(value).decode('ascii')
    return res


def build(
    name: str,
    namespace: Optional[str] = None,
    entries: Mapping[str, Any] = None,
    binary_data: Mapping[str, bytes] = None,
    labels: Mapping[str, str] = None,
    annotations: Mapping[str, str] = None,
    immutable: bool = False,
) -> ConfigMap:
    """
    Builds ConfigMap from given parameters.

    :param namespace: `default` when not given
    :param entries: {'DB_HOST': 'mysql.example.com', 'DB_PORT': 3306}, numbers and booleans
        are converted to strings
    :param binary_data: {'ca.der': b'...'}, stored base64 encoded under `binaryData`
    :raises InvalidInput: on empty or malformed name, namespace or keys
    """
    if not isinstance(name, str) or not name:
        raise InvalidInput('name must not be empty')
    if not is_label(name):
        raise InvalidInput(
            f"name '{name}' must consist of lowercase alphanumerics and '-', "
            f"start and end with an alphanumeric and be at most {LABEL_MAX_LENGTH} characters"
        )

    if namespace is None:
        namespace = DEFAULT_NAMESPACE
    elif not is_label(namespace):
        raise InvalidInput(f"namespace '{namespace}' is not a valid namespace name")

    data = {}
    for key, value in (entries or {}).items():
        if not isinstance(key, str):
            raise InvalidInput(f'keys must be strings, got {key!r}')
        if not key:
            raise InvalidInput('keys must not be empty')
        data[key] = _string_value(key, value)

    return ConfigMap(
        name=name,
        namespace=namespace,
        entries=data,
        binary_data=_binary_mapping(binary_data, data),
        labels=_string_mapping('label', labels),
        annotations=_string_mapping('annotation', annotations),
        immutable=bool(immutable),
    )


def serialize(doc: ConfigMap) -> str:
    return doc.to_yaml()


def parse(text: str) -> ConfigMap:
    """
    Loads ConfigMap from YAML text. Values are not converted, use `validate` to check them.

    :raises SchemaError: rule 0, when the text is not a YAML mapping
    """
    try:
        manifest = yaml.safe_load(text)
    except yaml.YAMLError as ex:
        raise SchemaError(0, f'document is not valid YAML: {ex}')

    return ConfigMap.from_manifest(manifest)
