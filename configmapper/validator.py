"""ConfigMap structural checks, numbered so failures point at the broken rule."""
import base64
from typing import Any, Mapping, Union

from .exceptions import SchemaError
from .objects import API_VERSION, KIND, ConfigMap, is_label

__all__ = (
    'RULES',
    'validate',
    'is_valid',
)

RULES = {
    0: 'document is a mapping',
    1: f'apiVersion is {API_VERSION}',
    2: f'kind is {KIND}',
    3: 'metadata.name is a valid name',
    4: 'metadata.namespace is a valid namespace',
    5: 'data maps non-empty keys to string values',
    6: 'labels and annotations map non-empty keys to string values',
    7: 'immutable is a boolean',
    8: 'binaryData maps non-empty keys to base64 strings, keys not repeated in data',
}


def _ensure(condition: bool, rule: int, message: str) -> None:
    if not condition:
        raise SchemaError(rule, message)


def _check_string_mapping(data: Any, rule: int, what: str) -> None:
    _ensure(isinstance(data, Mapping), rule, f'{what} must be a mapping, got {type(data).__name__}')
    for key, value in data.items():
        _ensure(isinstance(key, str) and key != '', rule, f'{what} keys must be non-empty strings, got {key!r}')
        _ensure(
            isinstance(value, str), rule,
            f'{what} `{key}` must be a string, got {type(value).__name__} {value!r}',
        )


def validate(doc: Union[ConfigMap, Mapping[str, Any]]) -> None:
    """
    Checks document against RULES, stops at the first violated one.

    :param doc: ConfigMap or manifest loaded from YAML
    :raises SchemaError: carrying the number of violated rule
    """
    if not isinstance(doc, ConfigMap):
        doc = ConfigMap.from_manifest(doc)

    _ensure(doc.api_version == API_VERSION, 1, f"apiVersion must be '{API_VERSION}', got {doc.api_version!r}")
    _ensure(doc.kind == KIND, 2, f"kind must be '{KIND}', got {doc.kind!r}")

    _ensure(doc.name is not None and doc.name != '', 3, 'metadata.name is missing')
    _ensure(is_label(doc.name), 3, f'metadata.name {doc.name!r} must be a lowercase DNS label')

    _ensure(doc.namespace != '', 4, 'metadata.namespace must not be empty')
    _ensure(is_label(doc.namespace), 4, f'metadata.namespace {doc.namespace!r} must be a lowercase DNS label')

    _check_string_mapping(doc.entries, 5, 'data')

    _check_string_mapping(doc.labels, 6, 'metadata.labels')
    _check_string_mapping(doc.annotations, 6, 'metadata.annotations')

    _ensure(isinstance(doc.immutable, bool), 7, f'immutable must be a boolean, got {doc.immutable!r}')

    _check_string_mapping(doc.binary_data, 8, 'binaryData')
    for key, value in doc.binary_data.items():
        _ensure(key not in doc.entries, 8, f'`{key}` cannot be in both data and binaryData')
        try:
            base64.b64decode(value, validate=True)
        except ValueError:
            raise SchemaError(8, f'binaryData `{key}` is not valid base64')


def is_valid(doc: Union[ConfigMap, Mapping[str, Any]]) -> bool:
    try:
        validate(doc)
    except SchemaError:
        return False
    return True
