"""
Parsing, serialization and typed access for untyped Composer JSON documents.

Documents are plain ``dict`` trees. Python dicts keep insertion order, which is
the order used when a document is written back out.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from composer_repo.domain.exceptions import ParseError, TypeMismatch

JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]
JsonDocument = Dict[str, JsonValue]

APPLICATION_JSON = "application/json"


def parse(payload: Union[bytes, str]) -> JsonDocument:
    """
    Parse a payload into a document.

    Raises ParseError if the payload is not JSON or its root is not an object.
    """
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        document = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise ParseError(f"Payload is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ParseError(f"Expected a JSON object at the root, got {_shape(document)}")
    return document


def serialize(document: JsonDocument) -> bytes:
    """
    Serialize a document to compact UTF-8 JSON, keeping key insertion order.
    """
    return json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def expect_mapping(value: Any, path: str) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    # PHP's json_encode writes an empty associative array as []
    if isinstance(value, list) and not value:
        return {}
    raise TypeMismatch(f"Expected an object at '{path}', got {_shape(value)}")


def expect_sequence(value: Any, path: str) -> List[Any]:
    if isinstance(value, list):
        return value
    raise TypeMismatch(f"Expected an array at '{path}', got {_shape(value)}")


def expect_string(value: Any, path: str) -> str:
    if isinstance(value, str):
        return value
    raise TypeMismatch(f"Expected a string at '{path}', got {_shape(value)}")


def get_mapping(parent: Dict[str, Any], key: str, path: str) -> Optional[Dict[str, Any]]:
    """
    Return ``parent[key]`` as a mapping, or None if the key is absent or null.
    """
    value = parent.get(key)
    if value is None:
        return None
    return expect_mapping(value, f"{path}.{key}" if path else key)


def get_optional_string(parent: Dict[str, Any], key: str, path: str) -> Optional[str]:
    value = parent.get(key)
    if value is None:
        return None
    return expect_string(value, f"{path}.{key}" if path else key)


def _shape(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__
