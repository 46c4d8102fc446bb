"""
Property encodings: conversion between canonical jf2 documents and the
encoding a property bag uses natively.

Resolved documents are produced in jf2 (flat `type`, single values as
scalars). A bag decoded from a Micropub JSON request is microformats2 JSON
(`type` as a list of `h-*` names, every property a list). The orchestrator
only talks to the PropertyEncoding interface, so either shape works.
"""

import copy
import logging
from typing import Any, Dict

from post_kind_engine.core.reference_resolver.models import PropertyBag

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))


class EncodingError(Exception):
    """A document cannot be represented in the bag's native encoding."""


def _check_json_value(value: Any, path: str = "$") -> None:
    if isinstance(value, _SCALARS):
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            _check_json_value(item, f"{path}[{i}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise EncodingError(f"Non-string key {key!r} at {path}")
            _check_json_value(item, f"{path}.{key}")
        return
    raise EncodingError(f"Unsupported value of type {type(value).__name__} at {path}")


def normalize_jf2(value: Any) -> Any:
    """
    Normalize a jf2 value: single-element lists collapse to their element.

    Documents in this form survive a jf2 -> mf2 -> jf2 round trip unchanged.
    """
    if isinstance(value, list):
        items = [normalize_jf2(v) for v in value]
        return items[0] if len(items) == 1 else items
    if isinstance(value, dict):
        return {k: normalize_jf2(v) for k, v in value.items()}
    return value


class PropertyEncoding:
    """Base interface for a property bag encoding."""

    name = "base"

    def encode(self, document: Dict[str, Any]) -> Any:
        """Convert a jf2 document into the native encoding."""
        raise NotImplementedError

    def decode(self, value: Any) -> Any:
        """Convert a native value back into jf2."""
        raise NotImplementedError

    def decode_properties(self, bag: PropertyBag) -> Dict[str, Any]:
        """Decode a whole property bag into a flat jf2 property mapping."""
        raise NotImplementedError

    def merge(self, original: Dict[str, Any], encoded: Any) -> Any:
        """
        Shallow-merge an encoded document over an original structured value.

        Keys present in both take the resolved value; keys only present in the
        original are kept.
        """
        if not isinstance(encoded, dict):
            return encoded
        merged = dict(original)
        merged.update(encoded)
        return merged

    def encode_checked(self, document: Dict[str, Any]) -> Any:
        """
        Encode a document and verify that it decodes back to the same value.

        Raises:
            EncodingError: If the document cannot be encoded losslessly
        """
        encoded = self.encode(document)
        decoded = self.decode(encoded)
        if decoded != document:
            raise EncodingError(
                f"{self.name} encoding is not lossless for document of type {document.get('type')!r}"
            )
        return encoded


class Jf2Encoding(PropertyEncoding):
    """The bag already holds jf2 values; encoding is a validated deep copy."""

    name = "jf2"

    def encode(self, document: Dict[str, Any]) -> Any:
        _check_json_value(document)
        return copy.deepcopy(document)

    def decode(self, value: Any) -> Any:
        return copy.deepcopy(value)

    def decode_properties(self, bag: PropertyBag) -> Dict[str, Any]:
        return copy.deepcopy(bag)


class Mf2Encoding(PropertyEncoding):
    """
    Microformats2 JSON encoding.

    `{"type": "cite", "name": "Example"}` encodes to
    `{"type": ["h-cite"], "properties": {"name": ["Example"]}}`.
    jf2 `content` objects use `text` where mf2 uses `value`.
    """

    name = "mf2"

    def encode(self, document: Dict[str, Any]) -> Any:
        _check_json_value(document)
        return self._item_to_mf2(document)

    def decode(self, value: Any) -> Any:
        if self._is_item(value):
            return self._item_to_jf2(value)
        if isinstance(value, list):
            return normalize_jf2([self.decode(v) for v in value])
        return copy.deepcopy(value)

    def decode_properties(self, bag: PropertyBag) -> Dict[str, Any]:
        return {key: self.decode(value) for key, value in bag.items()}

    def merge(self, original: Dict[str, Any], encoded: Any) -> Any:
        if self._is_item(original) and self._is_item(encoded):
            merged = dict(original)
            merged.update({k: v for k, v in encoded.items() if k != "properties"})
            properties = dict(original.get("properties") or {})
            properties.update(encoded["properties"])
            merged["properties"] = properties
            return merged
        return super().merge(original, encoded)

    @staticmethod
    def _is_item(value: Any) -> bool:
        return isinstance(value, dict) and isinstance(value.get("type"), list) and "properties" in value

    def _item_to_mf2(self, document: Dict[str, Any]) -> Dict[str, Any]:
        doc_type = document.get("type")
        if not isinstance(doc_type, str) or not doc_type:
            raise EncodingError(f"Document has no usable type: {doc_type!r}")

        properties: Dict[str, Any] = {}
        for key, value in document.items():
            if key == "type":
                continue
            values = value if isinstance(value, list) else [value]
            properties[key] = [self._value_to_mf2(key, v) for v in values]
        return {"type": [f"h-{doc_type}"], "properties": properties}

    def _value_to_mf2(self, key: str, value: Any) -> Any:
        if isinstance(value, dict):
            if isinstance(value.get("type"), str):
                return self._item_to_mf2(value)
            if key == "content" and "text" in value:
                converted = {k: copy.deepcopy(v) for k, v in value.items() if k != "text"}
                converted["value"] = value["text"]
                return converted
            return copy.deepcopy(value)
        return value

    def _item_to_jf2(self, item: Dict[str, Any]) -> Dict[str, Any]:
        types = item.get("type") or []
        first = types[0] if types else ""
        document: Dict[str, Any] = {"type": first[2:] if first.startswith("h-") else first}
        for key, values in (item.get("properties") or {}).items():
            values = values if isinstance(values, list) else [values]
            document[key] = normalize_jf2([self._value_to_jf2(key, v) for v in values])
        return document

    def _value_to_jf2(self, key: str, value: Any) -> Any:
        if self._is_item(value):
            return self._item_to_jf2(value)
        if isinstance(value, dict):
            if key == "content" and "value" in value:
                converted = {k: copy.deepcopy(v) for k, v in value.items() if k != "value"}
                converted["text"] = value["value"]
                return converted
            return copy.deepcopy(value)
        return value


def get_encoding(name: str) -> PropertyEncoding:
    """Look up an encoding by name ("jf2" or "mf2")."""
    encodings = {"jf2": Jf2Encoding, "mf2": Mf2Encoding}
    try:
        return encodings[name]()
    except KeyError:
        raise ValueError(f"Unknown encoding: {name}")
