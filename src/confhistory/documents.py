"""YAML helpers for live configuration documents.

Live documents may carry application tags such as ``!include`` or ``!secret``.
They are loaded as :class:`TaggedValue` and written back with the same tag, so
a parse/render round trip keeps them intact even though formatting and
comments are not preserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import yaml

from confhistory.errors import ParseError


@dataclass(frozen=True)
class TaggedValue:
    """A node carrying an application-specific YAML tag."""

    tag: str
    value: Any


class _DocumentLoader(yaml.SafeLoader):
    pass


class _DocumentDumper(yaml.SafeDumper):
    pass


def _construct_tagged(loader: yaml.SafeLoader, suffix: str, node: yaml.Node) -> TaggedValue:
    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)
    return TaggedValue(tag="!" + suffix, value=value)


def _represent_tagged(dumper: yaml.SafeDumper, data: TaggedValue) -> yaml.Node:
    if isinstance(data.value, list):
        return dumper.represent_sequence(data.tag, data.value)
    if isinstance(data.value, dict):
        return dumper.represent_mapping(data.tag, data.value)
    return dumper.represent_scalar(data.tag, str(data.value))


_DocumentLoader.add_multi_constructor("!", _construct_tagged)
_DocumentDumper.add_representer(TaggedValue, _represent_tagged)


def parse(data: bytes, source: str) -> Any:
    """Parse one YAML document.

    Args:
        data: Raw document bytes.
        source: Label used in error messages, such as the target group.

    Raises:
        ParseError: If the content is not valid YAML.
    """
    try:
        return yaml.load(data, Loader=_DocumentLoader)
    except yaml.YAMLError as exc:
        raise ParseError(f"Failed to parse YAML in {source}") from exc


def load_sequence(data: bytes, source: str) -> list[Any]:
    """Parse a document whose root must be a sequence; an empty document is an empty sequence."""
    document = parse(data, source)
    if document is None:
        return []
    if not isinstance(document, list):
        raise ParseError(f"Expected a YAML sequence at root of {source}")
    return document


def load_element(data: bytes, source: str) -> Any:
    """Parse a document whose root must be a single non-sequence node."""
    document = parse(data, source)
    if document is None:
        raise ParseError(f"Expected a YAML document in {source}")
    if isinstance(document, list):
        raise ParseError(f"Did not expect a YAML sequence at root of {source}")
    return document


def field_value(element: Any, field: str) -> Optional[str]:
    """Return the scalar value of ``field`` in a mapping element as a string."""
    if not isinstance(element, dict):
        return None
    value = element.get(field)
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, TaggedValue):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render(document: Any) -> bytes:
    """Serialize a document, keeping key order and non-ASCII text."""
    text = yaml.dump(
        document,
        Dumper=_DocumentDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return text.encode("utf-8")


__all__ = [
    "TaggedValue",
    "parse",
    "load_sequence",
    "load_element",
    "field_value",
    "render",
]
