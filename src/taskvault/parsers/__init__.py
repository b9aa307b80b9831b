from .line_grammar import (
    AttributeParts,
    LineParts,
    check_attribute,
    check_tag,
    parse_attributes,
    parse_line,
    serialize_attributes,
    serialize_line,
)
from .status_codec import convert_attributes, expand_shorthand, mark_to_status, status_to_mark
from .document_parser import parse_content, parse_document, parse_documents

__all__ = [
    "AttributeParts",
    "LineParts",
    "check_attribute",
    "check_tag",
    "parse_attributes",
    "parse_line",
    "serialize_attributes",
    "serialize_line",
    "convert_attributes",
    "expand_shorthand",
    "mark_to_status",
    "status_to_mark",
    "parse_content",
    "parse_document",
    "parse_documents",
]
