"""HTML parsing and XPath helpers."""

from __future__ import annotations

from typing import Any

from lxml import etree, html

DocumentNode = html.HtmlElement

_EMPTY_DOCUMENT = "<html><body></body></html>"


class InvalidSelectorError(ValueError):
    """Raised when a stored selector is not a valid XPath expression."""


def parse_html(markup: str | bytes) -> DocumentNode:
    """Parse markup into a document root. Empty markup yields an empty document."""
    if not markup or not markup.strip():
        return html.document_fromstring(_EMPTY_DOCUMENT)
    try:
        return html.document_fromstring(markup)
    except etree.ParserError:
        # Markup with no elements at all (only comments or processing instructions)
        return html.document_fromstring(_EMPTY_DOCUMENT)


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to a single space and strip the ends."""
    return " ".join(text.split())


def node_text(node: Any) -> str:
    """Normalized text of an XPath result item (element or string result)."""
    if isinstance(node, str):
        return normalize_text(node)
    if hasattr(node, "text_content"):
        return normalize_text(node.text_content())
    return normalize_text(str(node))


def select(root: DocumentNode, expression: str) -> list[Any]:
    """Evaluate an XPath expression and always return a list of results."""
    try:
        result = root.xpath(expression)
    except etree.XPathError as e:
        raise InvalidSelectorError(f"Invalid selector '{expression}': {e}") from e
    if isinstance(result, list):
        return result
    # Numbers from count() or sum() never locate a value
    if isinstance(result, float) or result is False or result == "":
        return []
    return [str(result)]


def xpath_literal(value: str) -> str:
    """Quote a string for use inside an XPath predicate."""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


def absolute_path(node: DocumentNode) -> str:
    """Fully positional path of an element from the document root."""
    return node.getroottree().getpath(node)
