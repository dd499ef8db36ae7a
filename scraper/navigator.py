"""Structural navigation over parsed calendar markup.

The calendar pages are read by position (first child, next sibling, previous
sibling) rather than by class alone. All of those steps go through
``StructuralNavigator`` so the traversal rules live in one place.

Whitespace-only text nodes and comments are not structural: pretty-printed
markup and minified markup navigate the same way.
"""
from typing import Optional, Union

from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.element import Comment, NavigableString, PageElement, Tag

from scraper.errors import StructureMismatch

Node = Union[Tag, NavigableString]


def make_soup(html: str) -> BeautifulSoup:
    """
    Parse a document or fragment.

    Raises:
        StructureMismatch: If the parser rejects the markup outright
    """
    try:
        return BeautifulSoup(html, 'html.parser')
    except ParserRejectedMarkup as e:
        raise StructureMismatch(f"Markup rejected by parser: {e}") from e


class StructuralNavigator:
    """Positional traversal helpers that raise ``StructureMismatch``."""

    @staticmethod
    def is_structural(node: Optional[PageElement]) -> bool:
        if node is None:
            return False
        if isinstance(node, Comment):
            return False
        if isinstance(node, NavigableString):
            return bool(node.strip())
        return isinstance(node, Tag)

    def first_child(self, node: Node) -> Node:
        """Return the first structural child of ``node``."""
        if isinstance(node, Tag):
            for child in node.children:
                if self.is_structural(child):
                    return child
        raise StructureMismatch(f"{self.describe(node)} has no first child")

    def next_sibling(self, node: Node) -> Node:
        """Return the next structural sibling of ``node``."""
        sibling = node.next_sibling
        while sibling is not None and not self.is_structural(sibling):
            sibling = sibling.next_sibling
        if sibling is None:
            raise StructureMismatch(f"{self.describe(node)} has no next sibling")
        return sibling

    def previous_sibling(self, node: Node) -> Node:
        """Return the previous structural sibling of ``node``."""
        sibling = node.previous_sibling
        while sibling is not None and not self.is_structural(sibling):
            sibling = sibling.previous_sibling
        if sibling is None:
            raise StructureMismatch(
                f"{self.describe(node)} has no previous sibling"
            )
        return sibling

    def text(self, node: Node) -> str:
        """Return the string content of a text node, stripped."""
        if not isinstance(node, NavigableString) or isinstance(node, Comment):
            raise StructureMismatch(f"{self.describe(node)} is not a text node")
        return str(node).strip()

    def attribute(self, node: Node, name: str) -> str:
        """Return attribute ``name`` of an element node."""
        if not isinstance(node, Tag):
            raise StructureMismatch(
                f"{self.describe(node)} is not an element, no '{name}' attribute"
            )
        value = node.get(name)
        if value is None:
            raise StructureMismatch(f"{self.describe(node)} has no '{name}' attribute")
        if isinstance(value, list):
            value = ' '.join(value)
        return value

    @staticmethod
    def describe(node: Optional[PageElement]) -> str:
        """Short human readable label for log and error messages."""
        if node is None:
            return '<none>'
        if isinstance(node, Tag):
            classes = node.get('class') or []
            suffix = ''.join(f'.{name}' for name in classes)
            return f'<{node.name}{suffix}>'
        return f'text {str(node).strip()[:30]!r}'
