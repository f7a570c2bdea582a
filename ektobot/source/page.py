"""
Minimal HTML document tree for scraping album pages.

Builds a tree with the standard library's HTMLParser and answers the
few structural questions the scrapers ask: "which <a> elements sit
inside an element with class X", "whose parent is <strong> inside <h3>".

Matching works right to left: a candidate element is tested first, then
its ancestors are walked to satisfy the rest of the chain. Results come
back in document order without duplicates.
"""

from html.parser import HTMLParser
from typing import Callable, Iterator


# Elements that never have content or an end tag
VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


class Element:
    """
    One element of the parsed document.

    Attributes:
        tag: Lowercase tag name ("#root" for the document node).
        attrs: Attribute mapping. Valueless attributes map to "".
        parent: Enclosing element, None for the document node.
        children: Child elements and text strings in document order.
    """

    def __init__(self, tag: str, attrs: dict[str, str], parent: "Element | None" = None) -> None:
        self.tag = tag
        self.attrs = attrs
        self.parent = parent
        self.children: list["Element | str"] = []

    @property
    def classes(self) -> set[str]:
        return set(self.attrs.get("class", "").split())

    def get(self, name: str) -> str | None:
        return self.attrs.get(name)

    def text(self) -> str:
        """Concatenated text of this element and all its descendants."""
        parts = []
        for child in self.children:
            parts.append(child if isinstance(child, str) else child.text())
        return "".join(parts)

    def iter(self) -> Iterator["Element"]:
        """All descendant elements in document order."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
                yield from child.iter()

    def __repr__(self) -> str:
        return f"<{self.tag} {self.attrs}>"


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Element("#root", {})
        self._stack = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        element = Element(tag, {k: v or "" for k, v in attrs}, self._stack[-1])
        self._stack[-1].children.append(element)
        if tag not in VOID_ELEMENTS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        element = Element(tag, {k: v or "" for k, v in attrs}, self._stack[-1])
        self._stack[-1].children.append(element)

    def handle_endtag(self, tag: str) -> None:
        # Close the nearest open element with this tag, implicitly closing
        # anything opened after it. Stray end tags are ignored.
        for i in range(len(self._stack) - 1, 0, -1):
            if self._stack[i].tag == tag:
                del self._stack[i:]
                return

    def handle_data(self, data: str) -> None:
        self._stack[-1].children.append(data)


def parse_html(markup: str) -> Element:
    """Parse an HTML document and return its root node."""
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


# =============================================================================
# Selectors
# =============================================================================

Predicate = Callable[[Element], bool]


def tag(name: str) -> Predicate:
    return lambda e: e.tag == name


def css_class(name: str) -> Predicate:
    return lambda e: name in e.classes


def descendants(root: Element, *chain: Predicate) -> list[Element]:
    """
    Elements matching a descendant chain, like the CSS selector "A B C".

    Example:
        descendants(root, tag("h3"), css_class("style"), tag("a"))  # h3 .style a
    """
    *ancestors, last = chain
    return [e for e in root.iter() if last(e) and _ancestors_match(e, ancestors)]


def children(root: Element, *chain: Predicate) -> list[Element]:
    """
    Elements matching a child chain, like the CSS selector "A > B > C".

    The first predicate may match any element in the document.
    """
    *ancestors, last = chain
    matched = []
    for e in root.iter():
        if not last(e):
            continue
        node = e
        for predicate in reversed(ancestors):
            node = node.parent
            if node is None or not predicate(node):
                break
        else:
            matched.append(e)
    return matched


def _ancestors_match(element: Element, chain: list[Predicate]) -> bool:
    pending = list(chain)
    node = element.parent
    while pending and node is not None:
        if pending[-1](node):
            pending.pop()
        node = node.parent
    return not pending
