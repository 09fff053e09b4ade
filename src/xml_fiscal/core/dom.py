"""
Namespace-insensitive lookups over a parsed lxml tree.

Issuer software is inconsistent about prefixes, namespace declarations and
even tag casing, so every lookup first tries the exact tag and then falls
back to a case-insensitive scan by local name. The rest of the package reads
the tree only through these helpers.
"""
from typing import List, Optional, Union
from lxml import etree

from xml_fiscal.core.numeric import to_float

Node = Union[etree._Element, etree._ElementTree]


def _local_name(element: etree._Element) -> str:
    # Comments and processing instructions have a non-string tag
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def _candidates(root: Node, tag: Optional[str] = None):
    if isinstance(root, etree._ElementTree):
        return root.iter(tag) if tag else root.iter()
    return root.iterdescendants(tag) if tag else root.iterdescendants()


def find_all(root: Optional[Node], tag_name: str) -> List[etree._Element]:
    """
    Find every descendant element named ``tag_name``.

    Args:
        root: Element (descendants only) or ElementTree (root included)
        tag_name: Tag to look for, without prefix

    Returns:
        Matching elements in document order
    """
    if root is None or not tag_name:
        return []

    direct = list(_candidates(root, tag_name))
    if direct:
        return direct

    tag_lower = tag_name.lower()
    return [
        el for el in _candidates(root)
        if _local_name(el).lower() == tag_lower
    ]


def find_first(root: Optional[Node], tag_name: str) -> Optional[etree._Element]:
    """Return the first element named ``tag_name`` or None"""
    found = find_all(root, tag_name)
    return found[0] if found else None


def find_self_or_first(root: Optional[etree._Element], tag_name: str) -> Optional[etree._Element]:
    """``root`` itself when it is a ``tag_name`` element, else its first match"""
    if root is not None and _local_name(root).lower() == tag_name.lower():
        return root
    return find_first(root, tag_name)


def text_of(parent: Optional[Node], tag_name: str) -> str:
    """Trimmed text of the first matching child, empty string if absent"""
    if parent is None:
        return ""
    node = find_first(parent, tag_name)
    if node is None:
        return ""
    return "".join(node.itertext()).strip()


def number_of(parent: Optional[Node], tag_name: str) -> float:
    """Numeric content of the first matching child, 0.0 if missing or invalid"""
    return to_float(text_of(parent, tag_name))


def attribute_of(element: Optional[etree._Element], name: str) -> str:
    """Attribute value or empty string"""
    if element is None:
        return ""
    return (element.get(name) or "").strip()


def first_child(element: Optional[etree._Element]) -> Optional[etree._Element]:
    """First child that is an element (skips comments)"""
    if element is None:
        return None
    for child in element:
        if isinstance(child.tag, str):
            return child
    return None


def parent_of(element: Optional[etree._Element]) -> Optional[etree._Element]:
    """Parent element or None for the root"""
    if element is None:
        return None
    return element.getparent()
