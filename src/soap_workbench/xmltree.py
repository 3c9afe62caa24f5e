"""XML parsing helpers that keep track of in-scope namespace prefixes.

``xml.etree.ElementTree`` discards prefix declarations once a document is
parsed, but WSDL and XSD documents reference types and messages through
prefixed names (``tns:CountryCode``, ``xs:string``). This module parses text
with :class:`~xml.etree.ElementTree.XMLPullParser` and records, for every
element, the prefix map in scope at that element so that qualified names can
be resolved later against the declaring element.

Example::

    tree = parse_xml(text)
    part = tree.root.find(f"{WSDL_NS}message/{WSDL_NS}part")
    tree.scopes.resolve(part, part.get("element"))
    # -> ("http://example.com/countries", "GetCountry")
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

XS_URI = "http://www.w3.org/2001/XMLSchema"
WSDL_URI = "http://schemas.xmlsoap.org/wsdl/"
SOAP_BINDING_URI = "http://schemas.xmlsoap.org/wsdl/soap/"
SOAP12_BINDING_URI = "http://schemas.xmlsoap.org/wsdl/soap12/"

XS_NS = f"{{{XS_URI}}}"
WSDL_NS = f"{{{WSDL_URI}}}"
SOAP_NS = f"{{{SOAP_BINDING_URI}}}"
SOAP12_NS = f"{{{SOAP12_BINDING_URI}}}"

QName = Tuple[str, str]


class NamespaceScopes:
    """Element -> in-scope ``{prefix: uri}`` map registry.

    Elements are keyed by identity. Prefix maps are shared between elements
    of the same scope, so memory grows with the number of declarations rather
    than the number of elements. Registries from several documents can be
    combined with :meth:`update`.
    """

    def __init__(self) -> None:
        self._scopes: Dict[ET.Element, Dict[str, str]] = {}

    def __contains__(self, element: ET.Element) -> bool:
        return element in self._scopes

    def __len__(self) -> int:
        return len(self._scopes)

    def bind(self, element: ET.Element, prefixes: Dict[str, str]) -> None:
        self._scopes[element] = prefixes

    def update(self, other: "NamespaceScopes") -> None:
        self._scopes.update(other._scopes)

    def prefixes(self, element: ET.Element) -> Dict[str, str]:
        return self._scopes.get(element, {})

    def resolve(self, element: ET.Element, value: Optional[str]) -> Optional[QName]:
        """Resolve a ``prefix:local`` (or unprefixed) reference.

        Args:
            element: Element on which the reference appears.
            value: Attribute text such as ``tns:Foo`` or ``Foo``.

        Returns:
            ``(namespace, local_name)`` or ``None`` when the value is empty or
            uses an undeclared prefix. Unprefixed names use the default
            namespace in scope, or the empty namespace when none is declared.
        """
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        prefixes = self.prefixes(element)
        if ":" in value:
            prefix, local = value.split(":", 1)
            namespace = prefixes.get(prefix)
            if namespace is None:
                return None
            return namespace, local
        return prefixes.get("", ""), value


@dataclass
class XmlTree:
    """A parsed document root plus its namespace scope registry."""

    root: ET.Element
    scopes: NamespaceScopes = field(default_factory=NamespaceScopes)


def parse_xml(text: str) -> XmlTree:
    """Parse XML text, preserving whitespace and recording prefix scopes.

    Raises:
        xml.etree.ElementTree.ParseError: If the text is not well-formed.
    """
    parser = ET.XMLPullParser(events=("start-ns", "start", "end"))
    scopes = NamespaceScopes()
    stack: List[Dict[str, str]] = [{}]
    pending: Dict[str, str] = {}
    root: Optional[ET.Element] = None

    def drain() -> None:
        nonlocal pending, root
        for event, payload in parser.read_events():
            if event == "start-ns":
                prefix, uri = payload
                pending[prefix or ""] = uri
            elif event == "start":
                if pending:
                    current = dict(stack[-1])
                    current.update(pending)
                    pending = {}
                else:
                    current = stack[-1]
                stack.append(current)
                scopes.bind(payload, current)
                if root is None:
                    root = payload
            elif event == "end":
                stack.pop()

    parser.feed(text.lstrip("\ufeff"))
    drain()
    parser.close()
    drain()
    if root is None:
        raise ET.ParseError("no element found")
    return XmlTree(root=root, scopes=scopes)


def local_name(tag_or_ref: Optional[str]) -> str:
    """Strip a ``{namespace}`` or ``prefix:`` qualifier from a name."""
    if not tag_or_ref:
        return ""
    if tag_or_ref.startswith("{"):
        return tag_or_ref.split("}", 1)[1]
    if ":" in tag_or_ref:
        return tag_or_ref.split(":", 1)[1]
    return tag_or_ref


def text_content(element: Optional[ET.Element]) -> Optional[str]:
    """Concatenated descendant text of ``element`` (``None`` if absent)."""
    if element is None:
        return None
    return "".join(element.itertext())


def schema_documentation(element: ET.Element) -> Optional[str]:
    """Return trimmed ``xs:annotation/xs:documentation`` text, if any."""
    annotation = element.find(f"{XS_NS}annotation")
    if annotation is None:
        return None
    text = text_content(annotation.find(f"{XS_NS}documentation"))
    if text is None:
        return None
    return text.strip()


XML_URI = "http://www.w3.org/XML/1998/namespace"


def _escape_attribute(value: str) -> str:
    return escape(value, {'"': "&quot;", "\n": "&#10;", "\t": "&#9;"})


def _prefix_for(in_scope: Dict[str, str], uri: str, is_attribute: bool) -> Optional[str]:
    if uri == XML_URI:
        return "xml"
    if not is_attribute and in_scope.get("") == uri:
        return ""
    for prefix, bound in in_scope.items():
        if bound == uri and (prefix or not is_attribute):
            return prefix
    return None


def serialize_element(
    element: ET.Element,
    scopes: NamespaceScopes,
    outer: Optional[Dict[str, str]] = None,
    emitted: Optional[Dict[str, str]] = None,
) -> str:
    """Serialize ``element`` using the prefixes it was written with.

    ``ET.tostring`` invents ``ns0``-style prefixes; this writer looks names
    up in the element's recorded scope instead. Declarations made on the
    element itself are kept, and prefixes inherited from ancestors outside
    the serialized subtree are declared where they are first used, so the
    result is a standalone fragment.

    Args:
        element: Element to write.
        scopes: Registry the element was parsed into.
        outer: Prefix map in scope at the element's parent.
        emitted: Prefix map already declared in the output so far.
    """
    in_scope = scopes.prefixes(element)
    outer = {} if outer is None else outer
    emitted = {} if emitted is None else emitted
    declared = {prefix: uri for prefix, uri in in_scope.items() if outer.get(prefix) != uri}
    visible = dict(emitted)
    visible.update(declared)

    def qualify(name: str, is_attribute: bool = False) -> str:
        if not name.startswith("{"):
            if not is_attribute and visible.get("", ""):
                declared[""] = visible[""] = ""
            return name
        uri, local = name[1:].split("}", 1)
        prefix = _prefix_for(in_scope, uri, is_attribute)
        if prefix is None:
            counter = 0
            while f"ns{counter}" in visible or f"ns{counter}" in in_scope:
                counter += 1
            prefix = f"ns{counter}"
        if prefix != "xml" and visible.get(prefix) != uri:
            declared[prefix] = visible[prefix] = uri
        return f"{prefix}:{local}" if prefix else local

    tag = qualify(element.tag)
    attributes = [(qualify(key, is_attribute=True), value) for key, value in element.attrib.items()]
    parts = [f"<{tag}"]
    for prefix, uri in declared.items():
        parts.append(f' {"xmlns:" + prefix if prefix else "xmlns"}="{_escape_attribute(uri)}"')
    for key, value in attributes:
        parts.append(f' {key}="{_escape_attribute(value)}"')

    content = [escape(element.text or "")]
    for child in element:
        content.append(serialize_element(child, scopes, in_scope, visible))
        content.append(escape(child.tail or ""))
    body = "".join(content)
    if not body:
        parts.append("/>")
    else:
        parts.append(f">{body}</{tag}>")
    return "".join(parts)
