"""Depth-bounded expansion of element declarations into example fragments.

The builder produces a small fragment tree instead of text so that later
steps (value decoration, envelope assembly) can work on structure:

* :class:`FragmentElement` - a ``tns:``-qualified element with children.
* :class:`ScalarPlaceholder` - where a scalar value goes. It remembers the
  declaration and resolved type it stands for so that decoration can look up
  the right metadata.
* :class:`TruncatedPlaceholder` - emitted as ``{...}`` once the depth bound
  is exceeded.
* :class:`TextNode` / :class:`CommentNode` - concrete content produced by
  :func:`decorate`.

Resolution per element declaration:
    1. an inline ``xs:complexType`` is expanded;
    2. otherwise a ``type`` found in the complex type table is expanded;
    3. otherwise the element is a scalar and gets a placeholder.

Complex type expansion walks ``sequence`` / ``choice`` / ``all`` groups in
declaration order (also under ``complexContent`` / ``simpleContent``
derivations, base content first for extensions). Choice branches are all
emitted; repeated elements appear once.

Example:
    builder = ExampleTreeBuilder(tables.index, max_depth=6)
    fragment = builder.build_element(declaration)
    print(fragment.render())
    # <tns:GetCountry>
    #   <tns:Code>{string}</tns:Code>
    # </tns:GetCountry>
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import FrozenSet, List, Optional, Union
from xml.sax.saxutils import escape

from .models import ValueMetadata
from .schema_index import SchemaIndex
from .xmltree import XS_NS, QName, local_name

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 6
INDENT = "  "

GROUP_TAGS = (f"{XS_NS}sequence", f"{XS_NS}choice", f"{XS_NS}all")
CONTENT_TAGS = (f"{XS_NS}complexContent", f"{XS_NS}simpleContent")
DERIVATION_TAGS = (f"{XS_NS}extension", f"{XS_NS}restriction")


@dataclass
class TextNode:
    """Literal character data (escaped on render)."""

    text: str

    def render_inline(self) -> str:
        return escape(self.text)


@dataclass
class CommentNode:
    """An XML comment, typically carrying a value description."""

    text: str

    def render_inline(self) -> str:
        # "--" is not allowed inside XML comments.
        body = self.text
        while "--" in body:
            body = body.replace("--", "- -")
        return f"<!-- {body} -->"


@dataclass
class ScalarPlaceholder:
    """Location of a scalar value awaiting decoration.

    Attributes:
        declaration: Element declaration the value belongs to, if any.
        type_name: Resolved type of the value, if known.
        fallback: Text rendered when the placeholder is never decorated.
    """

    declaration: Optional[ET.Element] = None
    type_name: Optional[QName] = None
    fallback: Optional[str] = None

    def render_inline(self) -> str:
        if self.fallback is not None:
            return escape(self.fallback)
        if self.type_name is not None:
            return f"{{{self.type_name[1]}}}"
        return "{value}"


@dataclass
class TruncatedPlaceholder:
    """Marks content that was not expanded because of the depth bound."""

    def render_inline(self) -> str:
        return "{...}"


Leaf = Union[TextNode, CommentNode, ScalarPlaceholder, TruncatedPlaceholder]
Node = Union["FragmentElement", Leaf]


@dataclass
class FragmentElement:
    """An element of an example fragment.

    Attributes:
        name: Local element name.
        children: Child elements and leaves in document order.
        declaration: Element declaration this element was built from.
        prefix: Namespace prefix used on render ("" renders unqualified).
    """

    name: str
    children: List[Node] = field(default_factory=list)
    declaration: Optional[ET.Element] = None
    prefix: str = "tns"

    @property
    def tag(self) -> str:
        return f"{self.prefix}:{self.name}" if self.prefix else self.name

    def is_scalar(self) -> bool:
        return len(self.children) == 1 and not isinstance(self.children[0], FragmentElement)

    def iter_elements(self):
        """Yield this element and every descendant element, depth first."""
        yield self
        for child in self.children:
            if isinstance(child, FragmentElement):
                yield from child.iter_elements()

    def lines(self, level: int = 0) -> List[str]:
        """Render as indented lines, two spaces per nesting level."""
        pad = INDENT * level
        if not self.children:
            return [f"{pad}<{self.tag} />"]
        if self.is_scalar():
            return [f"{pad}<{self.tag}>{self.children[0].render_inline()}</{self.tag}>"]
        rendered = [f"{pad}<{self.tag}>"]
        for child in self.children:
            if isinstance(child, FragmentElement):
                rendered.extend(child.lines(level + 1))
            else:
                rendered.append(INDENT * (level + 1) + child.render_inline())
        rendered.append(f"{pad}</{self.tag}>")
        return rendered

    def inner_lines(self) -> List[str]:
        """Render only the content, without this element's own tags."""
        rendered: List[str] = []
        for child in self.children:
            if isinstance(child, FragmentElement):
                rendered.extend(child.lines(0))
            else:
                rendered.append(child.render_inline())
        return rendered

    def render(self) -> str:
        return "\n".join(self.lines())


def is_array(declaration: Optional[ET.Element]) -> bool:
    """True when ``maxOccurs`` is ``unbounded`` or an integer greater than one."""
    if declaration is None:
        return False
    max_occurs = (declaration.get("maxOccurs") or "").strip()
    if max_occurs.lower() == "unbounded":
        return True
    try:
        return int(max_occurs) > 1
    except ValueError:
        return False


class ExampleTreeBuilder:
    """Expand declarations from a :class:`SchemaIndex` into fragments.

    Args:
        index: Schema declarations of the current parse.
        max_depth: Content deeper than this many levels below the fragment
            root is replaced by a :class:`TruncatedPlaceholder`.
    """

    def __init__(self, index: SchemaIndex, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.index = index
        self.max_depth = max_depth

    def build_element(
        self, declaration: ET.Element, depth: int = 0, name: Optional[str] = None
    ) -> FragmentElement:
        """Build the fragment of an ``xs:element`` declaration."""
        element_name = name or declaration.get("name") or "Element"
        return FragmentElement(
            name=element_name,
            children=self._element_content(declaration, depth + 1),
            declaration=declaration,
        )

    def build_complex_type(
        self, name: str, complex_type: ET.Element, depth: int = 0
    ) -> FragmentElement:
        """Wrap a complex type into a synthetic element called ``name``."""
        if depth + 1 > self.max_depth:
            children: List[Node] = [TruncatedPlaceholder()]
        else:
            children = self._complex_content(complex_type, depth + 1)
        return FragmentElement(name=name, children=children)

    def _element_content(self, declaration: ET.Element, depth: int) -> List[Node]:
        if depth > self.max_depth:
            return [TruncatedPlaceholder()]

        inline = declaration.find(f"{XS_NS}complexType")
        if inline is not None:
            return self._complex_content(inline, depth)

        type_name = self.index.resolve(declaration, declaration.get("type"))
        complex_type = self.index.find_complex_type(type_name)
        if complex_type is not None:
            return self._complex_content(complex_type, depth)
        return [ScalarPlaceholder(declaration=declaration, type_name=type_name)]

    def _complex_content(self, complex_type: ET.Element, depth: int) -> List[Node]:
        children = self._particles(complex_type, depth, frozenset())
        if children is None:
            return [ScalarPlaceholder(type_name=self._simple_content_base(complex_type))]
        return children

    def _particles(
        self, complex_type: ET.Element, depth: int, bases: FrozenSet[ET.Element]
    ) -> Optional[List[Node]]:
        """Expand the model groups of a complex type; ``None`` if it has none."""
        children: List[Node] = []
        handled = False
        for container in complex_type:
            if container.tag in GROUP_TAGS:
                children.extend(self._group(container, depth))
                handled = True
            elif container.tag in CONTENT_TAGS:
                for derivation in container:
                    if derivation.tag not in DERIVATION_TAGS:
                        continue
                    if derivation.tag == f"{XS_NS}extension" and container.tag == f"{XS_NS}complexContent":
                        base = self.index.find_complex_type(
                            self.index.resolve(derivation, derivation.get("base"))
                        )
                        if base is not None and base not in bases and base is not complex_type:
                            inherited = self._particles(base, depth, bases | {complex_type})
                            if inherited is not None:
                                children.extend(inherited)
                                handled = True
                    for group in derivation:
                        if group.tag in GROUP_TAGS:
                            children.extend(self._group(group, depth))
                            handled = True
        return children if handled else None

    def _group(self, group: ET.Element, depth: int) -> List[Node]:
        children: List[Node] = []
        for particle in group:
            if particle.tag == f"{XS_NS}element":
                children.append(self._child_element(particle, depth))
            elif particle.tag in GROUP_TAGS:
                children.extend(self._group(particle, depth))
        return children

    def _child_element(self, particle: ET.Element, depth: int) -> FragmentElement:
        name = particle.get("name")
        reference = particle.get("ref")
        if name or not reference:
            return self.build_element(particle, depth, name=name or "Item")

        target_name = self.index.resolve(particle, reference)
        target = self.index.find_element(target_name)
        ref_name = target_name[1] if target_name else local_name(reference) or "Item"
        if target is None:
            logger.debug(f"Unresolved element reference {reference!r}")
            return self.build_element(particle, depth, name=ref_name)
        return self.build_element(target, depth, name=ref_name)

    def _simple_content_base(self, complex_type: ET.Element) -> Optional[QName]:
        for derivation in complex_type.iterfind(f"{XS_NS}simpleContent/*"):
            if derivation.tag in DERIVATION_TAGS:
                return self.index.resolve(derivation, derivation.get("base"))
        return None


def metadata_leaf(metadata: ValueMetadata) -> Optional[Leaf]:
    """Concrete content for a placeholder, or ``None`` to leave it untouched."""
    example = metadata.chosen_example()
    if example is not None:
        return TextNode(example)
    if metadata.description and metadata.description.strip():
        return CommentNode(metadata.description)
    return None


def decorate(fragment: FragmentElement, metadata: ValueMetadata, resolver=None) -> FragmentElement:
    """Return a copy of ``fragment`` with placeholders replaced by values.

    Placeholders directly under the root are decorated with ``metadata`` (the
    parameter-level metadata). Nested placeholders are decorated with the
    metadata of their own declaration, computed through ``resolver`` (a
    :class:`~soap_workbench.value_metadata.ValueMetadataResolver`); without a
    resolver they are left untouched.

    The input fragment is not modified.
    """

    def transform(element: FragmentElement, root: bool) -> FragmentElement:
        children: List[Node] = []
        for child in element.children:
            if isinstance(child, FragmentElement):
                children.append(transform(child, False))
            elif isinstance(child, ScalarPlaceholder):
                if root:
                    leaf = metadata_leaf(metadata)
                elif resolver is not None:
                    leaf = metadata_leaf(
                        resolver.describe(element=child.declaration, type_name=child.type_name)
                    )
                else:
                    leaf = None
                children.append(leaf if leaf is not None else child)
            else:
                children.append(child)
        return replace(element, children=children)

    return transform(fragment, True)
