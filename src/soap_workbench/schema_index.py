"""Cross-document declaration tables built during the merge phase.

A parse folds every loaded service description, in fetch order, into three
accumulators:

* :class:`SchemaIndex` - top-level ``xs:element`` / ``xs:complexType`` /
  ``xs:simpleType`` declarations keyed by ``(namespace, local_name)``.
* :class:`MessageTable` - ``wsdl:message`` nodes keyed by name.
* :class:`OperationTable` - abstract ``wsdl:portType/wsdl:operation``
  signatures keyed by name.

All three are last-write-wins: a later document declaring a name already
present silently replaces the earlier entry. They are mutated only while
merging and are treated as read-only afterwards. Nothing here is cached
between parses.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from .loader import ResolvedDocument
from .xmltree import WSDL_NS, XS_NS, NamespaceScopes, QName, local_name, text_content

logger = logging.getLogger(__name__)


class SchemaIndex:
    """Aggregated named schema declarations across all loaded documents.

    Besides the three declaration tables the index carries the merged
    namespace scope registry, so a declaration from any document can resolve
    the prefixed references it contains.

    Example:
        index = SchemaIndex()
        for document in documents:
            index.merge(document)
        declaration = index.find_element(("http://example.com/", "GetCountry"))
    """

    def __init__(self) -> None:
        self.elements: Dict[QName, ET.Element] = {}
        self.complex_types: Dict[QName, ET.Element] = {}
        self.simple_types: Dict[QName, ET.Element] = {}
        self.scopes = NamespaceScopes()

    def merge(self, document: ResolvedDocument) -> None:
        """Index the top-level declarations of every schema in ``document``."""
        self.scopes.update(document.scopes)
        document_namespace = document.target_namespace or ""

        for schema in document.root.iter(f"{XS_NS}schema"):
            namespace = schema.get("targetNamespace") or document_namespace
            for child in schema:
                if child.tag == f"{XS_NS}element":
                    table = self.elements
                elif child.tag == f"{XS_NS}complexType":
                    table = self.complex_types
                elif child.tag == f"{XS_NS}simpleType":
                    table = self.simple_types
                else:
                    continue
                name = (child.get("name") or "").strip()
                if not name:
                    continue
                table[(namespace, name)] = child

    def resolve(self, element: ET.Element, reference: Optional[str]) -> Optional[QName]:
        """Resolve a prefixed reference appearing on ``element``."""
        return self.scopes.resolve(element, reference)

    def find_element(self, name: Optional[QName]) -> Optional[ET.Element]:
        return self.elements.get(name) if name is not None else None

    def find_complex_type(self, name: Optional[QName]) -> Optional[ET.Element]:
        return self.complex_types.get(name) if name is not None else None

    def find_simple_type(self, name: Optional[QName]) -> Optional[ET.Element]:
        return self.simple_types.get(name) if name is not None else None

    def __len__(self) -> int:
        return len(self.elements) + len(self.complex_types) + len(self.simple_types)


class MessageTable:
    """``wsdl:message`` nodes keyed by message name."""

    def __init__(self) -> None:
        self.messages: Dict[str, ET.Element] = {}

    def merge(self, document: ResolvedDocument) -> None:
        for message in document.root.iter(f"{WSDL_NS}message"):
            name = (message.get("name") or "").strip()
            if name:
                self.messages[name] = message

    def get(self, name: Optional[str]) -> Optional[ET.Element]:
        if not name:
            return None
        return self.messages.get(name)

    def __len__(self) -> int:
        return len(self.messages)


@dataclass
class OperationSignature:
    """Abstract operation declared on a ``wsdl:portType``.

    Attributes:
        name: Operation name.
        input_message: Local name of the input message ("" when absent).
        output_message: Local name of the output message ("" when absent).
        documentation: ``wsdl:documentation`` text ("" when absent).
        source: URI of the declaring document.
    """

    name: str
    input_message: str = ""
    output_message: str = ""
    documentation: str = ""
    source: str = ""


class OperationTable:
    """Abstract operation signatures keyed by operation name."""

    def __init__(self) -> None:
        self.signatures: Dict[str, OperationSignature] = {}

    def merge(self, document: ResolvedDocument) -> None:
        for port_type in document.root.iter(f"{WSDL_NS}portType"):
            for operation in port_type.findall(f"{WSDL_NS}operation"):
                name = (operation.get("name") or "").strip()
                if not name:
                    continue
                input_node = operation.find(f"{WSDL_NS}input")
                output_node = operation.find(f"{WSDL_NS}output")
                documentation = text_content(operation.find(f"{WSDL_NS}documentation"))
                self.signatures[name] = OperationSignature(
                    name=name,
                    input_message=local_name(input_node.get("message")) if input_node is not None else "",
                    output_message=local_name(output_node.get("message")) if output_node is not None else "",
                    documentation=(documentation or "").strip(),
                    source=document.source,
                )

    def get(self, name: str) -> Optional[OperationSignature]:
        return self.signatures.get(name)

    def __len__(self) -> int:
        return len(self.signatures)


@dataclass
class DescriptorTables:
    """The merged tables of one parse."""

    index: SchemaIndex = field(default_factory=SchemaIndex)
    messages: MessageTable = field(default_factory=MessageTable)
    operations: OperationTable = field(default_factory=OperationTable)


def build_tables(documents: Iterable[ResolvedDocument]) -> DescriptorTables:
    """Fold documents, in fetch order, into fresh tables.

    ``wsdl:definitions`` documents contribute schemas, messages, and
    operation signatures. Standalone ``xs:schema`` documents pulled in through
    imports contribute schema declarations only. Anything else (manifests) is
    skipped.
    """
    tables = DescriptorTables()
    for document in documents:
        if document.is_service_description():
            tables.index.merge(document)
            tables.messages.merge(document)
            tables.operations.merge(document)
        elif document.is_schema():
            tables.index.merge(document)
    logger.debug(
        f"Merged {len(tables.index)} schema declarations, {len(tables.messages)} messages, "
        f"{len(tables.operations)} operation signatures"
    )
    return tables
