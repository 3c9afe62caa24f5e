"""Build operation descriptors from ``wsdl:binding`` sections.

For each binding operation of a service description document the builder:

1. looks up the abstract signature (messages, documentation) by name;
2. reads the SOAP action from the binding operation's ``soap:operation`` or
   ``soap12:operation`` child;
3. turns every part of the input message into a
   :class:`~soap_workbench.models.ParameterDescriptor` with a decorated
   example fragment;
4. assembles a SOAP 1.1 request envelope around those fragments.

Missing signatures, messages, or declarations are tolerated: they produce
empty names, an empty parameter list, or a placeholder sample respectively.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Sequence, Tuple
from xml.sax.saxutils import quoteattr

from .example_tree import (
    DEFAULT_MAX_DEPTH,
    ExampleTreeBuilder,
    FragmentElement,
    ScalarPlaceholder,
    decorate,
    is_array,
)
from .loader import ResolvedDocument
from .models import OperationDescriptor, ParameterDescriptor
from .schema_index import DescriptorTables
from .value_metadata import ValueMetadataResolver
from .xmltree import (
    SOAP12_NS,
    SOAP_NS,
    WSDL_NS,
    QName,
    local_name,
    schema_documentation,
    text_content,
)

logger = logging.getLogger(__name__)

SOAP_ENVELOPE_URI = "http://schemas.xmlsoap.org/soap/envelope/"
DEFAULT_TARGET_NAMESPACE = "urn:soap"
NO_PARAMETERS_COMMENT = "<!-- Operation does not declare input parameters -->"
BODY_INDENT = " " * 6


def clark_name(name: Optional[QName]) -> Optional[str]:
    """Format ``(namespace, local)`` as ``{namespace}local``."""
    if name is None:
        return None
    namespace, local = name
    return f"{{{namespace}}}{local}" if namespace else local


def _snippet_lines(fragment: FragmentElement, operation_name: str) -> List[str]:
    if fragment.name.lower() == operation_name.lower():
        return [line for line in fragment.inner_lines() if line.strip()]
    return fragment.lines()


def build_sample_envelope(
    target_namespace: str, operation_name: str, fragments: Sequence[FragmentElement]
) -> str:
    """Wrap parameter fragments into a complete SOAP 1.1 request document.

    A fragment whose root element carries the operation's own name is inlined
    so that the body does not repeat the wrapper element.

    Example:
        >>> print(build_sample_envelope("urn:demo", "Ping", []))
        <?xml version="1.0" encoding="utf-8"?>
        <soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/" xmlns:tns="urn:demo">
          <soap:Header />
          <soap:Body>
            <tns:Ping>
              <!-- Operation does not declare input parameters -->
            </tns:Ping>
          </soap:Body>
        </soap:Envelope>
        <BLANKLINE>
    """
    lines = [
        '<?xml version="1.0" encoding="utf-8"?>',
        f"<soap:Envelope xmlns:soap={quoteattr(SOAP_ENVELOPE_URI)} xmlns:tns={quoteattr(target_namespace)}>",
        "  <soap:Header />",
        "  <soap:Body>",
        f"    <tns:{operation_name}>",
    ]
    if not fragments:
        lines.append(BODY_INDENT + NO_PARAMETERS_COMMENT)
    for fragment in fragments:
        for line in _snippet_lines(fragment, operation_name):
            lines.append((BODY_INDENT + line).rstrip())
    lines.extend(
        [
            f"    </tns:{operation_name}>",
            "  </soap:Body>",
            "</soap:Envelope>",
        ]
    )
    return "\n".join(lines) + "\n"


def _part_documentation(part: ET.Element) -> Optional[str]:
    text = text_content(part.find(f"{WSDL_NS}documentation"))
    if text and text.strip():
        return text.strip()
    return schema_documentation(part) or None


class DescriptorBuilder:
    """Describe the binding operations of service description documents.

    Args:
        tables: Merged tables of the current parse.
        max_depth: Depth bound handed to the :class:`ExampleTreeBuilder`.
        resolver: Optional metadata resolver (a fresh one over
            ``tables.index`` by default).
    """

    def __init__(
        self,
        tables: DescriptorTables,
        max_depth: int = DEFAULT_MAX_DEPTH,
        resolver: Optional[ValueMetadataResolver] = None,
    ) -> None:
        self.tables = tables
        self.resolver = resolver or ValueMetadataResolver(tables.index)
        self.trees = ExampleTreeBuilder(tables.index, max_depth=max_depth)

    def describe_document(self, document: ResolvedDocument) -> List[OperationDescriptor]:
        """Return one descriptor per binding operation, in document order."""
        target_namespace = document.target_namespace or DEFAULT_TARGET_NAMESPACE
        operations: List[OperationDescriptor] = []

        for binding in document.root.iter(f"{WSDL_NS}binding"):
            for operation in binding.findall(f"{WSDL_NS}operation"):
                name = (operation.get("name") or "").strip()
                if not name:
                    continue
                operations.append(self.describe_operation(operation, name, target_namespace, document.source))

        logger.debug(f"Described {len(operations)} binding operation(s) in {document.source}")
        return operations

    def describe_operation(
        self, operation: ET.Element, name: str, target_namespace: str, source: str
    ) -> OperationDescriptor:
        signature = self.tables.operations.get(name)
        if signature is None:
            logger.debug(f"No portType signature for binding operation {name!r}")

        input_message = signature.input_message if signature else ""
        described = self.describe_parameters(input_message)
        parameters = [parameter for parameter, _ in described]
        fragments = [fragment for _, fragment in described]

        return OperationDescriptor(
            name=name,
            soap_action=self.soap_action(operation),
            input_message=input_message,
            output_message=signature.output_message if signature else "",
            documentation=signature.documentation if signature else "",
            sample_envelope=build_sample_envelope(target_namespace, name, fragments),
            parameters=parameters,
            source=source,
        )

    @staticmethod
    def soap_action(operation: ET.Element) -> str:
        for child in operation:
            if child.tag in (f"{SOAP_NS}operation", f"{SOAP12_NS}operation"):
                return child.get("soapAction") or ""
        return ""

    def describe_parameters(
        self, message_name: Optional[str]
    ) -> List[Tuple[ParameterDescriptor, FragmentElement]]:
        message = self.tables.messages.get(message_name)
        if message is None:
            if message_name:
                logger.debug(f"Input message {message_name!r} not found")
            return []
        return [self.describe_part(part) for part in message.findall(f"{WSDL_NS}part")]

    def describe_part(self, part: ET.Element) -> Tuple[ParameterDescriptor, FragmentElement]:
        """Describe one message part and return it with its decorated fragment."""
        index = self.tables.index
        element_reference = part.get("element")
        type_reference = part.get("type")
        part_name = (part.get("name") or "").strip() or local_name(element_reference) or "parameter"

        element_name = index.resolve(part, element_reference)
        type_name = index.resolve(part, type_reference)
        declaration = index.find_element(element_name)
        documentation = _part_documentation(part)
        array = False

        if declaration is not None:
            array = is_array(declaration)
            type_label = declaration.get("type") or clark_name(type_name) or clark_name(element_name)
            fragment = self.trees.build_element(declaration)
            documentation = documentation or schema_documentation(declaration) or None
        else:
            if element_reference:
                logger.debug(f"Element {element_reference!r} of part {part_name!r} not found")
            type_label = clark_name(type_name) or clark_name(element_name)
            complex_type = index.find_complex_type(type_name)
            if complex_type is not None:
                fragment = self.trees.build_complex_type(part_name, complex_type)
            else:
                fragment = FragmentElement(
                    name=part_name,
                    children=[ScalarPlaceholder(type_name=type_name, fallback=f"{part_name}Value")],
                )

        metadata = self.resolver.describe(element=declaration, type_name=type_name)
        decorated = decorate(fragment, metadata, self.resolver)

        parameter = ParameterDescriptor(
            name=part_name,
            type_name=type_label,
            is_array=array,
            sample_xml=decorated.render(),
            documentation=documentation,
            value_description=metadata.description,
            example_value=metadata.chosen_example(),
            allowed_values=list(metadata.allowed_values),
        )
        return parameter, decorated
