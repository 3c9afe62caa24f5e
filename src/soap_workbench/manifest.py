"""Fallback parser for flat "executable manifest" documents.

Some services publish a simple XML manifest instead of a WSDL: a list of
functions, each with its own raw request template and loosely described
parameters. Such documents are parsed here independently of the schema
machinery; no type resolution or recursion applies.

Recognized shape (all names optional, first present wins)::

    <ExecutableManifest>
      <Function name="Ping" soapAction="urn:ping" description="Liveness check">
        <Envelope><Ping/></Envelope>
        <Parameter name="Count" type="int" repeating="false" expects="1-10">
          <Example>3</Example>
          <AllowedValue>1</AllowedValue>
        </Parameter>
      </Function>
    </ExecutableManifest>

Functions are the ``Function`` / ``ExecutableFunction`` elements anywhere in
the document (case-insensitive). When there are none and the root's name
contains ``Executable``, the root's direct children are the functions.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional
from xml.sax.saxutils import escape

from .example_tree import FragmentElement, ScalarPlaceholder, decorate, metadata_leaf
from .loader import ResolvedDocument
from .models import OperationDescriptor, ParameterDescriptor, ValueMetadata
from .xmltree import NamespaceScopes, local_name, serialize_element, text_content

logger = logging.getLogger(__name__)

FUNCTION_NAMES = ("function", "executablefunction")
DEFAULT_ENVELOPE = "<!-- Provide the raw XML payload for this function -->"


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    return text_content(_child(element, name))


def _first(*candidates: Optional[str]) -> Optional[str]:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def inner_xml(element: ET.Element, scopes: NamespaceScopes) -> str:
    """Text and child elements of ``element`` as written, trimmed."""
    outer = scopes.prefixes(element)
    parts = [escape(element.text or "")]
    for child in element:
        parts.append(serialize_element(child, scopes, outer))
        parts.append(escape(child.tail or ""))
    return "".join(parts).strip()


def _content(element: Optional[ET.Element], scopes: NamespaceScopes) -> Optional[str]:
    if element is None:
        return None
    if len(element):
        return inner_xml(element, scopes)
    return text_content(element)


def value_hint(parameter: ET.Element, type_name: Optional[str]) -> Optional[str]:
    """Join the type hint and the free-text expectation of a parameter."""
    hints = []
    if type_name and type_name.strip():
        hints.append(f"Type hint: {type_name}")
    expects = _first(parameter.get("expects"), _child_text(parameter, "Expects"))
    if expects and expects.strip():
        hints.append(expects)
    return "; ".join(hints) if hints else None


def find_functions(root: ET.Element) -> List[ET.Element]:
    functions = [
        node
        for node in root.iter()
        if node is not root and local_name(node.tag).lower() in FUNCTION_NAMES
    ]
    if not functions and "executable" in local_name(root.tag).lower():
        functions = list(root)
    return functions


def describe_parameter(parameter: ET.Element, scopes: NamespaceScopes) -> ParameterDescriptor:
    name = _first(parameter.get("name"), _child_text(parameter, "Name")) or "Parameter"
    type_name = _first(parameter.get("type"), _child_text(parameter, "Type"))
    repeating = (parameter.get("repeating") or "").strip().lower() == "true"
    description = _first(parameter.get("description"), _child_text(parameter, "Description"))
    example = _first(_child_text(parameter, "Example"), parameter.get("example"))
    allowed_values = tuple(
        value.strip()
        for value in (text_content(node) for node in parameter if local_name(node.tag) == "AllowedValue")
        if value and value.strip()
    )
    metadata = ValueMetadata(value_hint(parameter, type_name), example, allowed_values)

    sample = _content(_child(parameter, "Sample"), scopes)
    if sample is not None:
        leaf = metadata_leaf(metadata)
        if leaf is not None and "{value}" in sample:
            sample = sample.replace("{value}", leaf.render_inline())
    else:
        fragment = FragmentElement(
            name=name,
            children=[ScalarPlaceholder(fallback=f"{name}Value")],
            prefix="",
        )
        sample = decorate(fragment, metadata).render()

    return ParameterDescriptor(
        name=name,
        type_name=type_name,
        is_array=repeating,
        sample_xml=sample,
        documentation=description,
        value_description=metadata.description,
        example_value=metadata.chosen_example(),
        allowed_values=list(allowed_values),
    )


def describe_function(
    function: ET.Element, source: str, scopes: NamespaceScopes
) -> OperationDescriptor:
    name = _first(function.get("name"), _child_text(function, "Name")) or "Function"
    soap_action = _first(
        function.get("soapAction"), function.get("action"), _child_text(function, "SoapAction")
    )
    documentation = _first(
        function.get("description"),
        _child_text(function, "Description"),
        _child_text(function, "Documentation"),
    )
    envelope = _first(
        _content(_child(function, "Envelope"), scopes),
        _content(_child(function, "Template"), scopes),
        _content(_child(function, "Sample"), scopes),
    )
    parameters = [
        describe_parameter(child, scopes) for child in function if local_name(child.tag).lower() == "parameter"
    ]
    return OperationDescriptor(
        name=name,
        soap_action=soap_action or "",
        input_message="",
        output_message="",
        documentation=documentation or "",
        sample_envelope=envelope if envelope is not None else DEFAULT_ENVELOPE,
        parameters=parameters,
        source=source,
    )


def parse_manifest(document: ResolvedDocument) -> List[OperationDescriptor]:
    """Describe every function declared in a manifest document."""
    functions = find_functions(document.root)
    if not functions:
        logger.debug(f"No manifest functions found in {document.source}")
        return []
    operations = [describe_function(function, document.source, document.scopes) for function in functions]
    logger.info(f"Parsed {len(operations)} manifest function(s) from {document.source}")
    return operations
