"""Core data structures exchanged between the parser and its callers.

These lightweight dataclasses are produced by the descriptor engine and
consumed by higher level layers (HTTP API, CLI, history). They intentionally
avoid framework dependencies so they can be serialized, logged, or
transported easily.

Overview:
    * ``ParseRequest`` is the immutable input: a primary descriptor location,
      additional locations, and whether imports should be followed.
    * ``ValueMetadata`` describes what a scalar value may look like (free text
      description, synthesized example, allowed literal values).
    * ``ParameterDescriptor`` and ``OperationDescriptor`` form the catalog of
      callable operations returned inside a ``ParseResult``.

Typical construction (simplified)::

    from soap_workbench.models import ParseRequest

    request = ParseRequest(
        primary_source="https://example.com/CountryInfo.wso?WSDL",
        additional_sources=("https://example.com/extra.xsd",),
        follow_imports=True,
    )

Design notes:
    * ``ParseResult.operations`` keeps traversal order (document, binding,
      operation). Ordering and de-duplication for display are caller concerns
      (see :func:`soap_workbench.presentation.present_operations`).
    * ``to_dict`` produces stable keys to simplify JSON responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ParseRequest:
    """Input contract for a descriptor parse.

    Attributes:
        primary_source: Main descriptor URI (optional when additional sources
            are given).
        additional_sources: Further descriptor URIs, in request order.
        follow_imports: When True, ``wsdl:import`` / ``xsd:import`` /
            ``xsd:include`` locations are fetched as well.
    """

    primary_source: Optional[str] = None
    additional_sources: Tuple[str, ...] = ()
    follow_imports: bool = True

    def __post_init__(self) -> None:
        # Accept any iterable (lists from JSON bodies) but store a tuple.
        object.__setattr__(self, "additional_sources", tuple(self.additional_sources))

    def locations(self) -> List[Optional[str]]:
        """Primary source followed by additional sources, in request order."""
        return [self.primary_source, *self.additional_sources]


@dataclass(frozen=True)
class ValueMetadata:
    """Human-readable constraints and an example for a scalar value.

    Example:
        >>> ValueMetadata("Integer", None, ("A", "B")).chosen_example()
        'A'
    """

    description: Optional[str] = None
    example: Optional[str] = None
    allowed_values: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.description is None and self.example is None and not self.allowed_values

    def chosen_example(self) -> Optional[str]:
        """Example value, else the first allowed value."""
        if self.example is not None:
            return self.example
        return self.allowed_values[0] if self.allowed_values else None


EMPTY_METADATA = ValueMetadata()


@dataclass
class ParameterDescriptor:
    """One input parameter of an operation.

    Attributes:
        name: Part (or manifest parameter) name.
        type_name: Declared type reference, if any (``tns:Foo`` or a Clark name).
        is_array: True when the declaration repeats (``maxOccurs`` > 1 or unbounded).
        sample_xml: Example XML snippet, decorated with a concrete value or comment.
        documentation: Human documentation from annotations or the manifest.
        value_description: Constraint summary (facets, built-in type description).
        example_value: Example value chosen for the snippet.
        allowed_values: Enumerated literal values, in declaration order.
    """

    name: str
    type_name: Optional[str] = None
    is_array: bool = False
    sample_xml: str = ""
    documentation: Optional[str] = None
    value_description: Optional[str] = None
    example_value: Optional[str] = None
    allowed_values: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type_name": self.type_name,
            "is_array": self.is_array,
            "sample_xml": self.sample_xml,
            "documentation": self.documentation,
            "value_description": self.value_description,
            "example_value": self.example_value,
            "allowed_values": list(self.allowed_values),
        }


@dataclass
class OperationDescriptor:
    """A callable operation with its example request envelope.

    Attributes:
        name: Operation name from the binding (or manifest function).
        soap_action: ``soapAction`` of the binding operation ("" when absent).
        input_message: Local name of the input message ("" when unknown).
        output_message: Local name of the output message ("" when unknown).
        documentation: Free-text documentation of the abstract operation.
        sample_envelope: Complete example request document.
        parameters: Input parameters in part declaration order.
        source: Absolute URI of the document declaring the operation.
    """

    name: str
    soap_action: str = ""
    input_message: str = ""
    output_message: str = ""
    documentation: str = ""
    sample_envelope: str = ""
    parameters: List[ParameterDescriptor] = field(default_factory=list)
    source: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "soap_action": self.soap_action,
            "input_message": self.input_message,
            "output_message": self.output_message,
            "documentation": self.documentation,
            "sample_envelope": self.sample_envelope,
            "parameters": [parameter.to_dict() for parameter in self.parameters],
            "source": self.source,
        }


@dataclass
class ParseResult:
    """Output contract of a descriptor parse.

    Attributes:
        operations: Descriptors in traversal order (no sort, no de-duplication).
        sources: Every resolved absolute source URI, in fetch order.
    """

    operations: List[OperationDescriptor] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when parsing succeeded but discovered no operations."""
        return not self.operations

    def to_dict(self) -> dict:
        return {
            "operations": [operation.to_dict() for operation in self.operations],
            "sources": list(self.sources),
        }
