"""SOAP Workbench
==============

Toolkit and service layer for exploring SOAP services from their WSDL
descriptors: point it at a service description, and get back every callable
operation with its SOAP action, parameters and a ready-to-edit example request
envelope.

Key capabilities
----------------
- Multi-document loading: ``wsdl:import`` / ``xsd:import`` / ``xsd:include``
  locations are followed breadth-first, each document fetched once.
- Cross-document merge of messages, abstract operations and schema
  declarations (last declaration wins).
- Value hints from XML Schema facets (enumerations, lengths, numeric bounds,
  patterns, lists) with synthesized example values.
- Depth-bounded example expansion that survives self-referential schemas.
- Fallback parsing of flat "executable manifest" descriptors.
- FastAPI service with search history, raw invocation and performance
  metrics, plus a command line interface.

Design principles
-----------------
1. **Fresh state per parse** - every parse owns its tables; nothing is cached
   between calls.
2. **Fail loudly on acquisition, degrade on resolution** - an unfetchable or
   malformed document aborts the parse, an unresolvable name only yields a
   placeholder.
3. **Separation of concerns** - loading, merging, value resolution, example
   building, transport and monitoring are isolated modules with narrow
   contracts.

Minimal quick start
-------------------
>>> from soap_workbench import ParseRequest, parse_wsdl_sync
>>> result = parse_wsdl_sync(ParseRequest("https://example.com/service?wsdl"))
>>> [operation.name for operation in result.operations][:5]

FastAPI application instance (for ASGI servers like uvicorn):
>>> from soap_workbench.app import app  # noqa: F401

Public surface
--------------
Only a curated subset is exported at the package level to keep the import
surface stable; advanced modules can be imported explicitly.
"""

__version__ = "0.1.0"

from .errors import DescriptorError, DocumentParseError, SourceFetchError
from .models import OperationDescriptor, ParameterDescriptor, ParseRequest, ParseResult
from .presentation import present_operations
from .wsdl_parser import ParserConfig, WsdlParser, parse_wsdl, parse_wsdl_sync

__all__ = [
    "DescriptorError",
    "DocumentParseError",
    "OperationDescriptor",
    "ParameterDescriptor",
    "ParseRequest",
    "ParseResult",
    "ParserConfig",
    "SourceFetchError",
    "WsdlParser",
    "parse_wsdl",
    "parse_wsdl_sync",
    "present_operations",
]
