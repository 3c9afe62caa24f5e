"""Shared fixtures: in-memory fetchers and inline WSDL / XSD builders."""

import pytest

from soap_workbench.errors import SourceFetchError
from soap_workbench.loader import ResolvedDocument
from soap_workbench.schema_index import SchemaIndex
from soap_workbench.xmltree import parse_xml

TNS = "http://example.com/demo"

SCHEMA_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           xmlns:tns="{tns}"
           targetNamespace="{tns}"
           elementFormDefault="qualified">
{body}
</xs:schema>"""

WSDL_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<wsdl:definitions xmlns:wsdl="http://schemas.xmlsoap.org/wsdl/"
                  xmlns:soap="http://schemas.xmlsoap.org/wsdl/soap/"
                  xmlns:soap12="http://schemas.xmlsoap.org/wsdl/soap12/"
                  xmlns:xs="http://www.w3.org/2001/XMLSchema"
                  xmlns:tns="{tns}"
                  {extra_ns}
                  {target}>
{imports}
  <wsdl:types>
    <xs:schema targetNamespace="{tns}" elementFormDefault="qualified">
{schema}
    </xs:schema>
  </wsdl:types>
{body}
</wsdl:definitions>"""


class FakeFetcher:
    """Dict-backed fetcher recording every requested URI."""

    def __init__(self, documents=None):
        self.documents = dict(documents or {})
        self.calls = []

    async def fetch_text(self, uri):
        self.calls.append(uri)
        if uri not in self.documents:
            raise SourceFetchError(f"Failed to fetch {uri}: HTTP 404", uri=uri)
        return self.documents[uri]


def build_schema(body, tns=TNS):
    return SCHEMA_TEMPLATE.format(tns=tns, body=body)


def build_wsdl(schema="", body="", tns=TNS, imports="", extra_ns="", target_namespace=True):
    target = f'targetNamespace="{tns}"' if target_namespace else ""
    return WSDL_TEMPLATE.format(
        tns=tns, schema=schema, body=body, imports=imports, extra_ns=extra_ns, target=target
    )


def service_body(*operations, binding_namespace="soap"):
    """Messages, portType and binding for ``(name, element, soap_action)`` tuples."""
    messages = []
    port_operations = []
    binding_operations = []
    for name, element, action in operations:
        messages.append(
            f'  <wsdl:message name="{name}SoapIn">'
            f'<wsdl:part name="parameters" element="tns:{element}"/></wsdl:message>'
        )
        messages.append(f'  <wsdl:message name="{name}SoapOut"/>')
        port_operations.append(
            f'    <wsdl:operation name="{name}">'
            f"<wsdl:documentation>{name} documentation</wsdl:documentation>"
            f'<wsdl:input message="tns:{name}SoapIn"/>'
            f'<wsdl:output message="tns:{name}SoapOut"/></wsdl:operation>'
        )
        binding_operations.append(
            f'    <wsdl:operation name="{name}">'
            f'<{binding_namespace}:operation soapAction="{action}"/></wsdl:operation>'
        )
    return "\n".join(
        messages
        + ['  <wsdl:portType name="DemoPort">']
        + port_operations
        + ["  </wsdl:portType>", '  <wsdl:binding name="DemoBinding" type="tns:DemoPort">']
        + binding_operations
        + ["  </wsdl:binding>"]
    )


def make_document(text, source="http://example.com/demo.wsdl"):
    return ResolvedDocument(source=source, tree=parse_xml(text))


def make_index(schema_body, tns=TNS):
    index = SchemaIndex()
    index.merge(make_document(build_schema(schema_body, tns), "http://example.com/types.xsd"))
    return index


@pytest.fixture
def fake_fetcher():
    """Factory for :class:`FakeFetcher` instances."""
    return FakeFetcher
