"""Tests for the merged declaration tables."""

from soap_workbench.schema_index import SchemaIndex, build_tables
from soap_workbench.xmltree import XS_NS, XS_URI

from conftest import TNS, build_schema, build_wsdl, make_document, service_body


def _children(declaration):
    return [node.get("name") for node in declaration.iter(f"{XS_NS}element") if node is not declaration]


def test_top_level_declarations_are_indexed():
    index = SchemaIndex()
    index.merge(
        make_document(
            build_schema(
                """
  <xs:element name="Lookup">
    <xs:complexType><xs:sequence><xs:element name="Inner" type="xs:string"/></xs:sequence></xs:complexType>
  </xs:element>
  <xs:complexType name="Address"/>
  <xs:simpleType name="Code"><xs:restriction base="xs:string"/></xs:simpleType>
  <xs:element name="" type="xs:string"/>
"""
            )
        )
    )

    assert set(index.elements) == {(TNS, "Lookup")}
    assert set(index.complex_types) == {(TNS, "Address")}
    assert set(index.simple_types) == {(TNS, "Code")}
    assert len(index) == 3


def test_later_declaration_wins():
    first = build_schema(
        '<xs:element name="Lookup"><xs:complexType><xs:sequence>'
        '<xs:element name="Old" type="xs:string"/></xs:sequence></xs:complexType></xs:element>'
    )
    second = build_schema(
        '<xs:element name="Lookup"><xs:complexType><xs:sequence>'
        '<xs:element name="New" type="xs:string"/></xs:sequence></xs:complexType></xs:element>'
    )
    index = SchemaIndex()
    index.merge(make_document(first, "http://example.com/one.xsd"))
    index.merge(make_document(second, "http://example.com/two.xsd"))

    assert _children(index.find_element((TNS, "Lookup"))) == ["New"]


def test_schema_without_target_namespace_uses_document_namespace():
    text = build_wsdl(schema='<xs:element name="Ping" type="xs:string"/>').replace(
        f'<xs:schema targetNamespace="{TNS}"', "<xs:schema"
    )
    index = SchemaIndex()
    index.merge(make_document(text))

    assert index.find_element((TNS, "Ping")) is not None


def test_references_resolve_against_declaring_document():
    index = SchemaIndex()
    index.merge(make_document(build_schema('<xs:element name="Ping" type="xs:int"/>')))
    index.merge(
        make_document(
            build_schema('<xs:element name="Pong" type="tns:Other"/>', tns="urn:other"),
            "http://example.com/other.xsd",
        )
    )

    ping = index.find_element((TNS, "Ping"))
    pong = index.find_element(("urn:other", "Pong"))
    assert index.resolve(ping, ping.get("type")) == (XS_URI, "int")
    assert index.resolve(pong, pong.get("type")) == ("urn:other", "Other")
    assert index.resolve(pong, "undeclared:Thing") is None
    assert index.find_element(None) is None


def test_build_tables_merges_messages_and_signatures():
    text = build_wsdl(
        schema='<xs:element name="Ping" type="xs:string"/>',
        body=service_body(("Ping", "Ping", "urn:ping")),
    )

    tables = build_tables([make_document(text)])

    assert set(tables.messages.messages) == {"PingSoapIn", "PingSoapOut"}
    signature = tables.operations.get("Ping")
    assert signature.input_message == "PingSoapIn"
    assert signature.output_message == "PingSoapOut"
    assert signature.documentation == "Ping documentation"
    assert signature.source == "http://example.com/demo.wsdl"
    assert tables.messages.get("") is None
    assert tables.messages.get("Nope") is None


def test_build_tables_uses_standalone_schemas_and_skips_manifests():
    schema = make_document(
        build_schema('<xs:element name="Shared" type="xs:string"/>', tns="urn:types"),
        "http://example.com/types.xsd",
    )
    manifest = make_document(
        '<ExecutableManifest><Function name="Run"/></ExecutableManifest>',
        "http://example.com/manifest.xml",
    )

    tables = build_tables([schema, manifest])

    assert tables.index.find_element(("urn:types", "Shared")) is not None
    assert len(tables.messages) == 0
    assert len(tables.operations) == 0


def test_operation_signature_redeclared_in_later_document_wins():
    first = build_wsdl(body=service_body(("Ping", "Ping", "urn:ping")))
    second = build_wsdl(
        body="""
  <wsdl:portType name="OtherPort">
    <wsdl:operation name="Ping"><wsdl:input message="tns:PingRequest"/></wsdl:operation>
  </wsdl:portType>"""
    )

    tables = build_tables(
        [make_document(first), make_document(second, "http://example.com/second.wsdl")]
    )

    signature = tables.operations.get("Ping")
    assert signature.input_message == "PingRequest"
    assert signature.output_message == ""
    assert signature.documentation == ""
    assert signature.source == "http://example.com/second.wsdl"
