"""Tests for example fragment expansion, rendering and decoration."""

import xml.etree.ElementTree as ET

import pytest

from soap_workbench.example_tree import (
    CommentNode,
    ExampleTreeBuilder,
    FragmentElement,
    ScalarPlaceholder,
    TruncatedPlaceholder,
    decorate,
    is_array,
)
from soap_workbench.models import EMPTY_METADATA, ValueMetadata
from soap_workbench.value_metadata import ValueMetadataResolver

from conftest import TNS, make_index

REQUEST_SCHEMA = """
  <xs:element name="Req">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="Name" type="xs:string"/>
        <xs:element name="Count" type="xs:int"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
  <xs:element name="Qty" type="xs:int"/>
"""


def create_nested_schema(levels=10):
    """Root -> E1 -> ... -> E{levels-1} -> Leaf, one complex type per level."""
    types = [
        f'<xs:complexType name="L{i}"><xs:sequence>'
        f'<xs:element name="E{i}" type="tns:L{i + 1}"/></xs:sequence></xs:complexType>'
        for i in range(1, levels)
    ]
    types.append(
        f'<xs:complexType name="L{levels}"><xs:sequence>'
        '<xs:element name="Leaf" type="xs:string"/></xs:sequence></xs:complexType>'
    )
    return '<xs:element name="Root" type="tns:L1"/>' + "".join(types)


RECURSIVE_SCHEMA = """
  <xs:complexType name="Node">
    <xs:sequence>
      <xs:element name="Value" type="xs:string"/>
      <xs:element name="Child" type="tns:Node" minOccurs="0"/>
    </xs:sequence>
  </xs:complexType>
  <xs:element name="Tree" type="tns:Node"/>
"""


def build(schema_body, element, **kwargs):
    index = make_index(schema_body)
    builder = ExampleTreeBuilder(index, **kwargs)
    return builder.build_element(index.find_element((TNS, element))), index


def nesting(fragment):
    nested = [nesting(child) for child in fragment.children if isinstance(child, FragmentElement)]
    return 1 + max(nested, default=0)


def truncations(fragment):
    return sum(
        1
        for element in fragment.iter_elements()
        for child in element.children
        if isinstance(child, TruncatedPlaceholder)
    )


def test_complex_element_renders_children_in_order():
    fragment, _ = build(REQUEST_SCHEMA, "Req")

    assert fragment.render() == (
        "<tns:Req>\n"
        "  <tns:Name>{string}</tns:Name>\n"
        "  <tns:Count>{int}</tns:Count>\n"
        "</tns:Req>"
    )


def test_element_references_resolve_through_element_table():
    schema = """
  <xs:element name="Address">
    <xs:complexType><xs:sequence><xs:element name="Street" type="xs:string"/></xs:sequence></xs:complexType>
  </xs:element>
  <xs:element name="Person">
    <xs:complexType>
      <xs:sequence>
        <xs:element ref="tns:Address"/>
        <xs:element ref="tns:Missing"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
"""
    fragment, _ = build(schema, "Person")

    assert fragment.render() == (
        "<tns:Person>\n"
        "  <tns:Address>\n"
        "    <tns:Street>{string}</tns:Street>\n"
        "  </tns:Address>\n"
        "  <tns:Missing>{value}</tns:Missing>\n"
        "</tns:Person>"
    )


def test_extension_expands_base_content_first():
    schema = """
  <xs:complexType name="Base">
    <xs:sequence><xs:element name="Id" type="xs:int"/></xs:sequence>
  </xs:complexType>
  <xs:complexType name="Derived">
    <xs:complexContent>
      <xs:extension base="tns:Base">
        <xs:sequence><xs:element name="Name" type="xs:string"/></xs:sequence>
      </xs:extension>
    </xs:complexContent>
  </xs:complexType>
  <xs:element name="Thing" type="tns:Derived"/>
"""
    fragment, _ = build(schema, "Thing")

    assert [child.name for child in fragment.children] == ["Id", "Name"]


def test_self_extending_type_does_not_loop():
    schema = """
  <xs:complexType name="Loop">
    <xs:complexContent>
      <xs:extension base="tns:Loop">
        <xs:sequence><xs:element name="Name" type="xs:string"/></xs:sequence>
      </xs:extension>
    </xs:complexContent>
  </xs:complexType>
  <xs:element name="Thing" type="tns:Loop"/>
"""
    fragment, _ = build(schema, "Thing")

    assert [child.name for child in fragment.children] == ["Name"]


def test_nested_groups_are_flattened_and_wildcards_ignored():
    schema = """
  <xs:element name="Thing">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="A" type="xs:string"/>
        <xs:choice>
          <xs:element name="B" type="xs:string"/>
          <xs:element name="C" type="xs:string" maxOccurs="unbounded"/>
        </xs:choice>
        <xs:any processContents="lax"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
"""
    fragment, _ = build(schema, "Thing")

    assert [child.name for child in fragment.children] == ["A", "B", "C"]


def test_complex_type_without_particles_is_a_value():
    schema = """
  <xs:element name="Empty"><xs:complexType/></xs:element>
  <xs:complexType name="Price">
    <xs:simpleContent>
      <xs:extension base="xs:decimal"><xs:attribute name="currency" type="xs:string"/></xs:extension>
    </xs:simpleContent>
  </xs:complexType>
  <xs:element name="Total" type="tns:Price"/>
"""
    empty, _ = build(schema, "Empty")
    total, _ = build(schema, "Total")

    assert empty.render() == "<tns:Empty>{value}</tns:Empty>"
    assert total.render() == "<tns:Total>{decimal}</tns:Total>"


def test_build_complex_type_wraps_content_in_named_element():
    index = make_index(RECURSIVE_SCHEMA)
    builder = ExampleTreeBuilder(index, max_depth=1)

    fragment = builder.build_complex_type("node", index.find_complex_type((TNS, "Node")))

    assert fragment.render() == (
        "<tns:node>\n"
        "  <tns:Value>{...}</tns:Value>\n"
        "  <tns:Child>{...}</tns:Child>\n"
        "</tns:node>"
    )


class TestDepthBound:
    """Tests for the example nesting limit."""

    def test_ten_levels_expand_fully_with_higher_bound(self):
        fragment, _ = build(create_nested_schema(10), "Root", max_depth=12)

        names = [element.name for element in fragment.iter_elements()]
        assert names == ["Root"] + [f"E{i}" for i in range(1, 10)] + ["Leaf"]
        assert truncations(fragment) == 0
        assert "{...}" not in fragment.render()

    def test_default_bound_truncates_deep_content(self):
        fragment, _ = build(create_nested_schema(10), "Root")

        names = [element.name for element in fragment.iter_elements()]
        assert names == ["Root"] + [f"E{i}" for i in range(1, 7)]
        assert truncations(fragment) == 1
        assert "<tns:E6>{...}</tns:E6>" in fragment.render()

    def test_self_recursive_type_terminates(self):
        fragment, _ = build(RECURSIVE_SCHEMA, "Tree")

        assert nesting(fragment) == 7
        assert sum(1 for element in fragment.iter_elements() if element.name == "Child") == 6
        assert truncations(fragment) == 2
        assert fragment.render().count("{string}") == 5


@pytest.mark.parametrize(
    "max_occurs,expected",
    [("unbounded", True), ("UNBOUNDED", True), ("3", True), ("1", False), ("", False), (None, False)],
)
def test_is_array(max_occurs, expected):
    declaration = ET.Element("element")
    if max_occurs is not None:
        declaration.set("maxOccurs", max_occurs)
    assert is_array(declaration) is expected


def test_is_array_without_declaration():
    assert is_array(None) is False


class TestRendering:
    """Tests for fragment rendering."""

    def test_empty_element_is_self_closing(self):
        assert FragmentElement("Ping").render() == "<tns:Ping />"

    def test_unqualified_prefix(self):
        fragment = FragmentElement("Count", [ScalarPlaceholder(fallback="CountValue")], prefix="")
        assert fragment.render() == "<Count>CountValue</Count>"

    def test_comment_is_sanitized(self):
        assert CommentNode("a--b-").render_inline() == "<!-- a- -b- -->"

    def test_inner_lines_skip_own_tags(self):
        fragment, _ = build(REQUEST_SCHEMA, "Req")
        assert fragment.inner_lines() == [
            "<tns:Name>{string}</tns:Name>",
            "<tns:Count>{int}</tns:Count>",
        ]


class TestDecorate:
    """Tests for placeholder decoration."""

    def test_nested_placeholders_use_their_own_declarations(self):
        fragment, index = build(REQUEST_SCHEMA, "Req")

        decorated = decorate(fragment, EMPTY_METADATA, ValueMetadataResolver(index))

        assert decorated.render() == (
            "<tns:Req>\n"
            "  <tns:Name>SampleText</tns:Name>\n"
            "  <tns:Count>123</tns:Count>\n"
            "</tns:Req>"
        )
        # the source fragment is left untouched
        assert "{string}" in fragment.render()

    def test_root_placeholder_uses_parameter_metadata(self):
        fragment, _ = build(REQUEST_SCHEMA, "Qty")

        decorated = decorate(fragment, ValueMetadata("Quantity", "7"))

        assert decorated.render() == "<tns:Qty>7</tns:Qty>"

    def test_allowed_value_used_when_no_example(self):
        fragment, _ = build(REQUEST_SCHEMA, "Qty")

        decorated = decorate(fragment, ValueMetadata(None, None, ("B", "C")))

        assert decorated.render() == "<tns:Qty>B</tns:Qty>"

    def test_description_only_becomes_comment(self):
        fragment, _ = build(REQUEST_SCHEMA, "Qty")

        decorated = decorate(fragment, ValueMetadata("Type: Widget"))

        assert decorated.render() == "<tns:Qty><!-- Type: Widget --></tns:Qty>"

    def test_values_are_escaped(self):
        fragment, _ = build(REQUEST_SCHEMA, "Qty")

        decorated = decorate(fragment, ValueMetadata(None, "a<b&c"))

        assert decorated.render() == "<tns:Qty>a&lt;b&amp;c</tns:Qty>"

    def test_nested_placeholders_kept_without_resolver(self):
        fragment, _ = build(REQUEST_SCHEMA, "Req")

        decorated = decorate(fragment, ValueMetadata("ignored", "x"))

        assert decorated.render() == fragment.render()

    def test_empty_metadata_keeps_fallback(self):
        fragment = FragmentElement("order", [ScalarPlaceholder(fallback="orderValue")])

        assert decorate(fragment, EMPTY_METADATA).render() == "<tns:order>orderValue</tns:order>"
