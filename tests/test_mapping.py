"""
Tests for sap_odm.mapping module.
"""

import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from typing import ClassVar, List

import pytest

from sap_odm.core.errors import DeserializationError, MappingError
from sap_odm.mapping import FieldKind, ODataDateFormat, ODataRecord, Role, field_table, odata_field, resolve
from sap_odm.mapping import codec
from sap_odm.mapping.codec import JSON_QUOTE, URL_QUOTE

from conftest import entry_xml, feed_xml
from sample_records import Note, OrderLine, Product, ProductItem


class Ties(ODataRecord):
    c: str = odata_field("c", value="C", order=1)
    a: str = odata_field("a", value="A")
    b: str = odata_field("b", value="B")


class Colliding(ODataRecord):
    first: str = odata_field("", value="Same")
    second: str = odata_field("", value="Same")


class Unsupported(ODataRecord):
    data: dict = odata_field(value="Data", default_factory=dict)


class BadHook(ODataRecord):
    get_name: ClassVar[str] = "not callable"
    name: str = odata_field("", value="Name")


class NullGetter(ODataRecord):
    name: str = odata_field("", value="Name")

    def get_name(self):
        return None


class NoDefault(ODataRecord):
    name: str = odata_field(value="Name")


class Kid(ODataRecord):
    kid_id: str = odata_field("", key="ID", value="ID")


class Parent(ODataRecord):
    parent_id: str = odata_field("", key="ID", value="ID")
    kids: List[Kid] = odata_field(value="ToKids", expand="ToKids", default_factory=list)


def product(**overrides) -> Product:
    values = dict(
        product_id="HT-1000",
        name="Notebook",
        price=956.5,
        active=True,
        created_at=datetime(2019, 2, 21, 22, 46, 11, 123000),
    )
    values.update(overrides)
    return Product(**values)


class TestFieldTable:
    """Tests for descriptor tables and role resolution."""

    def test_kinds_inferred_from_annotations(self):
        kinds = {d.attr: d.kind for d in field_table(Product)}
        assert kinds == {
            "product_id": FieldKind.STRING,
            "name": FieldKind.STRING,
            "price": FieldKind.FLOAT64,
            "active": FieldKind.BOOL,
            "created_at": FieldKind.DATE,
            "items": FieldKind.NESTED_LIST,
        }

    def test_char_kind_is_explicit(self):
        table = {d.attr: d for d in field_table(OrderLine)}
        assert table["flag"].kind == FieldKind.CHAR
        assert table["order"].kind == FieldKind.INT64

    def test_nested_list_item_type(self):
        items = [d for d in field_table(Product) if d.attr == "items"][0]
        assert items.item_type is ProductItem

    def test_table_is_cached(self):
        assert field_table(Product) is field_table(Product)

    def test_resolve_orders_by_sort_order(self):
        assert list(resolve(Product, Role.VALUE)) == ["ProductID", "Name", "Price", "Active", "CreatedAt"]

    def test_resolve_ties_keep_declaration_order(self):
        assert list(resolve(Ties, Role.VALUE)) == ["A", "B", "C"]

    def test_resolve_per_role(self):
        assert list(resolve(Product, Role.KEY)) == ["ProductID"]
        assert list(resolve(Product, Role.SECONDARY_KEY)) == ["Name"]
        assert list(resolve(Product, Role.EXPAND)) == ["ToItems"]
        assert list(resolve(OrderLine, Role.KEY)) == ["Order", "Line"]

    def test_resolve_disallowed_role(self):
        assert "Name" not in resolve(Product, Role.VALUE, Role.SECONDARY_KEY)

    def test_colliding_wire_names(self):
        with pytest.raises(MappingError, match="identical wire name 'Same'"):
            resolve(Colliding, Role.VALUE)

    def test_missing_role(self):
        with pytest.raises(MappingError, match="No fields found with role"):
            resolve(ProductItem, Role.SECONDARY_KEY)

    def test_unsupported_annotation(self):
        with pytest.raises(MappingError, match="expected str, bool, int"):
            field_table(Unsupported)

    def test_non_callable_hook(self):
        with pytest.raises(MappingError, match="must be callable"):
            field_table(BadHook)

    def test_field_without_roles(self):
        with pytest.raises(MappingError):
            odata_field("")


class TestRendering:
    """Tests for wire rendering in the JSON, URL and raw contexts."""

    def test_to_json(self):
        assert codec.to_json(product()) == (
            '{"ProductID":"HT-1000","Name":"Notebook","Price":956.5,'
            '"Active":true,"CreatedAt":"2019-02-21T22:46:11.123"}'
        )

    def test_to_json_key_role(self):
        assert codec.to_json(product(), Role.KEY) == '{"ProductID":"HT-1000"}'

    def test_to_json_list(self):
        items = [ProductItem(item_id="1", quantity=2), ProductItem(item_id="2", quantity=5)]
        assert codec.to_json_list(items) == '[{"ItemID":"1","Quantity":2},{"ItemID":"2","Quantity":5}]'

    def test_json_escapes_strings(self):
        text = codec.to_json(product(name='Say "hi"'))
        assert '"Name":"Say \\"hi\\""' in text

    def test_url_context_doubles_quotes(self):
        values = codec.rendered_values(product(name="O'Brien"), Role.SECONDARY_KEY, URL_QUOTE)
        assert values == {"Name": "'O''Brien'"}

    def test_url_context_dates(self):
        values = codec.rendered_values(product(), Role.VALUE, URL_QUOTE)
        assert values["CreatedAt"] == "datetime'2019-02-21T22:46:11.123'"
        assert values["Active"] == "true"
        assert values["Price"] == "956.5"

    def test_guid_verbatim_in_url_quoted_in_json(self):
        guid = "guid'0a1b2c3d-0000-0000-0000-000000000001'"
        line = OrderLine(order=5, line="A", flag="Y", guid=guid)
        assert codec.rendered_values(line, Role.VALUE, URL_QUOTE)["Guid"] == guid
        assert codec.rendered_values(line, Role.VALUE, JSON_QUOTE)["Guid"] == '"' + guid + '"'

    def test_raw_context(self):
        assert codec.rendered_values(product(), Role.KEY) == {"ProductID": "HT-1000"}

    def test_none_getter_is_mapping_error(self):
        with pytest.raises(MappingError, match="must never be None"):
            codec.to_json(NullGetter())

    def test_char_must_be_one_character(self):
        with pytest.raises(ValueError):
            OrderLine(flag="NO")

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_float(self, price):
        with pytest.raises(MappingError, match="finite float"):
            codec.to_json(product(price=price))

    def test_nested_list_rendered_for_value_role(self):
        parent = Parent(parent_id="1", kids=[Kid(kid_id="a")])
        assert codec.to_json(parent) == '{"ID":"1","ToKids":[{"ID":"a"}]}'


class TestReading:
    """Tests for flat maps and Atom XML."""

    def test_json_round_trip(self):
        original = product(price=0.1 + 0.2, active=False)
        restored = Product()
        codec.from_map(restored, codec.parse_json_values(codec.to_json(original)), require_complete=True)
        assert restored == original

    def test_json_round_trip_composite(self):
        original = OrderLine(order=12, line="B", flag="X", guid="guid'0a1b2c3d-0000-0000-0000-000000000001'")
        restored = OrderLine()
        codec.from_map(restored, codec.parse_json_values(codec.to_json(original)), require_complete=True)
        assert restored == original

    def test_missing_property_named(self, product_props):
        del product_props["Price"]
        with pytest.raises(DeserializationError) as err:
            codec.from_map(Product(), product_props, require_complete=True)
        assert err.value.missing_property == "Price"
        assert "does not have property: Price" in str(err.value)
        assert "local type: Product" in str(err.value)

    def test_incomplete_map_leaves_fields_untouched(self):
        record = product()
        codec.from_map(record, {"Name": "Tablet"})
        assert record.name == "Tablet"
        assert record.price == 956.5

    def test_unassignable_value(self, product_props):
        product_props["Price"] = "cheap"
        with pytest.raises(DeserializationError) as err:
            codec.from_map(Product(), product_props)
        assert err.value.missing_property == "Price"
        assert err.value.reason

    def test_bool_text_forms(self, product_props):
        record = Product()
        for text, expected in (("X", True), ("true", True), ("", False), ("0", False)):
            product_props["Active"] = text
            codec.from_map(record, product_props)
            assert record.active is expected

    def test_set_hook_is_used(self):
        note = Note()
        codec.from_map(note, {"NoteID": "7", "Text": "hello"})
        assert note.note_id == 7
        assert note.text == "HELLO"

    def test_from_xml_entry_matches_direct_construction(self, product_props):
        record = Product()
        codec.from_xml_single(record, ET.fromstring(entry_xml(product_props)))
        assert record == product()

    def test_feed_with_one_entry(self, product_props):
        record = Product()
        codec.from_xml_single(record, ET.fromstring(feed_xml(product_props)))
        assert record.product_id == "HT-1000"

    @pytest.mark.parametrize("count", [0, 2])
    def test_single_entry_count_mismatch(self, product_props, count):
        document = ET.fromstring(feed_xml(*[product_props] * count))
        with pytest.raises(MappingError, match=f"Count was: {count}"):
            codec.from_xml_single(Product(), document)

    def test_from_xml_document(self, product_props):
        second = dict(product_props, ProductID="HT-1001")
        records = codec.from_xml_document(Product, ET.fromstring(feed_xml(product_props, second)))
        assert [r.product_id for r in records] == ["HT-1000", "HT-1001"]

    def test_from_xml_document_empty(self):
        assert codec.from_xml_document(Product, ET.fromstring(feed_xml())) == []
        assert codec.from_xml_document(Product, None) == []

    def test_xml_missing_property(self, product_props):
        del product_props["CreatedAt"]
        with pytest.raises(DeserializationError, match="CreatedAt"):
            codec.from_xml_single(Product(), ET.fromstring(entry_xml(product_props)))

    def test_entry_without_properties(self):
        entry = ET.fromstring('<entry xmlns="http://www.w3.org/2005/Atom"><id>x</id></entry>')
        with pytest.raises(DeserializationError, match="m:properties"):
            codec.from_xml_entry(Product(), entry)

    def test_new_record_requires_defaults(self):
        with pytest.raises(MappingError, match="default-constructible"):
            codec.new_record(NoDefault)


class TestRecordHelpers:
    """Tests for copying and comparing records."""

    def test_copy_key_fields(self):
        source = product()
        target = Product()
        codec.copy_fields(source, target, Role.KEY)
        assert target.product_id == "HT-1000"
        assert target.name == ""

    def test_same_values(self):
        assert codec.same_values(product(), product())
        assert not codec.same_values(product(), product(price=1.0))

    def test_same_values_at_wire_precision(self):
        a = product(created_at=datetime(2019, 2, 21, 22, 46, 11, 123000))
        b = product(created_at=datetime(2019, 2, 21, 22, 46, 11, 123456))
        assert codec.same_values(a, b)

    def test_same_values_ignores_expand(self):
        assert codec.same_values(product(items=[ProductItem(item_id="1")]), product())

    def test_same_values_ignores_value_field_that_expands(self):
        local = Parent(parent_id="1", kids=[Kid(kid_id="a")])
        remote = Parent()
        codec.from_map(remote, {"ID": "1"})
        assert codec.same_values(local, remote)
        assert not codec.same_values(local, Parent(parent_id="2"))


class TestODataDateFormat:
    """Tests for date formatting and parsing."""

    def test_format(self):
        fmt = ODataDateFormat()
        assert fmt.format(datetime(2019, 2, 21, 22, 46, 11, 123000)) == "datetime'2019-02-21T22:46:11.123'"

    def test_without_milliseconds(self):
        fmt = ODataDateFormat(milliseconds=False)
        assert fmt.iso(datetime(2019, 2, 21, 22, 46, 11, 123000)) == "2019-02-21T22:46:11"

    def test_aware_value_converted(self):
        fmt = ODataDateFormat(timezone(timedelta(hours=2)))
        value = datetime(2019, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert fmt.iso(value) == "2019-01-01T12:00:00.000"

    def test_per_call_time_zone(self):
        fmt = ODataDateFormat()
        value = datetime(2019, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert fmt.iso(value, timezone(timedelta(hours=-5))) == "2019-01-01T05:00:00.000"

    def test_set_timezone(self):
        fmt = ODataDateFormat()
        fmt.set_timezone(timezone(timedelta(hours=1)))
        assert fmt.parse("2019-01-01T10:00:00Z") == datetime(2019, 1, 1, 11, 0)

    @pytest.mark.parametrize("text, expected", [
        ("datetime'2019-02-21T22:46:11.123'", datetime(2019, 2, 21, 22, 46, 11, 123000)),
        ("2019-02-21T22:46:11", datetime(2019, 2, 21, 22, 46, 11)),
        ("2019-02-21T22:46:11.1234567", datetime(2019, 2, 21, 22, 46, 11, 123456)),
        ("2019-02-21T23:46:11.123+01:00", datetime(2019, 2, 21, 22, 46, 11, 123000)),
        ("/Date(1550789171123)/", datetime(2019, 2, 21, 22, 46, 11, 123000)),
    ])
    def test_parse(self, text, expected):
        assert ODataDateFormat().parse(text) == expected

    def test_parse_garbage(self):
        with pytest.raises(ValueError):
            ODataDateFormat().parse("yesterday")

    def test_naive_round_trip(self):
        fmt = ODataDateFormat(timezone(timedelta(hours=2)))
        value = datetime(2020, 6, 30, 8, 15, 0, 500000)
        assert fmt.parse(fmt.format(value)) == value
