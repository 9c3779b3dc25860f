# tests/core/test_unit_config.py
import pytest

from rapidprompt.core.errors import ConfigurationIncomplete, ValidationFailed
from rapidprompt.core.models import ApiTable
from rapidprompt.core.unit_config import (ApiConfig, HtmlConfig, RegexConfig, api_config, build_api_units,
                                          html_config, parse_unit_config, regex_config, require_api_mapping,
                                          require_complete, spreadsheet_config)


def test_builders_omit_blank_refinements():
    assert regex_config(r"^ID:\s", id_capture="", flags="").to_wire() == {"kind": "regex", "delimiter": r"^ID:\s"}
    assert html_config(".item", id_selector=" ", desc_selector=".d").to_wire() == {
        "kind": "html", "itemSelector": ".item", "descSelector": ".d"}
    assert api_config("http://x/api").to_wire() == {"kind": "api", "endpoint": "http://x/api"}


def test_spreadsheet_wire_keys_are_camel_case():
    wire = spreadsheet_config("Sheet1", "SKU", ["Name", "Notes"]).to_wire()
    assert wire == {"kind": "spreadsheet", "sheet": "Sheet1", "idColumn": "SKU", "descriptionColumns": ["Name", "Notes"]}


def test_parse_unit_config_picks_the_variant():
    config = parse_unit_config({"kind": "regex", "delimiter": "^#", "flags": "m"})
    assert isinstance(config, RegexConfig)
    assert config.flags == "m"
    assert isinstance(parse_unit_config({"kind": "html", "itemSelector": "li"}), HtmlConfig)


@pytest.mark.parametrize("raw", [
    {"kind": "excel", "sheet": "S"},
    {"kind": "regex"},
    {"kind": "regex", "delimiter": "x", "surprise": True},
    {"kind": "api", "endpoint": 5},
])
def test_parse_unit_config_rejects_bad_shapes(raw):
    with pytest.raises(ValidationFailed):
        parse_unit_config(raw)


@pytest.mark.parametrize("config, message", [
    (spreadsheet_config("Sheet1", "SKU", []), "Select sheet, ID and Description columns."),
    (spreadsheet_config("", "SKU", ["Name"]), "Select sheet, ID and Description columns."),
    (regex_config("  "), "Enter a delimiter pattern."),
    (html_config(""), "Enter an item selector."),
    (api_config(""), "Enter API endpoint."),
])
def test_require_complete_reports_missing_fields(config, message):
    with pytest.raises(ConfigurationIncomplete) as excinfo:
        require_complete(config, "/data/source.txt")
    assert excinfo.value.message == message


def test_require_complete_needs_a_source():
    with pytest.raises(ConfigurationIncomplete):
        require_complete(regex_config("^#"), None)


def test_api_mapping_required_for_phase_two():
    with pytest.raises(ConfigurationIncomplete):
        require_api_mapping(api_config("http://x", id_column="id"))
    assert api_config("http://x", "id", ["desc"]).has_mapping


def test_api_blank_id_defaults_to_row_number():
    table = ApiTable(columns=["id", "desc"], rows=[
        {"id": "a", "desc": "first"},
        {"id": "b", "desc": "  "},
        {"id": "", "desc": "hello"},
    ])
    units = build_api_units(table, ApiConfig(endpoint="http://x", id_column="id", description_columns=["desc"]))
    assert [(u.id, u.body) for u in units] == [("a", "first"), ("3", "hello")]
    assert all(u.meta is None for u in units)


def test_api_body_joins_columns_in_configured_order():
    table = ApiTable(columns=["code", "a", "b"], rows=[{"code": " X1 ", "a": "alpha", "b": "beta"}])
    units = build_api_units(table, api_config("http://x", "code", ["b", "a"]))
    assert units[0].id == "X1"
    assert units[0].body == "beta\nalpha"
