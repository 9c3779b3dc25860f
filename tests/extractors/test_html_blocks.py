# tests/extractors/test_html_blocks.py
import pytest

from rapidprompt.core.errors import ValidationFailed
from rapidprompt.core.unit_config import html_config
from rapidprompt.extractors.html_blocks import extract_html_units, split_html

PAGE = """
<html><body>
  <div class="item" id="first"><h2 class="code" data-code="C-1">Code one</h2><p class="d">Alpha</p><p class="d">Beta</p></div>
  <div class="item"><h2 class="code">Code two</h2><span>Loose text</span></div>
  <div class="item" id="third"><h2 class="code"></h2></div>
  <div class="item" id="empty"></div>
</body></html>
"""


def test_item_attribute_ids_and_full_text_bodies():
    units = split_html(PAGE, html_config(".item"))
    assert [u.id for u in units] == ["first", "2"]
    assert units[1].body == "Code twoLoose text"


def test_id_selector_prefers_attribute_then_text():
    units = split_html(PAGE, html_config(".item", id_selector=".code", id_attr="data-code", desc_selector=".d"))
    assert [u.id for u in units] == ["C-1", "Code two"]
    assert units[0].body == "Alpha\nBeta"
    # no .d matches: falls back to the item text
    assert units[1].body == "Code twoLoose text"


def test_blank_id_text_uses_position():
    page = '<ul><li><b> </b>text</li></ul>'
    units = split_html(page, html_config("li", id_selector="b"))
    assert units[0].id == "1"


def test_invalid_selector_is_rejected():
    with pytest.raises(ValidationFailed):
        split_html(PAGE, html_config("div[["))


def test_extract_reads_the_file(tmp_path):
    path = tmp_path / "page.html"
    path.write_text(PAGE, encoding="utf-8")
    assert len(extract_html_units(str(path), html_config(".item"))) == 2
