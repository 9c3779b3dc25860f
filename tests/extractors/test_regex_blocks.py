# tests/extractors/test_regex_blocks.py
import pytest

from rapidprompt.core.errors import SourceUnavailable, ValidationFailed
from rapidprompt.core.unit_config import regex_config
from rapidprompt.extractors.regex_blocks import extract_regex_units, split_blocks

SOURCE = "preamble\nID: A-1\nfirst block\n\nID: B-2\nsecond block\n"


def test_splits_at_each_delimiter_and_keeps_the_preamble():
    units = split_blocks(SOURCE, regex_config(r"^ID:\s", r"^ID:\s*(\S+)", "m"))
    assert [u.id for u in units] == ["1", "A-1", "B-2"]
    assert units[1].body == "ID: A-1\nfirst block"
    assert units[2].body == "ID: B-2\nsecond block"


def test_ids_fall_back_to_the_running_count():
    units = split_blocks("ID: x\none\nID: y\ntwo", regex_config(r"^ID:\s", flags="m"))
    assert [u.id for u in units] == ["1", "2"]


def test_no_match_yields_one_unit():
    units = split_blocks("  just text  ", regex_config(r"^ID:\s", flags="m"))
    assert [(u.id, u.body) for u in units] == [("1", "just text")]
    assert split_blocks("   ", regex_config("x")) == []


def test_flags_are_applied():
    text = "id: a\nfoo\nid: b\nbar"
    assert len(split_blocks(text, regex_config(r"^ID:", flags="im"))) == 2
    assert len(split_blocks(text, regex_config(r"^ID:", flags="m"))) == 1


def test_invalid_pattern_is_rejected():
    with pytest.raises(ValidationFailed):
        split_blocks("text", regex_config("(unclosed"))


def test_extract_reads_the_file(tmp_path):
    path = tmp_path / "blocks.txt"
    path.write_text(SOURCE, encoding="utf-8")
    units = extract_regex_units(str(path), regex_config(r"^ID:\s", r"^ID:\s*(\S+)", "m"))
    assert len(units) == 3
    with pytest.raises(SourceUnavailable):
        extract_regex_units(str(tmp_path / "gone.txt"), regex_config("x"))
