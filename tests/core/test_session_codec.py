# tests/core/test_session_codec.py
import json

import pytest

from rapidprompt.core.errors import SourceUnavailable, ValidationFailed
from rapidprompt.core.models import UnitCursor, WorkingSession
from rapidprompt.core.session import (SESSION_VERSION, dumps_session, from_portable, read_session_file,
                                      to_absolute, to_portable, to_relative, validate_session,
                                      write_session_file)
from rapidprompt.core.unit_config import RegexConfig, regex_config


def _state(**overrides):
    values = dict(
        root_path="/home/u/proj",
        instructions="Summarize",
        mode="block",
        selected=["/home/u/proj/src/a.ts", "/home/u/proj/b.md"],
        include_tree=True,
        unit_source="/home/u/proj/data/blocks.txt",
        unit_config=regex_config(r"^ID:\s", r"^ID:\s*(\S+)", "m"),
        cursor=UnitCursor(index=1, id="B-2"),
        token_count=42,
    )
    values.update(overrides)
    return WorkingSession(**values)


def test_paths_are_relative_on_disk():
    wire = json.loads(dumps_session(to_portable(_state())))
    assert wire["version"] == SESSION_VERSION
    assert wire["rootPath"] == "/home/u/proj"
    assert wire["selected"] == ["src/a.ts", "b.md"]
    assert wire["unitSource"] == "data/blocks.txt"
    assert wire["unitConfig"] == {"kind": "regex", "delimiter": r"^ID:\s", "idCapture": r"^ID:\s*(\S+)", "flags": "m"}
    assert wire["cursor"] == {"index": 1, "id": "B-2"}
    assert wire["savedTokenCount"] == 42
    assert wire["includeTree"] is True


def test_round_trip_restores_the_working_state():
    state = _state()
    restored = from_portable(validate_session(dumps_session(to_portable(state))))
    assert restored.root_path == state.root_path
    assert restored.selected == state.selected
    assert restored.unit_source == state.unit_source
    assert restored.unit_config == state.unit_config
    assert restored.cursor == state.cursor
    assert restored.token_count == 42


def test_export_import_export_is_idempotent():
    state = _state(selected=["/home/u/proj/a.py", "/elsewhere/outside.txt"])
    first = dumps_session(to_portable(state))
    second = dumps_session(to_portable(from_portable(validate_session(first))))
    assert first == second


def test_folder_mode_drops_cursor_and_unset_fields():
    wire = to_portable(_state(mode="folder", unit_source=None, unit_config=None, token_count=None)).to_wire()
    assert "cursor" not in wire
    assert "unitSource" not in wire and "unitConfig" not in wire and "savedTokenCount" not in wire


def test_reanchor_at_a_new_root():
    session = to_portable(_state())
    moved = from_portable(session, root="D:\\work\\proj")
    assert moved.root_path == "D:\\work\\proj"
    assert moved.selected == ["D:\\work\\proj\\src\\a.ts", "D:\\work\\proj\\b.md"]


@pytest.mark.parametrize("root, absolute, relative", [
    ("/r", "/r/a/b.txt", "a/b.txt"),
    ("/r/", "/r/a.txt", "a.txt"),
    ("C:\\r", "C:\\r\\x\\y.txt", "x\\y.txt"),
    ("C:\\r", "C:/r/x/y.txt", "x\\y.txt"),
    ("/r", "/other/z.txt", "/other/z.txt"),
])
def test_to_relative(root, absolute, relative):
    assert to_relative(root, absolute) == relative


def test_to_absolute_keeps_absolute_paths():
    assert to_absolute("/r", "/other/z.txt") == "/other/z.txt"
    assert to_absolute("C:\\r", "x/y.txt") == "C:\\r\\x\\y.txt"


def _wire(**overrides):
    wire = json.loads(dumps_session(to_portable(_state())))
    wire.update(overrides)
    return wire


@pytest.mark.parametrize("broken", [
    _wire(version=SESSION_VERSION + 1),
    _wire(version="1"),
    _wire(includeTree="yes"),
    _wire(mode="excel"),
    _wire(selected="a.txt"),
    _wire(extra="field"),
    _wire(savedTokenCount=-1),
    _wire(unitConfig={"kind": "regex"}),
    {k: v for k, v in _wire().items() if k != "instructions"},
])
def test_validate_rejects_the_whole_document(broken):
    with pytest.raises(ValidationFailed):
        validate_session(broken)


def test_validate_rejects_non_json():
    with pytest.raises(ValidationFailed):
        validate_session("{not json")
    with pytest.raises(ValidationFailed):
        validate_session("[1, 2]")


def test_file_round_trip(tmp_path):
    target = tmp_path / "nested" / "work.rag.json"
    write_session_file(target, to_portable(_state()))
    loaded = read_session_file(target)
    assert isinstance(loaded.unit_config, RegexConfig)
    assert loaded.cursor.id == "B-2"


def test_missing_file_is_source_unavailable(tmp_path):
    with pytest.raises(SourceUnavailable):
        read_session_file(tmp_path / "nope.rag.json")
