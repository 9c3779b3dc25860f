# tests/core/test_workbench.py
import pytest

from rapidprompt.config.schema import AppConfig
from rapidprompt.core.errors import ConfigurationIncomplete, IoDenied, SourceUnavailable, ValidationFailed
from rapidprompt.core.models import ApiTable, FileNode, FileValue, PromptUnit, SheetInfo, TabularInspection
from rapidprompt.core.session import read_session_file, to_portable, validate_session
from rapidprompt.core.sources import LocalSources
from rapidprompt.core.unit_config import api_config, regex_config, spreadsheet_config
from rapidprompt.core.workbench import EXTRACT, RENDER, SCAN, Workbench

ROOT = "/work/proj"


def _tree():
    return FileNode("proj", ROOT, True, [
        FileNode("src", f"{ROOT}/src", True, [FileNode("a.ts", f"{ROOT}/src/a.ts", False)]),
        FileNode("b.md", f"{ROOT}/b.md", False),
    ])


class FakeSources:
    """In-memory stand-in for the filesystem and extraction collaborators."""

    def __init__(self):
        self.tree = _tree()
        self.files = {f"{ROOT}/src/a.ts": "const a = 1;", f"{ROOT}/b.md": "# B"}
        self.units = {"regex": [{"id": "A-1", "body": "ID: A-1\none"}, {"id": "B-2", "body": "ID: B-2\ntwo"}]}
        self.table = ApiTable(columns=["desc", "id"], rows=[{"id": "x", "desc": "a"}, {"id": "y", "desc": "b"},
                                                           {"id": "", "desc": "hello"}])
        self.calls = []

    def scan_directory(self, path):
        self.calls.append(("scan", path))
        return self.tree

    def read_files_as_text(self, paths, max_bytes):
        self.calls.append(("read", tuple(paths)))
        return [FileValue(p, self.files[p]) for p in paths if p in self.files]

    def inspect_tabular_source(self, path):
        self.calls.append(("inspect", path))
        return TabularInspection(path=path, sheets=[SheetInfo("Sheet1", ["SKU", "Name", "Notes"])])

    def extract_units(self, kind, path, config):
        self.calls.append(("extract", kind, path))
        return self.units[kind]

    def fetch_remote_table(self, endpoint, path):
        self.calls.append(("fetch", endpoint, path))
        return self.table


@pytest.fixture
def sources():
    return FakeSources()


@pytest.fixture
def bench(sources):
    wb = Workbench(sources, count=len)
    wb.load_tree(ROOT)
    return wb


def _block_bench(bench, source=f"{ROOT}/data/blocks.txt"):
    bench.set_mode("block")
    bench.set_unit_source(source)
    bench.build_units(regex_config(r"^ID:\s", r"^ID:\s*(\S+)", "m"))
    return bench


def test_folder_document_reads_selected_files(bench):
    bench.set_instructions("Summarize")
    bench.toggle_selection(ROOT, True)
    assert bench.state.selected == [f"{ROOT}/b.md", f"{ROOT}/src/a.ts"]
    doc = bench.render_document()
    assert "### /work/proj/b.md\n```markdown\n# B\n```" in doc
    assert "### /work/proj/src/a.ts\n```ts\nconst a = 1;\n```" in doc
    assert "## File Tree" not in doc


def test_toggle_keeps_existing_order(bench):
    bench.toggle_selection(f"{ROOT}/src/a.ts", True)
    bench.toggle_selection(f"{ROOT}/b.md", True)
    assert bench.state.selected == [f"{ROOT}/src/a.ts", f"{ROOT}/b.md"]
    bench.toggle_selection(f"{ROOT}/src", False)
    assert bench.state.selected == [f"{ROOT}/b.md"]


def test_tree_section_uses_configured_limits(bench):
    bench.set_include_tree(True)
    assert bench.render_document().endswith("```\nproj (/work/proj)/\n├── src/\n│   └── a.ts\n└── b.md\n```\n")


def test_spreadsheet_unit_renders_labeled_list(bench, sources):
    sources.units["spreadsheet"] = [{"id": "7", "body": "Widget"}]
    bench.set_mode("spreadsheet")
    bench.set_unit_source("/data/catalog.xlsx")
    bench.inspect_spreadsheet()
    bench.build_units(spreadsheet_config("Sheet1", "SKU", ["Name", "Notes"]))
    assert bench.units.current == PromptUnit(id="7", body="Widget")
    doc = bench.render_document()
    assert "## Unit\n\n**7**\n\n```\n- **Name:** Widget\n```" in doc
    assert doc.endswith("## Files\n\n_(no files selected)_\n")


def test_api_blank_id_defaults_to_position(bench, sources):
    bench.set_mode("block")
    bench.set_unit_source("/data/page.html")
    bench.build_units(api_config("http://api/extract"))
    assert bench.api_table is sources.table
    assert len(bench.units) == 0
    bench.map_api_units("id", ["desc"])
    assert [u.id for u in bench.units] == ["x", "y", "3"]
    assert bench.state.unit_config.to_wire() == {"kind": "api", "endpoint": "http://api/extract",
                                                 "idColumn": "id", "descriptionColumns": ["desc"]}


def test_api_mapping_before_extraction_is_incomplete(bench):
    with pytest.raises(ConfigurationIncomplete):
        bench.map_api_units("id", ["desc"])


def test_jump_to_missing_id_keeps_cursor(bench):
    _block_bench(bench)
    bench.next()
    assert bench.jump_to_id("NOPE") is None
    assert bench.units.index == 1
    assert bench.jump_to_id(" A-1 ") == 0
    assert bench.state.cursor.id == "A-1"


def test_incomplete_config_makes_no_external_call(bench, sources):
    bench.set_mode("block")
    bench.set_unit_source("/data/blocks.txt")
    sources.calls.clear()
    with pytest.raises(ConfigurationIncomplete):
        bench.build_units(regex_config(""))
    with pytest.raises(ConfigurationIncomplete):
        bench.build_units(spreadsheet_config("Sheet1", "SKU", ["Name"]))
    assert sources.calls == []


def test_stale_extraction_is_dropped(bench):
    bench.set_mode("block")
    bench.set_unit_source("/data/blocks.txt")
    config = regex_config(r"^ID:\s")
    old_ticket, _ = bench.request_units(config)
    new_ticket, _ = bench.request_units(config)
    assert bench.apply_units(new_ticket, config, [{"id": "new", "body": "fresh"}])
    assert not bench.apply_units(old_ticket, config, [{"id": "old", "body": "late"}])
    assert [u.id for u in bench.units] == ["new"]


def test_stale_tree_is_dropped(bench, sources):
    old = bench.request_tree()
    bench.request_tree()
    assert not bench.apply_tree(old, "/elsewhere", FileNode("x", "/elsewhere", True, []))
    assert bench.state.root_path == ROOT


def test_malformed_extraction_leaves_units_untouched(bench):
    _block_bench(bench)
    before = bench.units
    ticket, _ = bench.request_units(regex_config("x"))
    with pytest.raises(ValidationFailed):
        bench.apply_units(ticket, regex_config("x"), [{"id": 1}])
    assert bench.units is before


def test_failed_scan_keeps_previous_tree(bench, mocker, sources):
    mocker.patch.object(sources, "scan_directory", side_effect=SourceUnavailable("gone"))
    tree = bench.tree
    with pytest.raises(SourceUnavailable):
        bench.load_tree("/missing")
    assert bench.tree is tree and bench.state.root_path == ROOT


def test_recompute_failure_keeps_last_count(bench, sources, mocker):
    bench.toggle_selection(f"{ROOT}/b.md", True)
    good = bench.recompute_tokens()
    assert good == len(bench.render_document())
    mocker.patch.object(sources, "read_files_as_text", side_effect=SourceUnavailable("locked"))
    assert bench.recompute_tokens() == good
    assert bench.state.token_count == good


def test_stale_token_count_is_ignored(bench):
    old = bench.begin(RENDER)
    bench.begin(RENDER)
    assert not bench.apply_token_count(old, 999)
    assert bench.state.token_count is None


def test_copy_counts_the_exact_string(bench):
    copied = []
    text = bench.copy_document(copied.append)
    assert copied == [text]
    assert bench.state.token_count == len(text)


def test_copy_failure_is_io_denied(bench):
    def broken(text):
        raise OSError("clipboard locked")
    with pytest.raises(IoDenied):
        bench.copy_document(broken)
    assert bench.state.token_count is None


def test_session_export_needs_a_root(sources):
    with pytest.raises(ConfigurationIncomplete):
        Workbench(sources, count=len).snapshot()


def test_session_round_trip_restores_units_and_cursor(bench, sources, tmp_path):
    _block_bench(bench, f"{ROOT}/data/blocks.txt")
    bench.set_instructions("Review")
    bench.toggle_selection(f"{ROOT}/b.md", True)
    bench.next()
    path = bench.export_session(tmp_path / "s.rag.json")

    fresh = Workbench(sources, count=len)
    fresh.set_system_instructions("keep me")
    state = fresh.import_session(path)
    assert state.mode == "block"
    assert state.selected == [f"{ROOT}/b.md"]
    assert fresh.units.index == 1 and fresh.units.current.id == "B-2"
    assert state.system_instructions == "keep me"
    assert state.instructions == "Review"
    assert "**B-2**" in fresh.render_document()
    assert to_portable(fresh.state).selected == to_portable(bench.state).selected == ["b.md"]


def test_session_restore_follows_the_saved_id(bench, sources, tmp_path):
    _block_bench(bench)
    bench.next()
    path = bench.export_session(tmp_path / "s.rag.json")
    sources.units["regex"] = [{"id": "B-2", "body": "moved"}, {"id": "A-1", "body": "x"}, {"id": "C", "body": "y"}]
    fresh = Workbench(sources, count=len)
    fresh.import_session(path)
    assert fresh.units.index == 0 and fresh.units.current.id == "B-2"


def test_session_restore_drops_vanished_selections(bench, sources, tmp_path):
    bench.toggle_selection(ROOT, True)
    path = bench.export_session(tmp_path / "s.rag.json")
    sources.tree = FileNode("proj", ROOT, True, [FileNode("b.md", f"{ROOT}/b.md", False)])
    fresh = Workbench(sources, count=len)
    assert fresh.import_session(path).selected == [f"{ROOT}/b.md"]


def test_session_restore_replays_api_two_phase(bench, sources, tmp_path):
    bench.set_mode("block")
    bench.set_unit_source(f"{ROOT}/page.html")
    bench.build_units(api_config("http://api/extract"))
    bench.map_api_units("id", ["desc"])
    path = bench.export_session(tmp_path / "s.rag.json")
    fresh = Workbench(sources, count=len)
    fresh.import_session(path)
    assert [u.id for u in fresh.units] == ["x", "y", "3"]
    assert ("fetch", "http://api/extract", f"{ROOT}/page.html") in sources.calls


def test_failed_session_restore_changes_nothing(bench, sources, tmp_path, mocker):
    _block_bench(bench)
    path = bench.export_session(tmp_path / "s.rag.json")
    fresh = Workbench(sources, count=len)
    fresh.load_tree(ROOT)
    mocker.patch.object(sources, "extract_units", side_effect=SourceUnavailable("gone"))
    with pytest.raises(SourceUnavailable):
        fresh.import_session(path)
    assert fresh.state.mode == "folder"
    assert len(fresh.units) == 0


@pytest.mark.parametrize("mode, unit_config", [
    ("block", {"kind": "regex", "delimiter": ""}),
    ("block", {"kind": "html", "itemSelector": "  "}),
    ("spreadsheet", {"kind": "spreadsheet", "sheet": "", "idColumn": "SKU", "descriptionColumns": ["Name"]}),
    ("spreadsheet", {"kind": "spreadsheet", "sheet": "Sheet1", "idColumn": "SKU", "descriptionColumns": []}),
])
def test_incomplete_saved_config_is_rejected_before_any_call(sources, mode, unit_config):
    session = validate_session({"version": 1, "rootPath": ROOT, "instructions": "", "selected": [],
                                "includeTree": False, "mode": mode, "unitSource": "data/blocks.txt",
                                "unitConfig": unit_config})
    fresh = Workbench(sources, count=len)
    with pytest.raises(ConfigurationIncomplete):
        fresh.restore_session(session)
    assert sources.calls == []
    assert fresh.state.mode == "folder"


def test_restore_steps_drop_superseded_results(bench, sources, tmp_path):
    _block_bench(bench)
    session = read_session_file(bench.export_session(tmp_path / "s.rag.json"))
    fresh = Workbench(sources, count=len)
    plan = fresh.request_restore(session)
    fetched = fresh.fetch_restore(plan)
    fresh.begin(EXTRACT)
    assert fresh.apply_restore(plan, fetched) is False
    assert fresh.state.mode == "folder"

    plan = fresh.request_restore(session)
    assert fresh.apply_restore(plan, fresh.fetch_restore(plan)) is True
    assert [u.id for u in fresh.units] == ["A-1", "B-2"]


def test_import_rejects_invalid_session(sources, tmp_path):
    bad = tmp_path / "bad.rag.json"
    bad.write_text('{"version": 99}', encoding="utf-8")
    with pytest.raises(ValidationFailed):
        Workbench(sources, count=len).import_session(bad)


def test_save_current_chunk_uses_unit_id(bench, tmp_path):
    _block_bench(bench)
    saved = bench.save_current_chunk(tmp_path)
    assert saved.name == "A-1.md"
    assert saved.read_text(encoding="utf-8") == bench.render_document()


def test_mode_switch_between_unit_modes_clears_units(bench):
    _block_bench(bench)
    bench.set_mode("folder")
    assert len(bench.units) == 2
    bench.set_mode("block")
    bench.set_mode("spreadsheet")
    assert len(bench.units) == 0 and bench.state.unit_source is None
    with pytest.raises(ValidationFailed):
        bench.set_mode("excel")


def test_tickets_are_per_category(bench):
    scan = bench.begin(SCAN)
    bench.begin(EXTRACT)
    assert bench.is_current(SCAN, scan)


def test_regex_blocks_end_to_end_with_local_sources(tmp_path):
    (tmp_path / "blocks.txt").write_text("ID: one\nfirst\nID: two\nsecond\n", encoding="utf-8")
    bench = Workbench(LocalSources(), count=len)
    bench.load_tree(str(tmp_path))
    bench.set_mode("block")
    bench.set_unit_source(str(tmp_path / "blocks.txt"))
    bench.build_units(regex_config(r"^ID:\s", r"^ID:\s*(\S+)", "m"))
    assert [u.id for u in bench.units] == ["one", "two"]
    bench.next()
    assert bench.jump_to_id("three") is None
    assert bench.units.index == 1
    assert "**two**\n\n```\nID: two\nsecond\n```" in bench.render_document()


def test_suggested_configs_come_from_app_config(sources):
    bench = Workbench(sources, AppConfig(default_regex_delimiter="^== ", default_regex_flags="mi"), count=len)
    regex = bench.suggested_config("regex")
    assert (regex.delimiter, regex.id_capture, regex.flags) == ("^== ", r"^ID:\s*(\S+)", "mi")
    html = bench.suggested_config("html")
    assert html.to_wire() == {"kind": "html", "itemSelector": ".item", "idAttr": "id"}
    with pytest.raises(ValidationFailed):
        bench.suggested_config("api")


def test_suggested_regex_config_splits_id_blocks(tmp_path):
    (tmp_path / "notes.txt").write_text("ID: n1\nalpha\nID: n2\nbeta\n", encoding="utf-8")
    bench = Workbench(LocalSources(), count=len)
    bench.load_tree(str(tmp_path))
    bench.set_mode("block")
    bench.set_unit_source(str(tmp_path / "notes.txt"))
    bench.build_units(bench.suggested_config("regex"))
    assert [u.id for u in bench.units] == ["n1", "n2"]
