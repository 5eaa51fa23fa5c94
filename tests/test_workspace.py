"""
Workspace Tests — WorkspaceLoader and the FastMCP tool layer.

Validates that:
  1. .js/.html files are discovered, dependency directories skipped
  2. parse failures, binary and oversized files are recorded, not fatal
  3. cross-file renames work on the loaded mock project
  4. every MCP tool returns a readable report (and "Error: ..." on failure)
  5. apply_rename leaves files untouched in dry-run mode and updates
     inline buffers otherwise
"""

import os
import sys
import shutil
import tempfile
import unittest
from unittest import mock

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

MOCK_PROJECT = os.path.join(PROJECT_ROOT, "tests", "mock_project")

from jsrename.workspace import WorkspaceLoader
import fastmcp_server as server


def read(rel_path):
    with open(os.path.join(MOCK_PROJECT, rel_path), "r", encoding="utf-8", newline="") as f:
        return f.read()


class TestWorkspaceLoader(unittest.TestCase):
    """Loading the mock project."""

    @classmethod
    def setUpClass(cls):
        cls.loader = WorkspaceLoader(MOCK_PROJECT)
        cls.buffer = cls.loader.load()

    def test_summary(self):
        summary = self.loader.get_summary()
        self.assertEqual(summary["files_loaded"], 3)
        self.assertEqual(summary["js_files"], 2)
        self.assertEqual(summary["html_files"], 1)
        self.assertEqual(summary["parse_errors"], 1)
        self.assertEqual(summary["skipped"], 0)
        # util.js, app.js, and event + href + inline script from index.html
        self.assertEqual(summary["programs"], 5)

    def test_loaded_files_are_relative(self):
        self.assertEqual(self.loader.loaded, ["index.html", "js/app.js", "js/util.js"])
        self.assertEqual(sorted(self.buffer.files), ["index.html", "js/app.js", "js/util.js"])

    def test_dependency_directories_skipped(self):
        self.assertFalse(any(f.startswith("node_modules") for f in self.buffer.files))

    def test_parse_error_recorded(self):
        self.assertIn("broken.js", self.loader.errors)
        self.assertIn("broken.js:", self.loader.errors["broken.js"])

    def test_html_fragments(self):
        kinds = [f.kind for f in self.buffer.fragments("index.html")]
        self.assertEqual(kinds, ["extern", "extern", "event", "href", "script"])

    def test_property_groups_across_files(self):
        util = read("js/util.js")
        groups = self.buffer.rename_token_at("js/util.js", util.index("counter"))
        self.assertEqual(len(groups), 2)
        self.assertEqual([r.file for r in groups[0]], ["js/util.js"] * 3)
        self.assertEqual([r.file for r in groups[1]], ["js/app.js"] * 2)

    def test_global_function_across_html_and_js(self):
        util = read("js/util.js")
        groups = self.buffer.rename_token_at("js/util.js", util.index("format"))
        self.assertEqual(len(groups), 1)
        files = [r.file for r in groups[0]]
        self.assertEqual(files, ["js/util.js", "index.html", "index.html", "js/app.js", "js/app.js"])
        html = read("index.html")
        for r in groups[0]:
            text = html if r.file == "index.html" else read(r.file)
            self.assertEqual(text[r.start.offset:r.end.offset], "format")

    def test_missing_root(self):
        with self.assertRaises(FileNotFoundError):
            WorkspaceLoader(os.path.join(MOCK_PROJECT, "does-not-exist")).load()


class TestLoaderFiltering(unittest.TestCase):
    """Binary and oversized files in a scratch workspace."""

    def setUp(self):
        self.root = tempfile.mkdtemp()
        files = {
            "ok.js": b"var ok = 1;\n",
            "blob.js": b"\x00\x01\x02binary",
            "big.js": b"var big = 1;\n" * 10,
            "notes.txt": b"not a script",
        }
        for name, data in files.items():
            with open(os.path.join(self.root, name), "wb") as f:
                f.write(data)

    def tearDown(self):
        shutil.rmtree(self.root)

    def test_binary_and_oversized_are_skipped(self):
        with mock.patch("jsrename.workspace.MAX_FILE_BYTES", 64):
            loader = WorkspaceLoader(self.root, global_id="scratch")
            buffer = loader.load()
        self.assertEqual(loader.loaded, ["ok.js"])
        self.assertEqual(sorted(loader.skipped), ["big.js", "blob.js"])
        self.assertEqual(buffer.programs[0].global_id, "scratch")

    def test_deeply_nested_file_does_not_stop_loading(self):
        with open(os.path.join(self.root, "deep.js"), "w", encoding="utf-8") as f:
            f.write("var a = " + "[" * 3000 + "]" * 3000 + ";\n")
        loader = WorkspaceLoader(self.root)
        loader.load()
        self.assertIn("deep.js", loader.errors)
        self.assertIn("ok.js", loader.loaded)

    def test_custom_extensions(self):
        loader = WorkspaceLoader(self.root, extensions={".txt": "js"})
        loader.load()
        # "not a script" is not valid JavaScript; the failure is recorded
        self.assertEqual(list(loader.errors), ["notes.txt"])
        self.assertEqual(loader.loaded, [])


class TestMcpTools(unittest.TestCase):
    """The FastMCP tool functions, called directly."""

    def setUp(self):
        server.clear_buffer()
        server.workspace_root = None

    def tearDown(self):
        server.clear_buffer()
        server.workspace_root = None

    def test_load_workspace(self):
        result = server.load_workspace(MOCK_PROJECT)
        self.assertIn("Successfully loaded workspace", result)
        self.assertIn("3 files (2 .js, 1 .html), 5 programs", result)
        self.assertIn("broken.js", result)

    def test_load_workspace_missing(self):
        result = server.load_workspace(os.path.join(MOCK_PROJECT, "nope"))
        self.assertTrue(result.startswith("Error"))

    def test_classify_token(self):
        server.load_workspace(MOCK_PROJECT)
        result = server.classify_token("js/util.js", 9, 10)
        self.assertIn("global variable", result)
        self.assertIn("may affect other files", result)
        result = server.classify_token("js/util.js", 10, 18)
        self.assertIn("local variable", result)
        result = server.classify_token("js/util.js", 8, 1)
        self.assertIn("No renameable identifier", result)

    def test_classify_unknown_file(self):
        self.assertTrue(server.classify_token("missing.js", 1, 1).startswith("Error"))

    def test_rename_token(self):
        server.load_workspace(MOCK_PROJECT)
        result = server.rename_token("js/util.js", 2, 5)
        self.assertIn("Rename `counter`", result)
        self.assertIn("2 group(s), 5 occurrence(s)", result)
        self.assertIn("Group 0 (contains the selected token)", result)
        self.assertIn("`js/app.js:12:14`", result)

    def test_rename_property(self):
        server.load_workspace(MOCK_PROJECT)
        result = server.rename_property("counter")
        self.assertIn("2 group(s), 5 occurrence(s)", result)
        self.assertIn("No property", server.rename_property("missing"))

    def test_list_fragments(self):
        server.load_workspace(MOCK_PROJECT)
        result = server.list_fragments("index.html")
        for kind in ("extern", "event", "href", "script"):
            self.assertIn(f"| {kind} |", result)
        self.assertIn("`render([total])`", result)
        self.assertIn("No JavaScript fragments", server.list_fragments("js/app.js"))
        self.assertTrue(server.list_fragments("absent.html").startswith("Error"))

    def test_apply_rename_dry_run_leaves_files(self):
        before = {name: read(name) for name in ("index.html", "js/app.js", "js/util.js")}
        server.load_workspace(MOCK_PROJECT)
        result = server.apply_rename("js/util.js", 9, 10, "formatValue", dry_run=True)
        self.assertIn("(dry run)", result)
        self.assertIn("`index.html`: 2 occurrence(s) on disk", result)
        self.assertIn("`js/app.js`: 2 occurrence(s) on disk", result)
        self.assertIn("`js/util.js`: 1 occurrence(s) on disk", result)
        for name, text in before.items():
            self.assertEqual(read(name), text)
        self.assertEqual(server.buffer.source("js/util.js"), before["js/util.js"])

    def test_add_source_and_apply_in_buffer(self):
        result = server.add_source("inline.js", "var a = 1;\na++;")
        self.assertIn("Added `inline.js` as js: 1 program(s)", result)
        result = server.apply_rename("inline.js", 2, 1, "b")
        self.assertIn("2 occurrence(s) in buffer", result)
        self.assertIn("Renamed token now at `inline.js:2:1`", result)
        self.assertEqual(server.buffer.source("inline.js"), "var b = 1;\nb++;")

    def test_apply_rename_partial_accept(self):
        text = "var a = {p:1}; var b = {p:2}; a.p; b.p;"
        server.add_source("objs.js", text)
        server.apply_rename("objs.js", 1, text.index("a.p") + 3, "q", accept="0")
        self.assertEqual(server.buffer.source("objs.js"), "var a = {q:1}; var b = {p:2}; a.q; b.p;")

    def test_apply_rename_keeps_shorthand_property(self):
        server.add_source("short.js", "var x = 1; var o = {x}; o.x;")
        result = server.apply_rename("short.js", 1, 5, "y")
        self.assertIn("2 occurrence(s) in buffer", result)
        self.assertEqual(server.buffer.source("short.js"), "var y = 1; var o = {x: y}; o.x;")

    def test_add_source_html(self):
        result = server.add_source("page.html", "<script>var x;</script><b onclick='x()'>x</b>")
        self.assertIn("as html: 2 program(s)", result)

    def test_add_source_errors(self):
        self.assertIn("Error", server.add_source("bad.js", "var = ;"))
        self.assertIn("Unrecognised type", server.add_source("s.css", "a {}", source_type="css"))
        self.assertIn("Error: File not found", server.add_source("not_there.js"))

    def test_add_source_from_disk(self):
        server.load_workspace(MOCK_PROJECT)
        result = server.add_source("js/util.js")
        self.assertIn("Added `js/util.js` as js", result)

    def test_apply_rename_errors(self):
        server.add_source("inline.js", "var a = 1;")
        self.assertIn("Not a valid JavaScript identifier", server.apply_rename("inline.js", 1, 5, "for"))
        self.assertIn("accept must be", server.apply_rename("inline.js", 1, 5, "b", accept="x"))
        self.assertIn("No renameable identifier", server.apply_rename("inline.js", 1, 1, "b"))

    def test_clear_buffer(self):
        server.add_source("inline.js", "var a = 1;")
        self.assertEqual(server.clear_buffer(), "Cleared 1 file(s) from the buffer.")
        self.assertEqual(server.buffer.files, [])


if __name__ == "__main__":
    unittest.main()
