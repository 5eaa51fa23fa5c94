"""
Rename Applier tests — splicing accepted rename groups into text and files.
"""

import os
import sys
import shutil
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from jsrename import JavaScriptBuffer, RenameError
from jsrename.rename_applier import RenameApplier, is_valid_identifier, select_ranges


def groups_for(text, offset, file="test.js"):
    buf = JavaScriptBuffer()
    buf.add(file, text)
    return buf.rename_token_at(file, offset)


class TestIdentifierValidation(unittest.TestCase):

    def test_valid_names(self):
        for name in ("total", "_private", "$el", "a1", "ünïcode", "$"):
            self.assertTrue(is_valid_identifier(name), name)

    def test_invalid_names(self):
        for name in ("", "1abc", "with-dash", "has space", "return", "class", "a.b"):
            self.assertFalse(is_valid_identifier(name), name)

    def test_applier_rejects_invalid_name(self):
        with self.assertRaises(RenameError):
            RenameApplier("var")


class TestSelectRanges(unittest.TestCase):

    def setUp(self):
        text = "var a = {p:1}; var b = {p:2}; a.p; b.p;"
        self.groups = groups_for(text, text.index("a.p") + 2)

    def test_all_groups_by_default(self):
        self.assertEqual(len(select_ranges(self.groups)), 4)

    def test_first_group_always_included(self):
        ranges = select_ranges(self.groups, accepted=[])
        self.assertEqual(ranges, self.groups[0])

    def test_explicit_groups(self):
        ranges = select_ranges(self.groups, accepted=[1])
        self.assertEqual(len(ranges), 4)


class TestApplyToText(unittest.TestCase):

    def test_renames_every_range(self):
        text = "var count = 0;\nfunction inc() { count++; return count; }"
        groups = groups_for(text, 4)
        result = RenameApplier("total").apply_to_text(text, select_ranges(groups))
        self.assertEqual(result.text, "var total = 0;\nfunction inc() { total++; return total; }")
        self.assertEqual(result.applied, 3)
        self.assertEqual(result.skipped, [])

    def test_rejected_group_is_left_alone(self):
        text = "var a = {p:1}; var b = {p:2}; a.p; b.p;"
        groups = groups_for(text, text.index("a.p") + 2)
        result = RenameApplier("q").apply_to_text(text, select_ranges(groups, accepted=[]))
        self.assertEqual(result.text, "var a = {q:1}; var b = {p:2}; a.q; b.p;")

    def test_string_key_keeps_quotes(self):
        text = "var o = {'name': 1}; o.name;"
        groups = groups_for(text, text.index("o.name") + 2)
        result = RenameApplier("title").apply_to_text(text, select_ranges(groups))
        self.assertEqual(result.text, "var o = {'title': 1}; o.title;")

    def test_overlapping_ranges_are_skipped(self):
        text = "var abc = abc;"
        ranges = groups_for(text, 4)[0]
        overlapping = ranges[0].model_copy(update={"end": ranges[1].end})
        result = RenameApplier("x").apply_to_text(text, [ranges[1], overlapping])
        self.assertEqual(result.applied, 1)
        self.assertEqual(len(result.skipped), 1)
        self.assertEqual(result.text, "var abc = x;")

    def test_selection_follows_earlier_edits(self):
        text = "var n = 1;\nn = n + 1;"
        groups = groups_for(text, text.rindex("n"))
        anchor = groups[0][0]
        self.assertEqual(anchor.start.offset, text.rindex("n"))
        result = RenameApplier("value").apply_to_text(text, select_ranges(groups), anchor=anchor)
        self.assertEqual(result.text, "var value = 1;\nvalue = value + 1;")
        self.assertEqual(result.selection.offset, result.text.rindex("value"))
        self.assertEqual(result.selection.line, 1)
        self.assertEqual(result.selection.column, len("value = "))


class TestShorthandProperties(unittest.TestCase):
    """``{x}`` names both a property and a variable; only one side is renamed."""

    TEXT = "var x = 1; var o = {x}; o.x;"

    def test_variable_rename_spells_out_the_property(self):
        groups = groups_for(self.TEXT, 4)
        result = RenameApplier("y").apply_to_text(self.TEXT, select_ranges(groups))
        self.assertEqual(result.text, "var y = 1; var o = {x: y}; o.x;")

    def test_property_rename_keeps_the_variable(self):
        query = self.TEXT.index("o.x") + 2
        groups = groups_for(self.TEXT, query)
        result = RenameApplier("y").apply_to_text(self.TEXT, select_ranges(groups), anchor=groups[0][0])
        self.assertEqual(result.text, "var x = 1; var o = {y: x}; o.y;")
        self.assertEqual(result.selection.offset, result.text.rindex("y"))
        self.assertEqual(result.selection.column, result.text.rindex("y"))

    def test_renamed_shorthand_value_is_the_selection(self):
        text = "function f(x) { return {x}; }"
        offset = text.index("x}")
        groups = groups_for(text, text.index("x)"))
        value = next(r for r in groups[0] if r.start.offset == offset)
        self.assertEqual(value.shorthand, "value")
        result = RenameApplier("n").apply_to_text(text, select_ranges(groups), anchor=value)
        self.assertEqual(result.text, "function f(n) { return {x: n}; }")
        self.assertEqual(result.selection.offset, result.text.index("n}"))

    def test_both_sides_renamed_together(self):
        groups = groups_for(self.TEXT, 4)
        value = next(r for r in groups[0] if r.shorthand == "value")
        key = value.model_copy(update={"shorthand": "key"})
        result = RenameApplier("y").apply_to_text(self.TEXT, [value, key])
        self.assertEqual(result.text, "var x = 1; var o = {y}; o.x;")
        self.assertEqual(result.applied, 1)
        self.assertEqual(result.skipped, [])


class TestApplyToFiles(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.lib = "function helper() {}\r\n"
        self.app = "helper();\nhelper();\n"
        for name, text in (("lib.js", self.lib), ("app.js", self.app)):
            with open(os.path.join(self.root, name), "w", encoding="utf-8", newline="") as f:
                f.write(text)
        buf = JavaScriptBuffer()
        buf.add("lib.js", self.lib)
        buf.add("app.js", self.app)
        self.groups = buf.rename_token_at("lib.js", self.lib.index("helper"))

    def tearDown(self):
        shutil.rmtree(self.root)

    def _read(self, name):
        with open(os.path.join(self.root, name), "r", encoding="utf-8", newline="") as f:
            return f.read()

    def test_rewrites_each_file(self):
        summary = RenameApplier("assist").apply_to_files(self.groups, root=self.root)
        self.assertEqual(summary, {"lib.js": 1, "app.js": 2})
        self.assertEqual(self._read("lib.js"), "function assist() {}\r\n")
        self.assertEqual(self._read("app.js"), "assist();\nassist();\n")

    def test_dry_run_changes_nothing(self):
        summary = RenameApplier("assist").apply_to_files(self.groups, root=self.root, dry_run=True)
        self.assertEqual(summary, {"lib.js": 1, "app.js": 2})
        self.assertEqual(self._read("lib.js"), self.lib)
        self.assertEqual(self._read("app.js"), self.app)

    def test_missing_file_is_reported(self):
        os.remove(os.path.join(self.root, "app.js"))
        summary = RenameApplier("assist").apply_to_files(self.groups, root=self.root)
        self.assertEqual(summary["app.js"], 0)
        self.assertEqual(summary["lib.js"], 1)

    def test_single_file_tracks_selection(self):
        ranges = [r for r in self.groups[0] if r.file == "app.js"]
        path = os.path.join(self.root, "app.js")
        result = RenameApplier("assist").apply_to_file(path, ranges, anchor=ranges[1])
        self.assertEqual(result.applied, 2)
        self.assertEqual(result.selection.line, 1)
        self.assertEqual(result.selection.column, 0)
        self.assertEqual(self._read("app.js"), "assist();\nassist();\n")


if __name__ == "__main__":
    unittest.main()
