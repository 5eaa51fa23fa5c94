"""
Type Inference tests — union-find and shape inference.

Validates that:
  1. TypeUnifier merges by rank, compresses paths and defers property merges
  2. namespace flags survive merges
  3. object literals, arrays, logical operators and IIFEs unify as expected
  4. method receivers are saturated with their owners, except on namespaces
  5. each globalId gets its own global object, aliased by window/self/this
  6. repeated runs partition the same way
"""

import os
import sys
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from jsrename.errors import InvariantViolation
from jsrename.identifiers import PROPERTY, VARIABLE, classify_id
from jsrename.js_ast import (
    FunctionExpression, Identifier, MemberExpression, ProgramCollection,
    ThisExpression, prepare, walk,
)
from jsrename.js_parser import parse_script
from jsrename.type_inference import RETURN, THIS, TypeUnifier, infer_types


def collect(*sources, global_id="default"):
    collection = ProgramCollection()
    for i, text in enumerate(sources):
        program = parse_script(text)
        program.file = f"file{i}.js"
        program.global_id = global_id
        program.offset.end = len(text)
        collection.add(prepare(program))
    return collection


def infer(*sources):
    collection = collect(*sources)
    infer_types(collection)
    return collection


def idents(collection, name):
    return [n for p in collection for n in walk(p) if isinstance(n, Identifier) and n.name == name]


def rep(node):
    return node.type_node.rep()


def member(collection, obj, prop):
    for p in collection:
        for n in walk(p):
            if (isinstance(n, MemberExpression) and isinstance(n.object, Identifier)
                    and n.object.name == obj and getattr(n.property, "name", None) == prop):
                return n
    raise AssertionError(f"{obj}.{prop} not found")


class TestTypeUnifier(unittest.TestCase):

    def setUp(self):
        self.unifier = TypeUnifier()

    def test_ids_are_per_run(self):
        ids = [self.unifier.new_node().id for _ in range(3)]
        self.assertEqual(ids, [1, 2, 3])
        self.assertEqual(TypeUnifier().new_node().id, 1)
        self.assertEqual(self.unifier.created, 3)

    def test_fresh_node_is_own_rep(self):
        node = self.unifier.new_node()
        self.assertIs(node.rep(), node)

    def test_unify_makes_common_rep(self):
        a, b = self.unifier.new_node(), self.unifier.new_node()
        self.unifier.unify(a, b)
        self.assertIs(a.rep(), b.rep())
        self.assertEqual(self.unifier.merges, 1)

    def test_unify_same_class_is_noop(self):
        a, b = self.unifier.new_node(), self.unifier.new_node()
        self.unifier.unify(a, b)
        self.unifier.unify(b, a)
        self.assertEqual(self.unifier.merges, 1)

    def test_path_compression(self):
        n1, n2, n3, n4 = (self.unifier.new_node() for _ in range(4))
        self.unifier.unify(n1, n2)
        self.unifier.unify(n3, n4)
        self.unifier.unify(n1, n3)
        root = n4.rep()
        self.assertIs(root, n1)
        self.assertIs(n4.parent, root)

    def test_get_property_is_stable(self):
        node = self.unifier.new_node()
        self.assertIs(node.get_property("x"), node.get_property("x"))
        self.assertIsNot(node.get_property("x"), node.get_property("y"))

    def test_get_property_rejects_non_strings(self):
        node = self.unifier.new_node()
        with self.assertRaises(InvariantViolation):
            node.get_property(3)

    def test_property_merge_is_deferred(self):
        a, b = self.unifier.new_node(), self.unifier.new_node()
        ax, bx = a.get_property("x"), b.get_property("x")
        self.unifier.unify(a, b)
        self.assertIsNot(ax.rep(), bx.rep())
        self.assertEqual(self.unifier.deferred, 1)
        self.unifier.complete()
        self.assertIs(ax.rep(), bx.rep())

    def test_disjoint_properties_move_to_winner(self):
        a, b = self.unifier.new_node(), self.unifier.new_node()
        by = b.get_property("y")
        self.unifier.unify(a, b)
        winner = a.rep()
        loser = b if winner is a else a
        self.assertIs(winner.get_property("y"), by.rep())
        self.assertEqual(loser.properties, {})

    def test_deferred_merges_cascade(self):
        a, b = self.unifier.new_node(), self.unifier.new_node()
        axz = a.get_property("x").get_property("z")
        bxz = b.get_property("x").get_property("z")
        self.unifier.unify(a, b)
        self.unifier.complete()
        self.assertIs(axz.rep(), bxz.rep())

    def test_namespace_survives_merge(self):
        a, b = self.unifier.new_node(), self.unifier.new_node()
        b.namespace = True
        self.unifier.unify(a, b)
        self.assertTrue(a.rep().namespace)


class TestExpressions(unittest.TestCase):

    def test_variable_and_object_literal(self):
        c = infer("var o = { p: 1 }; o.p;")
        obj = c.programs[0].body[0].declarations[0].init
        self.assertIs(rep(idents(c, "o")[1]), obj.type_node.rep())

    def test_distinct_literals_stay_apart(self):
        c = infer("var a = { p: 1 }; var b = { p: 2 };")
        a, b = idents(c, "a")[0], idents(c, "b")[0]
        self.assertIsNot(rep(a), rep(b))

    def test_assignment_chains(self):
        c = infer("var a = {}; var b; b = a; var d = b;")
        self.assertIs(rep(idents(c, "a")[0]), rep(idents(c, "d")[0]))

    def test_primitive_results_are_not_unified(self):
        c = infer("var a = {}; var n = a + 1; var s = `${a}`;")
        a = rep(idents(c, "a")[0])
        self.assertIsNot(a, rep(idents(c, "n")[0]))
        self.assertIsNot(a, rep(idents(c, "s")[0]))

    def test_logical_or_unifies_both_sides(self):
        c = infer("var a = {}; var b = {}; var c = a || b;")
        self.assertIs(rep(idents(c, "a")[0]), rep(idents(c, "b")[0]))
        self.assertIs(rep(idents(c, "a")[0]), rep(idents(c, "c")[0]))

    def test_logical_and_takes_right_side(self):
        c = infer("var d = x && y;")
        d = rep(idents(c, "d")[0])
        self.assertIs(d, rep(idents(c, "y")[0]))
        self.assertIsNot(d, rep(idents(c, "x")[0]))

    def test_conditional_unifies_branches(self):
        c = infer("var r = t ? u : v;")
        self.assertIs(rep(idents(c, "u")[0]), rep(idents(c, "v")[0]))

    def test_array_elements_share_type(self):
        c = infer("var arr = [first, second];")
        self.assertIs(rep(idents(c, "first")[0]), rep(idents(c, "second")[0]))

    def test_immediately_invoked_function(self):
        c = infer("var r = (function (p) { return p; })(q);")
        q = rep(idents(c, "q")[0])
        self.assertIs(q, rep(idents(c, "p")[0]))
        self.assertIs(q, rep(idents(c, "r")[0]))

    def test_getter_links_return_type(self):
        c = infer("var o = { get v() { return inner; } }; o.v;")
        self.assertIs(rep(idents(c, "inner")[0]), member(c, "o", "v").type_node.rep())

    def test_string_subscript_is_property_access(self):
        c = infer("var o = {}; o.k; o['k'];")
        dot = member(c, "o", "k")
        subscript = [n for n in walk(c.programs[0])
                     if isinstance(n, MemberExpression) and n.computed][0]
        self.assertIs(dot.type_node.rep(), subscript.type_node.rep())

    def test_undefined_is_primitive(self):
        c = infer("var b = undefined;")
        self.assertIsNone(idents(c, "undefined")[0].type_node)

    def test_opaque_syntax_is_tolerated(self):
        c = infer("class K { m() { return this.z; } } var {a, b} = obj; K;")
        self.assertIsNotNone(idents(c, "obj")[0].type_node)


class TestFunctions(unittest.TestCase):

    def test_function_name_binds_global(self):
        c = infer("function f() {} f;")
        f_decl = c.programs[0].body[0]
        self.assertIs(f_decl.type_node.rep(), rep(idents(c, "f")[1]))

    def test_arrow_expression_body_is_return(self):
        c = infer("var g = () => target;")
        arrow = c.programs[0].body[0].declarations[0].init
        self.assertIs(arrow.env_type[RETURN].rep(), rep(idents(c, "target")[0]))

    def test_arrow_this_is_enclosing(self):
        c = infer("function f() { this.a; var g = () => this.b; }")
        thises = [n for n in walk(c.programs[0]) if isinstance(n, ThisExpression)]
        self.assertIs(thises[0].type_node.rep(), thises[1].type_node.rep())

    def test_parameters_in_env(self):
        c = infer("function f(a, b = 1, ...rest) { return a; }")
        env = c.programs[0].body[0].env_type
        for name in ("a", "b", "rest", THIS, "arguments"):
            self.assertIn(name, env)


class TestMethods(unittest.TestCase):

    def test_object_literal_method_receiver(self):
        c = infer("var o = { n: 0, inc: function () { this.n++; } };")
        obj = c.programs[0].body[0].declarations[0].init
        this = [n for n in walk(c.programs[0]) if isinstance(n, ThisExpression)][0]
        self.assertIs(this.type_node.rep(), obj.type_node.rep())

    def test_assigned_method_receiver(self):
        c = infer("var o = {}; o.m = function () { this.y = 1; };")
        this = [n for n in walk(c.programs[0]) if isinstance(n, ThisExpression)][0]
        self.assertIs(this.type_node.rep(), rep(idents(c, "o")[0]))

    def test_prototype_methods_share_receiver(self):
        c = infer(
            "function Point(x) { this.x = x; }\n"
            "Point.prototype.norm = function () { return this.x; };"
        )
        thises = [n for n in walk(c.programs[0]) if isinstance(n, ThisExpression)]
        self.assertIs(thises[0].type_node.rep(), thises[1].type_node.rep())

    def test_namespace_suppresses_method_merge(self):
        c = infer("var ns = {}; ns.Foo = function () { this.x = 1; }; var f = new ns.Foo();")
        ns = rep(idents(c, "ns")[0])
        self.assertTrue(ns.namespace)
        fn = [n for n in walk(c.programs[0]) if isinstance(n, FunctionExpression)][0]
        self.assertIsNot(fn.env_type[THIS].rep(), ns)

    def test_prototype_access_marks_namespace(self):
        c = infer("var lib = {}; lib.Widget.prototype.draw = function () {};")
        widget = member(c, "lib", "Widget")
        self.assertTrue(rep(idents(c, "lib")[0]).namespace)
        self.assertFalse(widget.type_node.rep().namespace)

    def test_immediate_new_links_this(self):
        c = infer("var inst = new (function () { this.v = 1; })();")
        fn = [n for n in walk(c.programs[0]) if isinstance(n, FunctionExpression)][0]
        self.assertIs(fn.env_type[THIS].rep(), rep(idents(c, "inst")[0]))


class TestGlobals(unittest.TestCase):

    def test_window_aliases_global(self):
        c = infer("var x = 1; window.x = 2;")
        self.assertIs(rep(idents(c, "window")[0]), c.global_type("default"))

    def test_top_level_this_is_global(self):
        c = infer("this.t = 1;")
        this = [n for n in walk(c.programs[0]) if isinstance(n, ThisExpression)][0]
        self.assertIs(this.type_node.rep(), c.global_type("default"))

    def test_globals_shared_across_files(self):
        c = infer("var shared = {};", "shared.p;")
        self.assertIs(rep(idents(c, "shared")[0]), rep(idents(c, "shared")[1]))

    def test_one_global_per_global_id(self):
        c = ProgramCollection()
        for gid in ("one", "two"):
            text = "var shared = {}; window.w;"
            program = parse_script(text)
            program.file = f"{gid}.js"
            program.global_id = gid
            c.add(prepare(program))
        globals_ = infer_types(c)
        self.assertEqual(set(globals_), {"one", "two"})
        self.assertIsNot(c.global_type("one"), c.global_type("two"))
        shared = idents(c, "shared")
        self.assertIsNot(rep(shared[0]), rep(shared[1]))
        windows = idents(c, "window")
        self.assertIs(rep(windows[0]), c.global_type("one"))
        self.assertIs(rep(windows[1]), c.global_type("two"))

    def test_unknown_global_id(self):
        c = infer("var a;")
        self.assertIsNone(c.global_type("missing"))


class TestRepeatedRuns(unittest.TestCase):

    def _partition(self, collection):
        nodes = [n for p in collection for n in walk(p) if n.type_node is not None]
        classes = {}
        for index, node in enumerate(nodes):
            classes.setdefault(node.type_node.rep().id, set()).add(index)
        return {frozenset(s) for s in classes.values()}

    def test_inference_is_idempotent(self):
        c = collect(
            "var o = { n: 0, inc: function () { this.n++; } }; var p = o || {};",
            "function Point() { this.x = 1; } Point.prototype.y = function () { return this.x; };",
        )
        infer_types(c)
        first = self._partition(c)
        infer_types(c)
        self.assertEqual(self._partition(c), first)


class TestClassification(unittest.TestCase):

    def test_member_property(self):
        c = collect("a.b;")
        prop = idents(c, "b")[0]
        clazz = classify_id(prop)
        self.assertEqual(clazz.kind, PROPERTY)
        self.assertIs(clazz.base, prop.parent.object)

    def test_computed_identifier_is_variable(self):
        c = collect("a[b];")
        self.assertEqual(classify_id(idents(c, "b")[0]).kind, VARIABLE)

    def test_literal_key(self):
        c = collect("o = { 'k': 1 };")
        key = c.programs[0].body[0].expression.right.properties[0].key
        clazz = classify_id(key)
        self.assertEqual((clazz.kind, clazz.name), (PROPERTY, "k"))

    def test_plain_string_is_not_renameable(self):
        c = collect("f('k');")
        arg = c.programs[0].body[0].expression.arguments[0]
        self.assertIsNone(classify_id(arg))

    def test_non_node_is_invariant_violation(self):
        with self.assertRaises(InvariantViolation):
            classify_id("not a node")


if __name__ == "__main__":
    unittest.main()
