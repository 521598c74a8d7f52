"""
Engine tests: path addressing, control commands, audit log, cursor.
"""

import logging
import unittest

import pytest

from meteor.config import MeteorConfig
from meteor.engine import EnginePath, MeteorEngine, parse_path
from meteor.errors import ControlCommandError, PathConflictError, PathError
from meteor.types import Context, Key, Namespace


class TestPaths(unittest.TestCase):
    def test_kinds(self):
        self.assertEqual(parse_path("app:ui:button").kind, "key")
        self.assertEqual(parse_path("app:ui").kind, "key")
        self.assertEqual(parse_path("app:ui:").kind, "namespace")
        self.assertEqual(parse_path("app:").kind, "namespace")
        self.assertEqual(parse_path("app").kind, "context")
        p = parse_path("app::k")
        self.assertTrue(p.namespace.is_root)
        self.assertEqual(p.key.transformed, "k")

    def test_two_parts_use_default_namespace(self):
        self.assertEqual(
            parse_path("app:button"),
            EnginePath(Context("app"), Namespace.default(), Key("button")),
        )
        self.assertEqual(parse_path("app:"), EnginePath(Context("app"), Namespace.default()))

    def test_two_parts_in_tree_mode(self):
        self.assertEqual(parse_path("app:ui", tree=True), EnginePath(Context("app"), Namespace.parse("ui")))

    def test_brackets_in_path(self):
        self.assertEqual(parse_path("app:ui:list[0]").key.transformed, "list__i_0")

    def test_invalid(self):
        for bad in ["a:b:c:d", "", ":ui:k", "app:u i:k", "app:ui:k[0"]:
            with self.assertRaises(PathError, msg=bad):
                parse_path(bad)

    def test_engine_path_value(self):
        self.assertEqual(parse_path("user"), EnginePath(Context("user")))


class TestEngineCrud(unittest.TestCase):
    def setUp(self):
        self.engine = MeteorEngine()

    def test_set_get_exists_delete(self):
        self.engine.set("app:ui:button", "click")
        self.assertEqual(self.engine.get("app:ui:button"), "click")
        self.assertTrue(self.engine.exists("app:ui:button"))
        self.assertTrue(self.engine.delete("app:ui:button"))
        self.assertIsNone(self.engine.get("app:ui:button"))
        self.assertFalse(self.engine.exists("app:ui:button"))

    def test_bracket_keys_are_flattened(self):
        self.engine.set("app:main:list[0]", "a")
        self.assertEqual(self.engine.get("app:main:list__i_0"), "a")
        self.assertEqual(self.engine.get("app:main:list[0]"), "a")

    def test_set_requires_key(self):
        with self.assertRaises(PathError):
            self.engine.set("app:ui:", "x")
        with self.assertRaises(PathError):
            self.engine.set("app:", "x")
        with self.assertRaises(PathError):
            self.engine.set("app", "x")
        self.assertIsNone(self.engine.get("app:ui:"))
        self.assertFalse(self.engine.exists("app"))

    def test_two_part_paths_address_default_namespace(self):
        self.engine.set("app:main:button", "click")
        self.assertEqual(self.engine.get("app:button"), "click")
        self.assertTrue(self.engine.exists("app:button"))
        self.engine.set("app:theme", "dark")
        self.assertEqual(self.engine.get("app:main:theme"), "dark")
        self.assertTrue(self.engine.delete("app:theme"))
        self.assertIsNone(self.engine.get("app:main:theme"))

    def test_delete_default_namespace(self):
        self.engine.set("app:main:a", "1")
        self.engine.set("app::root", "r")
        self.assertTrue(self.engine.delete("app:"))
        self.assertIsNone(self.engine.get("app:main:a"))
        self.assertEqual(self.engine.get("app::root"), "r")

    def test_control_delete_two_part_key(self):
        self.engine.set("app:main:button", "click")
        self.assertTrue(self.engine.execute_control_command("delete", "app:button"))
        self.assertFalse(self.engine.exists("app:main:button"))

    def test_too_many_parts(self):
        with self.assertRaises(PathError):
            self.engine.delete("a:b:c:d")

    def test_delete_not_found_twice(self):
        self.assertFalse(self.engine.delete("app:ui:ghost"))
        self.assertFalse(self.engine.delete("app:ui:ghost"))

    def test_delete_namespace_and_context(self):
        self.engine.set("app:ui:a", "1")
        self.engine.set("app:ui:b", "2")
        self.engine.set("app:data:c", "3")
        self.assertTrue(self.engine.delete("app:ui:"))
        self.assertEqual(self.engine.namespaces_in_context("app"), ["data"])
        self.assertTrue(self.engine.delete("app"))
        self.assertEqual(self.engine.contexts(), [])

    def test_last_key_removes_namespace_directory(self):
        self.engine.set("app:ui:button", "click")
        self.engine.set("app:main:x", "1")
        self.engine.delete("app:ui:button")
        self.assertFalse(self.engine.is_directory("app:ui"))
        self.assertEqual(self.engine.namespaces_in_context("app"), ["main"])

    def test_conflict(self):
        self.engine.set("app:ui:a", "1")
        with self.assertRaises(PathConflictError):
            self.engine.set("app:ui:a.b", "2")
        self.assertEqual(self.engine.get("app:ui:a"), "1")


class TestControlCommands(unittest.TestCase):
    def setUp(self):
        self.engine = MeteorEngine()

    def test_delete_command(self):
        self.engine.set("app:ui:button", "click")
        self.assertTrue(self.engine.execute_control_command("delete", "app:ui:button"))
        self.assertIsNone(self.engine.get("app:ui:button"))
        last = self.engine.last_command()
        self.assertEqual((last.command_type, last.target, last.success), ("delete", "app:ui:button", True))
        self.assertIsNone(last.error_message)

    def test_delete_missing_succeeds_with_false(self):
        self.assertFalse(self.engine.execute_control_command("delete", "app:ui:none"))
        self.assertTrue(self.engine.last_command().success)

    def test_reset_targets(self):
        self.engine.set("app:ui:a", "1")
        self.engine.set_cursor(Context("user"), Namespace.parse("x"))

        self.engine.execute_control_command("reset", "cursor")
        self.assertEqual(self.engine.cursor().position(), ("app", "main"))
        self.assertEqual(self.engine.get("app:ui:a"), "1")

        self.engine.set_cursor(Context("user"), Namespace.parse("x"))
        self.engine.execute_control_command("reset", "storage")
        self.assertEqual(self.engine.cursor().position(), ("user", "x"))
        self.assertEqual(self.engine.contexts(), [])

        self.engine.set("app:ui:a", "1")
        self.engine.execute_control_command("reset", "all")
        self.assertEqual(self.engine.cursor().position(), ("app", "main"))
        self.assertEqual(self.engine.contexts(), [])

    def test_unknown_command_recorded(self):
        with self.assertRaises(ControlCommandError):
            self.engine.execute_control_command("explode", "now")
        last = self.engine.last_command()
        self.assertFalse(last.success)
        self.assertEqual(last.error_message, "Unknown control command: explode")

    def test_unknown_reset_target(self):
        with self.assertRaises(ControlCommandError):
            self.engine.execute_control_command("reset", "universe")
        self.assertEqual(self.engine.last_command().error_message, "Unknown reset target: universe")

    def test_bad_delete_path_recorded(self):
        with self.assertRaises(PathError):
            self.engine.execute_control_command("delete", "a:b:c:d")
        self.assertEqual(len(self.engine.failed_commands()), 1)

    def test_history_cap(self):
        config = MeteorConfig.from_profile("default").with_overrides({"max_command_history": 3})
        engine = MeteorEngine(config)
        for i in range(5):
            engine.execute_control_command("delete", f"app:ui:k{i}")
        history = engine.command_history()
        self.assertEqual([c.target for c in history], ["app:ui:k2", "app:ui:k3", "app:ui:k4"])
        engine.clear_history()
        self.assertEqual(engine.command_history(), [])
        self.assertIsNone(engine.last_command())

    def test_failed_command_logs_warning(self):
        with self.assertLogs("meteor.engine", level=logging.WARNING):
            with self.assertRaises(ControlCommandError):
                self.engine.execute_control_command("bogus", "x")


class TestQueries(unittest.TestCase):
    def setUp(self):
        self.engine = MeteorEngine()
        e = self.engine
        e.set("app:ui:index", "home")
        e.set("app:ui:list[2]", "c")
        e.set("app:ui:list[0]", "a")
        e.set("app:ui:list[10]", "k")
        e.set("app:ui:grid[1,2]", "g")
        e.set("app:ui:menu.open", "o")
        e.set("app:ui.widgets:button", "b")
        e.set("app:ui.widgets.deep:x", "x")
        e.set("user:settings:theme", "dark")

    def test_listing(self):
        self.assertEqual(self.engine.contexts(), ["app", "user"])
        self.assertEqual(
            self.engine.namespaces_in_context("app"), ["ui", "ui.widgets", "ui.widgets.deep"]
        )
        self.assertEqual(self.engine.child_namespaces("app", "ui"), ["ui.widgets", "ui.widgets.deep"])
        self.assertEqual(self.engine.namespace_entries("user", "settings"), [("theme", "dark")])

    def test_view(self):
        view = self.engine.namespace_view("app", "ui")
        self.assertTrue(view.has_default)
        self.assertEqual(view.entry_count, 6)
        self.assertEqual(view.get("list__i_0"), "a")
        self.assertTrue(view.has_key("menu.open"))
        self.assertEqual(view.keys()[0], "index")

    def test_bracket_queries(self):
        self.assertEqual(
            self.engine.bracket_keys("app", "ui"),
            ["list__i_2", "list__i_0", "list__i_10", "grid__i_1_2"],
        )
        self.assertEqual(
            self.engine.keys_with_base("app", "ui", "list"), ["list__i_2", "list__i_0", "list__i_10"]
        )
        self.assertEqual(
            self.engine.array_values("app", "ui", "list"), [("0", "a"), ("2", "c"), ("10", "k")]
        )

    def test_tree_queries(self):
        self.assertTrue(self.engine.is_directory("app:ui:menu"))
        self.assertTrue(self.engine.is_file("app:ui:menu.open"))
        self.assertEqual(self.engine.list_children("app:ui:menu"), ["open"])
        self.assertTrue(self.engine.has_default("app:ui"))
        self.assertEqual(self.engine.get_default("app:ui"), "home")
        self.assertFalse(self.engine.has_default("app:ui:menu"))
        with self.assertRaises(PathError):
            self.engine.is_directory("app")

    def test_meteors(self):
        meteors = self.engine.meteors()
        self.assertEqual(len(meteors), 4)
        settings = self.engine.meteor_for("user", "settings")
        self.assertEqual(str(settings), "user:settings:theme=dark")
        self.assertIsNone(self.engine.meteor_for("user", "nothing"))

    def test_iter_entries(self):
        entries = list(self.engine.iter_entries())
        self.assertEqual(entries[-1], ("user", "settings", "theme", "dark"))
        self.assertEqual(len(entries), 9)


def test_cursor_guard_restores():
    engine = MeteorEngine()
    with engine.cursor_guard() as cursor:
        cursor.set_namespace(Namespace.parse("tmp"))
        assert engine.current_namespace == Namespace.parse("tmp")
    assert engine.cursor().position() == ("app", "main")


def test_cursor_guard_restores_on_error():
    engine = MeteorEngine()
    with pytest.raises(RuntimeError):
        with engine.cursor_guard():
            engine.set_cursor(Context("user"), Namespace.parse("x"))
            raise RuntimeError("boom")
    assert engine.current_context == Context("app")


def test_stats():
    engine = MeteorEngine()
    engine.set("app:ui:a", "1")
    engine.execute_control_command("reset", "cursor")
    assert engine.stats() == {"contexts": 1, "keys": 1, "commands": 1}
