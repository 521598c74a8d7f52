"""
Explicit grammar: fully addressed records separated by ':;:'.
"""

import unittest

import pytest

from meteor.engine import MeteorEngine
from meteor.errors import ControlCommandError, FormatError, MeteorError, UnbalancedQuotesError
from meteor.meteor_stream import MeteorStreamParser, parse_addressed_token
from meteor.types import Namespace


class TestMeteorStream(unittest.TestCase):
    def setUp(self):
        self.engine = MeteorEngine()
        self.parser = MeteorStreamParser(self.engine)

    def test_two_records_leave_cursor(self):
        self.engine.cursor().set_namespace(Namespace.parse("elsewhere"))
        stored = self.parser.process("app:ui:button=click :;: user:settings:theme=dark")
        self.assertEqual(stored, 2)
        self.assertEqual(self.engine.get("app:ui:button"), "click")
        self.assertEqual(self.engine.get("user:settings:theme"), "dark")
        self.assertEqual(len(list(self.engine.iter_entries())), 2)
        self.assertEqual(self.engine.cursor().position(), ("app", "elsewhere"))

    def test_multiple_tokens_per_record(self):
        self.parser.process("app:ui:a=1;app:ui:b=2;app:data:c=3 :;: user:main:profile=admin")
        self.assertEqual(self.engine.namespace_entries("app", "ui"), [("a", "1"), ("b", "2")])
        self.assertEqual(self.engine.get("user:main:profile"), "admin")

    def test_quoted_delimiters(self):
        self.parser.process('app:ui:message="hello; world" :;: app:ui:other="x :;: y"')
        self.assertEqual(self.engine.get("app:ui:message"), "hello; world")
        self.assertEqual(self.engine.get("app:ui:other"), "x :;: y")

    def test_bare_token_goes_to_default(self):
        self.parser.process("button=click")
        self.assertEqual(self.engine.get("app:main:button"), "click")

    def test_root_namespace(self):
        self.parser.process("app::k=v")
        self.assertEqual(self.engine.get("app::k"), "v")

    def test_control_in_stream(self):
        self.engine.set("app:ui:old", "x")
        self.parser.process("ctl:delete=app:ui:old :;: ctl:reset=cursor :;: app:ui:theme=dark")
        self.assertIsNone(self.engine.get("app:ui:old"))
        self.assertEqual(self.engine.get("app:ui:theme"), "dark")
        self.assertEqual([c.command_type for c in self.engine.command_history()], ["delete", "reset"])

    def test_bad_colon_counts(self):
        for bad in ["ui:button=click", "a:b:c:d=1"]:
            with self.assertRaises(FormatError, msg=bad):
                self.parser.process(bad)

    def test_unbalanced(self):
        with self.assertRaises(UnbalancedQuotesError):
            self.parser.process('app:ui:m="open :;: app:ui:x=1')

    def test_split(self):
        self.assertEqual(
            self.parser.split("a:b:c=1 :;: d:e:f=2 :;:"),
            ["a:b:c=1", "d:e:f=2"],
        )

    def test_aggregated(self):
        records = self.parser.process_aggregated(
            "app:ui:a=1 :;: user:s:b=2 :;: app:ui:c=3"
        )
        self.assertEqual(len(records), 2)
        self.assertEqual([t.key.original for t in records[0]], ["a", "c"])
        self.assertEqual(self.engine.get("app:ui:c"), "3")
        self.assertEqual(self.engine.cursor().position(), ("app", "main"))

    def test_aggregated_all_or_nothing(self):
        with self.assertRaises(FormatError):
            self.parser.process_aggregated("app:ui:a=1 :;: bad:colons=2")
        self.assertEqual(self.engine.contexts(), [])
        with self.assertRaises(ControlCommandError):
            self.parser.process_aggregated("app:ui:a=1 :;: ctl:reset=all")
        self.assertEqual(self.engine.contexts(), [])

    def test_validate(self):
        self.assertTrue(self.parser.validate("app:ui:a=1 :;: ctl:delete=app:ui:a"))
        result = self.parser.validate("app:ui:a=1 :;: ctl:delete=a:b:c:d")
        self.assertFalse(result)
        self.assertEqual(result.code, "ERR_PATH")
        self.assertEqual(self.engine.contexts(), [])


def test_parse_addressed_token():
    item = parse_addressed_token("user:ui.widgets:list[2]=x")
    assert str(item.context) == "user"
    assert str(item.namespace) == "ui.widgets"
    assert item.token.key.transformed == "list__i_2"
    assert item.token.namespace == item.namespace


@pytest.mark.parametrize("text", ["a:b=1", ":ui:k=1", "app:ui:=1"])
def test_parse_addressed_token_rejects(text):
    with pytest.raises(MeteorError) as info:
        parse_addressed_token(text)
    assert info.value.code in ("ERR_FORMAT", "ERR_EMPTY")


def test_record_delimiter_is_shared():
    from meteor import split, validators

    assert MeteorStreamParser.delimiter == split.METEOR_DELIMITER == ":;:"
    assert validators.METEOR_DELIMITER is split.METEOR_DELIMITER
