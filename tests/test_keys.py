"""Tests for key parsing and the per-mode key tables."""

import curses
import unittest

from tui_gmail.keys import (
    DETAIL,
    GLOBAL,
    LIST,
    NAVIGATOR,
    KeyBindingError,
    KeyMap,
    key_name,
    parse_key,
)


class ParseKeyTests(unittest.TestCase):
    def test_forms(self) -> None:
        self.assertEqual(parse_key("q"), ord("q"))
        self.assertEqual(parse_key("^C"), 3)
        self.assertEqual(parse_key("^n"), 14)
        self.assertEqual(parse_key("tab"), 9)
        self.assertEqual(parse_key("Down"), curses.KEY_DOWN)
        self.assertEqual(parse_key(curses.KEY_ENTER), curses.KEY_ENTER)

    def test_rejects_unknown_names(self) -> None:
        for bad in ("", "  ", "ctrl-x", "^1"):
            with self.subTest(bad=bad):
                with self.assertRaises(KeyBindingError):
                    parse_key(bad)

    def test_key_name(self) -> None:
        self.assertEqual(key_name(ord("x")), "x")
        self.assertEqual(key_name(14), "^N")
        self.assertEqual(key_name(9), "tab")
        self.assertEqual(key_name(-1), "NONE")


class KeyMapTests(unittest.TestCase):
    def test_defaults(self) -> None:
        keys = KeyMap()
        self.assertEqual(keys.lookup(LIST, ord("n")), "next")
        self.assertEqual(keys.lookup(DETAIL, ord("n")), "scroll_down")
        self.assertEqual(keys.lookup(NAVIGATOR, ord("q")), "cancel")
        self.assertEqual(keys.lookup(LIST, ord("d")), "trash")

    def test_falls_back_to_global(self) -> None:
        keys = KeyMap()
        self.assertEqual(keys.lookup(LIST, ord("q")), "quit")
        self.assertEqual(keys.lookup(DETAIL, ord("?")), "help")
        self.assertIsNone(keys.lookup(LIST, ord("Z")))

    def test_overrides_replace_action_keys(self) -> None:
        keys = KeyMap({LIST: {"trash": ["D", "^D"]}, GLOBAL: {"quit": ["Q"]}})
        self.assertEqual(keys.lookup(LIST, ord("D")), "trash")
        self.assertEqual(keys.lookup(LIST, 4), "trash")
        self.assertIsNone(keys.lookup(LIST, ord("d")))
        self.assertEqual(keys.lookup(DETAIL, ord("Q")), "quit")
        self.assertEqual(sorted(keys.keys_for(LIST, "trash")), ["D", "^D"])

    def test_key_bound_twice_in_one_table(self) -> None:
        with self.assertRaises(KeyBindingError) as ctx:
            KeyMap({LIST: {"archive": ["d"]}})
        self.assertIn("'trash'", str(ctx.exception))
        keys = KeyMap({LIST: {"archive": ["d"], "trash": ["D"]}})
        self.assertEqual(keys.lookup(LIST, ord("d")), "archive")
        # The same key may mean different things in different tables.
        self.assertEqual(KeyMap({DETAIL: {"save": ["w"]}}).lookup(LIST, ord("w")), None)

    def test_unknown_action_or_table(self) -> None:
        with self.assertRaises(KeyBindingError):
            KeyMap({LIST: {"explode": ["x"]}})
        with self.assertRaises(KeyBindingError):
            KeyMap({"compose": {"send": ["s"]}})
        with self.assertRaises(KeyBindingError):
            KeyMap({LIST: {"next": ["ctrl-n"]}})


if __name__ == "__main__":
    unittest.main()
