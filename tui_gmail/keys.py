import curses
from typing import Dict, Iterable, List, Mapping, Optional, Union

KeySpec = Union[int, str]

GLOBAL = "global"
LIST = "list"
DETAIL = "detail"
NAVIGATOR = "navigator"

_NAMED = {
    "tab": 9,
    "enter": 10,
    "return": 13,
    "space": 32,
    "esc": 27,
    "backspace": curses.KEY_BACKSPACE,
    "backspace2": 127,
    "up": curses.KEY_UP,
    "down": curses.KEY_DOWN,
    "left": curses.KEY_LEFT,
    "right": curses.KEY_RIGHT,
    "pgup": curses.KEY_PPAGE,
    "pgdn": curses.KEY_NPAGE,
}

DEFAULT_BINDINGS: Dict[str, Dict[str, List[KeySpec]]] = {
    GLOBAL: {
        "quit": ["q", "^C"],
        "help": ["?"],
    },
    LIST: {
        "details": ["tab"],
        "next": ["n", "j", "^N", "down"],
        "prev": ["p", "k", "^P", "up"],
        "refresh": ["r", "^R"],
        "mark": ["x"],
        "open": ["enter", "return", ">", curses.KEY_ENTER, "right"],
        "trash": ["d"],
        "archive": ["a", "e"],
        "compose": ["c"],
        "compose_file": ["i"],
    },
    DETAIL: {
        "close": ["<", "u", "left"],
        "scroll_up": ["p", "k", "up"],
        "scroll_down": ["n", "j", "down"],
        "prev_item": ["^P"],
        "next_item": ["^N"],
        "page_down": ["space", "pgdn"],
        "page_up": ["backspace", "backspace2", 8, "pgup"],
        "mark": ["x"],
        "reply": ["r"],
        "save": ["s"],
        "add_label": ["l"],
        "remove_label": ["L"],
        "archive": ["e"],
    },
    NAVIGATOR: {
        "next": ["j", "n", "^N", "down"],
        "prev": ["k", "p", "^P", "up"],
        "select": ["enter", "return", curses.KEY_ENTER],
        "toggle_edit": ["tab"],
        "open_temp": ["!"],
        "cancel": ["q", "^C", "^G", "esc"],
    },
}


class KeyBindingError(ValueError):
    pass


def parse_key(spec: KeySpec) -> int:
    if isinstance(spec, int):
        return spec
    text = spec.strip()
    if not text:
        raise KeyBindingError("empty key name")
    named = _NAMED.get(text.lower())
    if named is not None:
        return named
    if len(text) == 2 and text[0] == "^" and text[1].isalpha():
        return ord(text[1].upper()) - ord("A") + 1
    if len(text) == 1:
        return ord(text)
    raise KeyBindingError(f"unknown key name {spec!r}")


def key_name(ch: int) -> str:
    if ch == -1:
        return "NONE"
    if 32 < ch <= 126:
        return chr(ch)
    for name, code in _NAMED.items():
        if code == ch:
            return name
    if 1 <= ch <= 26:
        return "^" + chr(ch + ord("A") - 1)
    return str(ch)


class KeyMap:
    """Per-mode key tables; lookups fall back to the global table."""

    def __init__(
        self,
        overrides: Optional[Mapping[str, Mapping[str, Iterable[KeySpec]]]] = None,
    ) -> None:
        self.tables: Dict[str, Dict[int, str]] = {}
        for mode, actions in DEFAULT_BINDINGS.items():
            merged = dict(actions)
            if overrides and mode in overrides:
                for action, keys in overrides[mode].items():
                    if action not in actions:
                        raise KeyBindingError(f"unknown action {action!r} in [keys.{mode}]")
                    merged[action] = list(keys)
            table: Dict[int, str] = {}
            for action, keys in merged.items():
                for spec in keys:
                    code = parse_key(spec)
                    bound = table.get(code)
                    if bound is not None and bound != action:
                        raise KeyBindingError(
                            f"key {key_name(code)!r} bound to both {bound!r} and {action!r} in [keys.{mode}]"
                        )
                    table[code] = action
            self.tables[mode] = table
        if overrides:
            unknown = set(overrides) - set(DEFAULT_BINDINGS)
            if unknown:
                raise KeyBindingError(f"unknown key table(s): {', '.join(sorted(unknown))}")

    def lookup(self, mode: str, ch: int) -> Optional[str]:
        action = self.tables.get(mode, {}).get(ch)
        if action is not None:
            return action
        return self.tables[GLOBAL].get(ch)

    def keys_for(self, mode: str, action: str) -> List[str]:
        return [key_name(ch) for ch, name in self.tables.get(mode, {}).items() if name == action]
