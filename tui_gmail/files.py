import curses
import os
from dataclasses import dataclass
from typing import List, Optional

from .debuglog import DebugLogger, log
from .editor import UserCancelled
from .message_list import visible_offset

KEY_TAB = 9
KEY_ENTER_KEYS = (curses.KEY_ENTER, 10, 13)
KEY_BACKSPACE_KEYS = (curses.KEY_BACKSPACE, 127, 8)
ESC = 27


class OpenRequested(Exception):
    pass


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool
    size: int = 0
    mtime: float = 0.0

    @property
    def display_name(self) -> str:
        return self.name + "/" if self.is_dir else self.name


def _entry(name: str, st: os.stat_result, is_dir: bool) -> DirEntry:
    return DirEntry(name=name, is_dir=is_dir, size=st.st_size, mtime=st.st_mtime)


def read_dir(directory: str) -> List[DirEntry]:
    """Like os.scandir, but with . and .. first and directories before files."""
    dot = os.stat(os.path.join(directory, "."))
    dotdot = os.stat(os.path.join(directory, ".."))

    entries: List[DirEntry] = []
    with os.scandir(directory) as it:
        for item in it:
            try:
                is_dir = item.is_dir()
                st = item.stat()
            except OSError:
                # Dangling symlinks and entries removed mid-listing.
                is_dir = False
                st = item.stat(follow_symlinks=False)
            entries.append(_entry(item.name, st, is_dir))
    entries.sort(key=lambda e: (not e.is_dir, e.name))
    return [_entry(".", dot, True), _entry("..", dotdot, True)] + entries


class FileNavigator:
    def __init__(
        self,
        directory: str,
        save: bool = False,
        filename: str = "",
        logger: Optional[DebugLogger] = None,
    ) -> None:
        self.save = save
        self.logger = logger
        self.directory = os.path.abspath(directory)
        self.entries = read_dir(self.directory)
        self.cursor = -1 if save else 0
        self.filename = filename
        self.editing = False
        self.error = ""

    @property
    def title(self) -> str:
        return "Save file" if self.save else "Open file"

    def offset(self, height: int) -> int:
        return visible_offset(max(0, self.cursor), height)

    def change_dir(self, name: str) -> bool:
        target = os.path.normpath(os.path.join(self.directory, name))
        try:
            entries = read_dir(target)
        except OSError as err:
            self.error = f"Cannot open {target}: {err.strerror or err}"
            log(self.logger, "WARN", f"navigator chdir failed path={target} err={err}")
            return False
        self.directory = target
        self.entries = entries
        self.cursor = 0
        self.error = ""
        log(self.logger, "ACTION", f"navigator chdir path={target} entries={len(entries)}")
        return True

    def move_next(self) -> None:
        if self.cursor < len(self.entries) - 1:
            self.cursor += 1

    def move_previous(self) -> None:
        # In save mode -1 is the <save> button above the listing.
        floor = -1 if self.save else 0
        if self.cursor > floor:
            self.cursor -= 1

    def target_path(self) -> str:
        return os.path.join(self.directory, self.filename)

    def handle_action(self, action: str) -> Optional[str]:
        if action == "cancel":
            raise UserCancelled(self.title.lower() + " cancelled")
        if action == "next":
            self.move_next()
        elif action == "prev":
            self.move_previous()
        elif action == "open_temp" and self.save:
            raise OpenRequested(self.target_path())
        elif action == "toggle_edit" and self.save:
            self.editing = True
        elif action == "select":
            return self._select()
        return None

    def handle_edit_key(self, key: int) -> Optional[str]:
        if key == KEY_TAB:
            self.editing = False
        elif key in KEY_ENTER_KEYS:
            return self._confirm()
        elif key in KEY_BACKSPACE_KEYS:
            self.filename = self.filename[:-1]
        elif key == ESC:
            raise UserCancelled("save file cancelled")
        elif 32 <= key <= 126 and key != ord("/"):
            self.filename += chr(key)
        return None

    def _confirm(self) -> Optional[str]:
        if not self.filename.strip():
            self.error = "Enter a file name first."
            return None
        return self.target_path()

    def _select(self) -> Optional[str]:
        if self.save and self.cursor == -1:
            return self._confirm()
        if not self.entries:
            return None
        entry = self.entries[self.cursor]
        if entry.is_dir:
            self.change_dir(entry.name)
            return None
        if self.save:
            self.filename = entry.name
            self.cursor = -1
            return None
        return os.path.join(self.directory, entry.name)
