import contextlib
import curses
import datetime
import enum
import os
import re
from typing import Callable, Dict, Iterator, List, Optional

from . import keys
from .config import Config
from .debuglog import DebugLogger, truncate
from .editor import (
    EditorError,
    UserCancelled,
    compose_seed,
    editor_command,
    open_with,
    reply_seed,
    run_editor,
    run_editor_mode,
    strip_mode,
)
from .fetch import background, fetch_all
from .files import FileNavigator, OpenRequested
from .gmail import INBOX, UNREAD, GmailError, mime_encode
from .message_list import ListModel, apply_marked
from .viewer import DetailViewer


class ViewMode(enum.Enum):
    LIST = "list"
    DETAIL = "detail"
    FILE_OPEN = "file_open"
    FILE_SAVE = "file_save"


KEY_TABLES = {
    ViewMode.LIST: keys.LIST,
    ViewMode.DETAIL: keys.DETAIL,
    ViewMode.FILE_OPEN: keys.NAVIGATOR,
    ViewMode.FILE_SAVE: keys.NAVIGATOR,
}

HELP_TITLES = {
    keys.GLOBAL: "Global",
    keys.LIST: "Message list",
    keys.DETAIL: "Open message",
    keys.NAVIGATOR: "File dialog",
}


class SessionState:
    """Everything the key handlers mutate; lives on the UI thread only."""

    def __init__(self) -> None:
        self.mode = ViewMode.LIST
        self.model = ListModel()
        self.viewer = DetailViewer()
        self.navigator: Optional[FileNavigator] = None
        self.nav_window = None
        self.nav_done: Optional[Callable[[str], None]] = None
        self.nav_open: Optional[Callable[[], None]] = None
        self.mode_before_navigator = ViewMode.LIST
        self.status = ""
        self.help_visible = False
        self.labels: Dict[str, str] = {}


class SessionApp:
    def __init__(
        self,
        service,
        config: Config,
        logger: Optional[DebugLogger] = None,
        editor: Optional[Callable[[str], str]] = None,
        keymap: Optional[keys.KeyMap] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
        start_dir: Optional[str] = None,
    ) -> None:
        self.service = service
        self.start_dir = start_dir
        self.config = config
        self.logger = logger
        self.keymap = keymap or keys.KeyMap(config.keys)
        self.clock = clock or (lambda: datetime.datetime.now().astimezone())
        self.edit = editor or self._run_editor
        self.state = SessionState()
        self.stdscr = None
        self._handlers = {
            keys.GLOBAL: {
                "quit": self.quit,
                "help": self.toggle_help,
            },
            keys.LIST: {
                "details": self.list_details,
                "next": self.list_next,
                "prev": self.list_prev,
                "refresh": self.refresh,
                "mark": self.list_mark,
                "open": self.open_selected,
                "trash": self.trash_marked,
                "archive": self.archive_marked,
                "compose": self.compose,
                "compose_file": self.compose_from_file,
            },
            keys.DETAIL: {
                "close": self.close_detail,
                "scroll_up": self.scroll_up,
                "scroll_down": self.scroll_down,
                "page_up": self.page_up,
                "page_down": self.page_down,
                "prev_item": self.detail_prev,
                "next_item": self.detail_next,
                "mark": self.detail_mark,
                "reply": self.reply,
                "save": self.save_body,
                "add_label": self.add_label,
                "remove_label": self.remove_label,
                "archive": self.archive_open,
            },
        }

    @property
    def mode(self) -> ViewMode:
        return self.state.mode

    @property
    def model(self) -> ListModel:
        return self.state.model

    @property
    def viewer(self) -> DetailViewer:
        return self.state.viewer

    @property
    def status(self) -> str:
        return self.state.status

    def _log(self, category: str, message: str) -> None:
        if self.logger:
            self.logger.log(category, message)

    def _set_status(self, message: str) -> None:
        self.state.status = message

    def run(self, stdscr) -> None:
        self.stdscr = stdscr
        self._log("BOOT", "tui started")
        self._set_cursor_visible(False)
        stdscr.keypad(True)
        stdscr.timeout(-1)
        self.refresh()

        while True:
            self._draw(stdscr)
            ch = stdscr.getch()
            if not self.handle_key(ch):
                break
        self._log("BOOT", "tui exit requested")

    def handle_key(self, ch: int) -> bool:
        """Dispatch one key event. Returns False when the session should end."""
        if ch == -1 or ch == curses.KEY_RESIZE:
            return True
        state = self.state
        self._log("KEY", f"mode={state.mode.value} key={keys.key_name(ch)} help={state.help_visible}")

        if state.help_visible:
            if ch in (ord("?"), 27, curses.KEY_ENTER, 10, 13, ord("q"), ord("Q")):
                state.help_visible = False
            return True

        if state.navigator is not None and state.navigator.editing:
            return self._navigator_step(lambda nav: nav.handle_edit_key(ch))

        table = KEY_TABLES[state.mode]
        action = self.keymap.lookup(table, ch)
        if action is None:
            state.status = f"Unknown key: {keys.key_name(ch)}"
            return True
        if state.navigator is not None and ch in self.keymap.tables[table]:
            return self._navigator_step(lambda nav: nav.handle_action(action))

        handler = self._handlers.get(table, {}).get(action) or self._handlers[keys.GLOBAL].get(action)
        if handler is None:
            return True
        result = handler()
        return result is not False

    # Global.

    def quit(self) -> bool:
        return False

    def toggle_help(self) -> None:
        self.state.help_visible = not self.state.help_visible

    # List mode.

    def refresh(self) -> None:
        verb = "threads" if self.config.threads else "messages"
        self._show_loading(f"Loading {verb}...")
        try:
            if self.config.threads:
                summaries = self.service.list_threads(self.config.query, self.config.max_results)
                fetch = self.service.get_thread
            else:
                summaries = self.service.list_messages(self.config.query, self.config.max_results)
                fetch = self.service.get_message
        except GmailError as err:
            self.state.status = f"Error listing {verb}: {err}"
            self._log("ERR", f"refresh list error err={err}")
            return

        ids = [summary.id for summary in summaries]
        results, batch = fetch_all(ids, fetch, verb="fetching", logger=self.logger)
        self.model.refresh([results[item_id] for item_id in ids if item_id in results])
        if batch.fail:
            self.state.status = f"Loaded {batch.ok} {verb}, {batch.fail} failed: {batch.error}"
        else:
            self.state.status = f"Loaded {batch.ok} {verb}."
        self._log("ACTION", f"refresh done ok={batch.ok} fail={batch.fail}")

    def list_next(self) -> None:
        self.model.move_next()

    def list_prev(self) -> None:
        self.model.move_previous()

    def list_details(self) -> None:
        self.model.toggle_details()

    def list_mark(self) -> None:
        item = self.model.selected
        if item is None:
            return
        self.model.toggle_mark(item.id)
        self.model.move_next()

    def open_selected(self) -> None:
        item = self.model.selected
        if item is None:
            self.state.status = "Nothing to open."
            return
        self.viewer.open(item, self.model.current, len(self.model))
        self.state.mode = ViewMode.DETAIL
        self.state.status = ""
        self._log("ACTION", f"open id={item.id}")
        if item.has_label(UNREAD):
            threads = self.config.threads
            background(
                lambda: self.service.modify_labels(item.id, remove=[UNREAD], thread=threads),
                self.logger,
                f"clear-unread-{item.id}",
            )

    def trash_marked(self) -> None:
        count = len(self.model.marked_ids())
        if not count:
            self.state.status = "No messages marked. Mark with x."
            return
        if not self._confirm_modal("TRASH", f"Move {count} marked item(s) to trash? (y/n)"):
            self.state.status = "Trash cancelled."
            return
        threads = self.config.threads
        self._apply_marked("trashing", lambda item_id: self.service.trash(item_id, thread=threads))

    def archive_marked(self) -> None:
        if not self.model.marked_ids():
            self.state.status = "No messages marked. Mark with x."
            return
        threads = self.config.threads
        self._apply_marked(
            "archiving",
            lambda item_id: self.service.modify_labels(item_id, remove=[INBOX], thread=threads),
        )

    def _apply_marked(self, verb: str, mutate: Callable[[str], object]) -> None:
        self._show_loading(f"{verb.capitalize()} emails, please wait...")
        _, message = apply_marked(self.model, verb, mutate, logger=self.logger)
        self.refresh()
        self.state.status = message

    def compose(self) -> None:
        self._compose(compose_seed(self.config.signature))

    def compose_from_file(self) -> None:
        self._open_navigator(save=False, filename="", on_done=self._compose_with_file)

    def _compose_with_file(self, path: str) -> None:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as fp:
                body = fp.read()
        except OSError as err:
            self.state.status = f"Cannot read {path}: {err.strerror or err}"
            return
        self._compose(compose_seed(self.config.signature, body=body))

    # Detail mode.

    def _detail_height(self) -> int:
        if self.stdscr is None:
            return 20
        height, _ = self.stdscr.getmaxyx()
        return max(1, height - 1)

    def close_detail(self) -> None:
        self.viewer.close()
        self.state.mode = ViewMode.LIST

    def scroll_down(self) -> None:
        self.viewer.scroll_down(self._detail_height())

    def scroll_up(self) -> None:
        self.viewer.scroll_up(self._detail_height())

    def page_down(self) -> None:
        self.viewer.page_down(self._detail_height())

    def page_up(self) -> None:
        self.viewer.page_up(self._detail_height())

    def detail_next(self) -> None:
        before = self.model.current
        self.model.move_next()
        if self.model.current != before:
            self.open_selected()

    def detail_prev(self) -> None:
        before = self.model.current
        self.model.move_previous()
        if self.model.current != before:
            self.open_selected()

    def detail_mark(self) -> None:
        item = self.viewer.item
        if item is None:
            return
        self.model.toggle_mark(item.id)
        self.detail_next()

    def reply(self) -> None:
        item = self.viewer.item
        if item is None or not item.messages:
            return
        last = item.messages[-1]
        seed = reply_seed(last, self.config.reply_re, self.config.reply_prefix, self.config.signature)
        thread_id = last.thread_id or (item.id if self.config.threads else "")
        self._compose(seed, thread_id=thread_id)

    def save_body(self) -> None:
        item = self.viewer.item
        if item is None:
            return
        self._open_navigator(
            save=True,
            filename=default_filename(item.subject),
            on_done=self._write_body,
            on_open=self._open_body,
        )

    def _write_body(self, path: str) -> None:
        text = "\n".join(self.viewer.body_lines(self.clock()))
        try:
            with open(path, "w", encoding="utf-8") as fp:
                fp.write(text)
        except OSError as err:
            self.state.status = f"Cannot write {path}: {err.strerror or err}"
            self._log("ERR", f"save body failed path={path} err={err}")
            return
        self.state.status = f"Saved to {path}"
        self._log("ACTION", f"save body done path={path} len={len(text)}")

    def _open_body(self) -> None:
        text = "\n".join(self.viewer.body_lines(self.clock()))
        try:
            open_with(text, self.config.opener, suspend=self._suspend_terminal, logger=self.logger)
        except EditorError as err:
            self.state.status = f"Opening failed: {err}"
            self._log("ERR", f"open body failed err={err}")
            return
        self.state.status = f"Opened with {self.config.opener}"

    def add_label(self) -> None:
        self._change_label(add=True)

    def remove_label(self) -> None:
        self._change_label(add=False)

    def _change_label(self, add: bool) -> None:
        item = self.viewer.item
        if item is None:
            return
        verb = "adding label" if add else "removing label"
        name = self._prompt_text_modal(verb.upper(), "Label name:", max_len=100)
        if not name:
            self.state.status = "Label change cancelled."
            return
        label_id = self.label_id(name)
        if label_id is None:
            self.state.status = f"Unknown label {name!r}"
            return
        threads = self.config.threads
        try:
            if add:
                self.service.modify_labels(item.id, add=[label_id], thread=threads)
            else:
                self.service.modify_labels(item.id, remove=[label_id], thread=threads)
        except GmailError as err:
            self.state.status = f"Error {verb}: {err}"
            return
        self.state.status = f"Label {name!r} {'added' if add else 'removed'}."

    def archive_open(self) -> None:
        item = self.viewer.item
        if item is None:
            return
        try:
            self.service.modify_labels(item.id, remove=[INBOX], thread=self.config.threads)
        except GmailError as err:
            self.state.status = f"Error archiving: {err}"
            return
        self.close_detail()
        self.refresh()
        self.state.status = "Archived."

    def load_labels(self) -> None:
        self.state.labels = {label.name: label.id for label in self.service.list_labels()}
        self._log("ACTION", f"labels loaded count={len(self.state.labels)}")

    def label_id(self, name: str) -> Optional[str]:
        labels = self.state.labels
        if name in labels:
            return labels[name]
        for label_name, label_id in labels.items():
            if label_name.lower() == name.lower():
                return label_id
        return None

    # Editor.

    def _run_editor(self, text: str) -> str:
        return run_editor(
            text,
            editor_command(self.config.editor),
            suspend=self._suspend_terminal,
            logger=self.logger,
        )

    @contextlib.contextmanager
    def _suspend_terminal(self) -> Iterator[None]:
        if self.stdscr is None:
            yield
            return
        curses.def_prog_mode()
        curses.endwin()
        try:
            yield
        finally:
            curses.reset_prog_mode()
            self.stdscr.refresh()

    def _compose(self, seed: str, thread_id: str = "") -> None:
        self._show_loading("Running editor")
        try:
            result = run_editor_mode(seed, self.edit, on_retry=self._set_status, logger=self.logger)
        except UserCancelled:
            self.state.status = "Compose cancelled."
            return
        except EditorError as err:
            self.state.status = f"Running editor failed: {err}"
            self._log("ERR", f"editor failed err={err}")
            return

        if result.mode == "abort":
            self.state.status = "Sending aborted"
            return

        raw = mime_encode(strip_mode(result.text))
        try:
            if result.mode == "send":
                self.service.send_raw(raw, thread_id=thread_id)
                self.state.status = "Successfully sent"
            else:
                self.service.create_draft(raw, thread_id=thread_id)
                self.state.status = "Draft saved"
        except GmailError as err:
            what = "sending" if result.mode == "send" else "saving draft"
            self.state.status = f"Error {what}: {err}"
            self._log("ERR", f"compose {what} failed err={err}")
            return
        self._log("ACTION", f"compose done mode={result.mode} thread={thread_id or '(new)'}")

    # File dialogs.

    def _open_navigator(
        self,
        save: bool,
        filename: str,
        on_done: Callable[[str], None],
        on_open: Optional[Callable[[], None]] = None,
    ) -> None:
        try:
            navigator = FileNavigator(
                self.start_dir or os.getcwd(), save=save, filename=filename, logger=self.logger
            )
        except OSError as err:
            self.state.status = f"Cannot list directory: {err}"
            self._log("ERR", f"navigator start failed err={err}")
            return
        state = self.state
        state.mode_before_navigator = state.mode
        state.mode = ViewMode.FILE_SAVE if save else ViewMode.FILE_OPEN
        state.navigator = navigator
        state.nav_done = on_done
        state.nav_open = on_open
        state.nav_window = self._new_window()
        state.status = ""

    def _close_navigator(self) -> None:
        state = self.state
        state.mode = state.mode_before_navigator
        state.navigator = None
        state.nav_done = None
        state.nav_open = None
        state.nav_window = None
        self._set_cursor_visible(False)

    def _navigator_step(self, step: Callable[[FileNavigator], Optional[str]]) -> bool:
        state = self.state
        try:
            path = step(state.navigator)
        except UserCancelled:
            self._close_navigator()
            state.status = "Cancelled."
            return True
        except OpenRequested:
            on_open = state.nav_open
            self._close_navigator()
            if on_open is not None:
                on_open()
            return True
        if path is None:
            return True
        on_done = state.nav_done
        self._close_navigator()
        if on_done is not None:
            on_done(path)
        return True

    def _new_window(self):
        if self.stdscr is None:
            return None
        height, width = self.stdscr.getmaxyx()
        try:
            return self.stdscr.subwin(max(3, height - 5), max(10, width - 4), 2, 2)
        except curses.error:
            return None

    # Drawing.

    def _draw(self, stdscr) -> None:
        stdscr.erase()
        height, width = stdscr.getmaxyx()
        if self.state.mode == ViewMode.DETAIL:
            self._draw_detail(stdscr, height, width)
        else:
            self._draw_list(stdscr, height, width)
        stdscr.refresh()
        if self.state.navigator is not None and self.state.nav_window is not None:
            self._draw_navigator(self.state.nav_window)
        if self.state.help_visible:
            self._draw_help_modal(stdscr, height, width)
            stdscr.refresh()

    def _draw_list(self, stdscr, height: int, width: int) -> None:
        kind = "threads" if self.config.threads else "messages"
        marked = len(self.model.marked)
        header = f"tui-gmail | {self.config.query} | {len(self.model)} {kind}"
        if marked:
            header += f" | {marked} marked"
        self._safe_addstr(stdscr, 0, 0, self._fit(header, width), curses.A_BOLD)

        usable_rows = max(1, height - 3)
        rows = self.model.render(usable_rows, self.clock())
        if rows:
            for y, (line, current) in enumerate(rows, start=1):
                attr = curses.A_REVERSE if current else curses.A_NORMAL
                self._safe_addstr(stdscr, y, 0, self._fit(line, width), attr)
        else:
            self._safe_addstr(stdscr, 1, 0, self._fit("No messages.", width), curses.A_DIM)

        help_line = "j/k: move | Enter: open | x: mark | d: trash | e: archive | c: compose | r: refresh | ?: help | q: quit"
        self._safe_addstr(stdscr, height - 2, 0, self._fit(self.state.status, width), curses.A_DIM)
        self._safe_addstr(stdscr, height - 1, 0, self._fit(help_line, width), curses.A_DIM)

    def _draw_detail(self, stdscr, height: int, width: int) -> None:
        lines = self.viewer.render(width, max(1, height - 1), self.clock())
        header_count = len(self.viewer.header_lines(width))
        for y, line in enumerate(lines):
            attr = curses.A_BOLD if y < header_count else curses.A_NORMAL
            self._safe_addstr(stdscr, y, 0, self._fit(line, width), attr)
        self._safe_addstr(stdscr, height - 1, 0, self._fit(self.state.status, width), curses.A_DIM)

    def _draw_navigator(self, win) -> None:
        nav = self.state.navigator
        win.erase()
        height, width = win.getmaxyx()
        inner = max(1, width - 4)
        y = 1
        if nav.save:
            prompt = "Filename> "
            self._safe_addstr(win, y, 2, self._fit(prompt + nav.filename, inner))
            self._safe_addstr(win, y + 1, 2, self._fit(f"Current dir: {nav.directory}", inner))
            marker = " > " if nav.cursor == -1 else "   "
            attr = curses.A_BOLD if nav.cursor == -1 else curses.A_NORMAL
            self._safe_addstr(win, y + 3, 1, self._fit(marker + "<save>", inner), attr)
            y += 4
        else:
            self._safe_addstr(win, y, 2, self._fit(f"{nav.title}: {nav.directory}", inner), curses.A_BOLD)
            y += 2

        rows = max(1, height - y - 2)
        offset = nav.offset(rows)
        for n in range(offset, min(len(nav.entries), offset + rows)):
            entry = nav.entries[n]
            current = n == nav.cursor
            marker = " > " if current else "   "
            attr = curses.A_BOLD if current else curses.A_NORMAL
            self._safe_addstr(win, y, 1, self._fit(marker + entry.display_name, inner), attr)
            y += 1

        if nav.error:
            self._safe_addstr(win, height - 2, 2, self._fit(nav.error, inner), curses.A_DIM)
        win.border()
        if nav.editing:
            self._set_cursor_visible(True)
            try:
                win.move(1, min(width - 2, 2 + len("Filename> ") + len(nav.filename)))
            except curses.error:
                pass
        else:
            self._set_cursor_visible(False)
        win.refresh()

    def help_lines(self) -> List[str]:
        lines = ["HELP - tui-gmail", ""]
        for table, title in HELP_TITLES.items():
            lines.append(f"{title}:")
            actions: Dict[str, List[str]] = {}
            for ch, action in self.keymap.tables[table].items():
                actions.setdefault(action, []).append(keys.key_name(ch))
            for action, names in actions.items():
                lines.append(f"  {', '.join(names)}: {action.replace('_', ' ')}")
            lines.append("")
        lines.append("Close help: ?, Esc, Enter, or q")
        return lines

    def _draw_help_modal(self, stdscr, height: int, width: int) -> None:
        lines = self.help_lines()
        if width < 20 or height < 8:
            self._safe_addstr(stdscr, 0, 0, self._fit("Help: terminal too small.", width), curses.A_REVERSE)
            return
        top, left, box_w, box_h = self._draw_box(stdscr, height, width, max(len(line) for line in lines) + 4, len(lines) + 2)
        for i, line in enumerate(lines[: box_h - 2]):
            attr = curses.A_REVERSE | (curses.A_BOLD if i == 0 else 0)
            self._safe_addstr(stdscr, top + 1 + i, left + 2, self._fit(line, box_w - 4), attr)

    def _draw_box(self, stdscr, height: int, width: int, want_w: int, want_h: int):
        box_w = min(width - 4, want_w)
        box_h = min(height - 4, want_h)
        left = max(0, (width - box_w) // 2)
        top = max(0, (height - box_h) // 2)
        right = left + box_w - 1
        bottom = top + box_h - 1

        for x in range(left, right + 1):
            ch = "+" if x in (left, right) else "-"
            self._safe_addstr(stdscr, top, x, ch, curses.A_BOLD)
            self._safe_addstr(stdscr, bottom, x, ch, curses.A_BOLD)
        for y in range(top + 1, bottom):
            self._safe_addstr(stdscr, y, left, "|", curses.A_BOLD)
            self._safe_addstr(stdscr, y, left + 1, " " * max(0, box_w - 2), curses.A_REVERSE)
            self._safe_addstr(stdscr, y, right, "|", curses.A_BOLD)
        return top, left, box_w, box_h

    def _draw_text_modal(self, stdscr, title: str, prompt: str, value: str) -> None:
        height, width = stdscr.getmaxyx()
        if width < 24 or height < 8:
            self._safe_addstr(stdscr, 0, 0, self._fit("Modal: terminal too small.", width), curses.A_REVERSE)
            return
        top, left, box_w, _ = self._draw_box(stdscr, height, width, max(42, len(prompt) + 4), 7)
        max_line_w = box_w - 4
        self._safe_addstr(stdscr, top + 1, left + 2, self._fit(title, max_line_w), curses.A_REVERSE | curses.A_BOLD)
        self._safe_addstr(stdscr, top + 2, left + 2, self._fit(prompt, max_line_w), curses.A_REVERSE)
        self._safe_addstr(stdscr, top + 4, left + 2, self._fit(value, max_line_w), curses.A_REVERSE)

    def _confirm_modal(self, title: str, prompt: str) -> bool:
        if self.stdscr is None:
            return False

        self._log("ACTION", f"confirm modal open title={title}")
        while True:
            self._draw(self.stdscr)
            self._draw_text_modal(self.stdscr, title, prompt, "Press y to confirm, or n/Esc to cancel.")
            self.stdscr.refresh()
            ch = self.stdscr.getch()
            if ch in (ord("y"), ord("Y")):
                return True
            if ch in (ord("n"), ord("N"), 27):
                return False

    def _prompt_text_modal(self, title: str, prompt: str, max_len: int) -> Optional[str]:
        if self.stdscr is None:
            return None

        value = ""
        while True:
            self._draw(self.stdscr)
            self._draw_text_modal(self.stdscr, title, prompt, value)
            self.stdscr.refresh()
            ch = self.stdscr.getch()

            if ch == 27:
                return None
            if ch in (curses.KEY_ENTER, 10, 13):
                return value.strip()
            if ch in (curses.KEY_BACKSPACE, 127, 8):
                value = value[:-1]
                continue
            if 32 <= ch <= 126 and len(value) < max_len:
                value += chr(ch)

    def _show_loading(self, message: str) -> None:
        self.state.status = message
        self._log("STATE", f"loading message={truncate(message)}")
        if self.stdscr is None:
            return
        self._draw(self.stdscr)

    @staticmethod
    def _fit(text: str, width: int) -> str:
        if width <= 0:
            return ""
        text = text.replace("\t", "    ")
        if len(text) <= width:
            return text
        if width <= 3:
            return text[:width]
        return text[: width - 3] + "..."

    @staticmethod
    def _safe_addstr(win, y: int, x: int, text: str, attr: int = 0) -> None:
        try:
            win.addstr(y, x, text, attr)
        except curses.error:
            pass

    @staticmethod
    def _set_cursor_visible(visible: bool) -> None:
        try:
            curses.curs_set(1 if visible else 0)
        except curses.error:
            pass


def default_filename(subject: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", subject).strip("._")[:60]
    return (name or "message") + ".txt"
