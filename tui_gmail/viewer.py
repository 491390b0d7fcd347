import datetime
from typing import List, Optional

from .gmail import UNREAD
from .message_list import time_string

LINE_STEP = 2
DEFAULT_HEIGHT = 20


class DetailViewer:
    def __init__(self, height: int = DEFAULT_HEIGHT) -> None:
        self.item = None
        self.index = 0
        self.total = 0
        self.scroll = 0
        self.height = height

    def open(self, item, index: int, total: int) -> None:
        self.item = item
        self.index = index
        self.total = total
        self.scroll = 0

    def close(self) -> None:
        self.item = None
        self.scroll = 0

    @property
    def is_open(self) -> bool:
        return self.item is not None

    def page_down(self, height: Optional[int] = None) -> None:
        self._scroll_by(self._use_height(height), height)

    def page_up(self, height: Optional[int] = None) -> None:
        self._scroll_by(-self._use_height(height), height)

    def scroll_down(self, height: Optional[int] = None) -> None:
        self._scroll_by(LINE_STEP, height)

    def scroll_up(self, height: Optional[int] = None) -> None:
        self._scroll_by(-LINE_STEP, height)

    def _use_height(self, height: Optional[int]) -> int:
        if height is not None:
            self.height = max(1, height)
        return self.height

    def _scroll_by(self, delta: int, height: Optional[int]) -> None:
        self._use_height(height)
        self.scroll += delta
        self.clamp(len(self.body_lines()), self.height, len(self.header_lines(0)))

    def clamp(self, total_lines: int, height: int, padding: int) -> int:
        max_scroll = max(0, total_lines - height + padding)
        if self.scroll > max_scroll:
            self.scroll = max_scroll
        if self.scroll < 0:
            self.scroll = 0
        return self.scroll

    def header_lines(self, width: int) -> List[str]:
        item = self.item
        if item is None:
            return []
        messages = item.messages
        if len(messages) > 1:
            position = f"Thread {self.index + 1} of {self.total} ({len(messages)} messages)"
        else:
            position = f"Email {self.index + 1} of {self.total}"
        return [
            position,
            f"From: {item.header('From')}",
            f"Date: {item.header('Date')}",
            f"Subject: {item.subject}",
            "-" * max(0, width),
        ]

    def body_lines(self, now: Optional[datetime.datetime] = None) -> List[str]:
        item = self.item
        if item is None:
            return []
        messages = item.messages
        if len(messages) == 1:
            return messages[0].body().split("\n")

        lines: List[str] = []
        last = len(messages) - 1
        for n, msg in enumerate(messages):
            lines.append(f"{time_string(msg.header('Date'), now):>7} - {msg.header('From')}")
            if msg.has_label(UNREAD) or n == last:
                lines.extend(msg.body().split("\n"))
                lines.append("")
        return lines

    def render(self, width: int, height: int, now: Optional[datetime.datetime] = None) -> List[str]:
        """Return at most `height` lines: the fixed header, then the scrolled body."""
        self._use_height(height)
        header = self.header_lines(width)
        body = self.body_lines(now)
        self.clamp(len(body), height, len(header))
        visible = header + body[self.scroll :]
        return visible[: max(0, height)]
