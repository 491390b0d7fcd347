import datetime
from email.utils import parseaddr, parsedate_to_datetime
from typing import Callable, List, Optional, Sequence, Set, Tuple

from .debuglog import DebugLogger, log
from .fetch import BatchResult, fetch_all
from .gmail import UNREAD

TS_WIDTH = 7
FROM_WIDTH = 20
LOOKBACK = 5

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def parse_date(value: str) -> Optional[datetime.datetime]:
    if not value.strip():
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def time_string(date_header: str, now: Optional[datetime.datetime] = None) -> str:
    ts = parse_date(date_header)
    if ts is None:
        return "Unknown"
    if now is None:
        now = datetime.datetime.now().astimezone()
    elif now.tzinfo is None:
        now = now.astimezone()
    ts = ts.astimezone(now.tzinfo)
    if now - ts > datetime.timedelta(days=365):
        return f"{ts.year:04d}"
    if ts.date() != now.date():
        return f"{_MONTHS[ts.month - 1]} {ts.day:02d}"
    return f"{ts.hour:02d}:{ts.minute:02d}"


def from_string(from_header: str) -> str:
    name, address = parseaddr(from_header)
    if name:
        return name
    if address:
        return address
    return from_header


def visible_offset(cursor: int, height: int, lookback: int = LOOKBACK) -> int:
    if height <= 0 or cursor < height:
        return 0
    return max(0, cursor - min(lookback, height - 1))


def format_row(item, marked: bool, current: bool, now: Optional[datetime.datetime] = None) -> str:
    sender = from_string(item.header("From"))[:FROM_WIDTH]
    line = f" {time_string(item.header('Date'), now):>{TS_WIDTH}} | {sender:>{FROM_WIDTH}} | {item.subject}"
    if marked:
        line = "X" + line
    elif item.has_label(UNREAD):
        line = ">" + line
    else:
        line = " " + line
    return ("*" if current else " ") + line


class ListModel:
    def __init__(self, items: Sequence = ()) -> None:
        self.items: List = list(items)
        self.current = 0
        self.marked: Set[str] = set()
        self.show_details = False

    def __len__(self) -> int:
        return len(self.items)

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]

    @property
    def selected(self):
        if not self.items:
            return None
        return self.items[self.current]

    def refresh(self, items: Sequence) -> None:
        self.items = list(items)
        present = set(self.ids)
        self.marked &= present
        self._fix_current()

    def _fix_current(self) -> None:
        if self.current >= len(self.items):
            self.current = len(self.items) - 1
        if self.current < 0:
            self.current = 0

    def move_next(self) -> None:
        if self.current < len(self.items) - 1:
            self.current += 1

    def move_previous(self) -> None:
        if self.current > 0:
            self.current -= 1

    def toggle_mark(self, item_id: str) -> None:
        if item_id in self.marked:
            self.marked.discard(item_id)
        else:
            self.marked.add(item_id)

    def toggle_details(self) -> None:
        self.show_details = not self.show_details

    def is_marked(self, item_id: str) -> bool:
        return item_id in self.marked

    def marked_ids(self) -> List[str]:
        return [item_id for item_id in self.ids if item_id in self.marked]

    def render(self, height: int, now: Optional[datetime.datetime] = None) -> List[Tuple[str, bool]]:
        """Return up to `height` (text, is_current) pairs for the visible window."""
        if now is None:
            now = datetime.datetime.now().astimezone()
        budget = height - 1 if self.show_details else height
        offset = visible_offset(self.current, max(1, budget))
        out: List[Tuple[str, bool]] = []
        for n in range(offset, len(self.items)):
            if len(out) >= height:
                break
            item = self.items[n]
            is_current = n == self.current
            out.append((format_row(item, item.id in self.marked, is_current, now), is_current))
            if is_current and self.show_details and len(out) < height:
                out.append((f"    {item.snippet}", False))
        return out


def apply_marked(
    model: ListModel,
    verb: str,
    mutate: Callable[[str], object],
    logger: Optional[DebugLogger] = None,
) -> Tuple[BatchResult, str]:
    ids = model.marked_ids()
    log(logger, "ACTION", f"batch {verb} count={len(ids)}")
    results, batch = fetch_all(ids, mutate, verb=verb, logger=logger)
    for item_id in results:
        model.marked.discard(item_id)
    if batch.fail:
        status = f"{batch.ok} {verb} OK, {batch.fail} failed: {batch.error}"
        log(logger, "ERR", f"batch {verb} ok={batch.ok} fail={batch.fail} err={batch.error}")
    else:
        status = f"OK, {verb} {batch.ok} messages"
    return batch, status
