import datetime
import os
import threading
from typing import Optional


class DebugLogger:
    """Append-only debug log shared by the UI thread and fetch workers."""

    def __init__(self, path: Optional[str]) -> None:
        self.path = os.path.abspath(path) if path else None
        self.enabled = bool(path)
        self._lock = threading.Lock()
        if not self.enabled:
            return
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self.log("BOOT", f"debug enabled path={self.path}")

    def log(self, category: str, message: str) -> None:
        if not self.enabled or not self.path:
            return
        stamp = datetime.datetime.now().isoformat(timespec="milliseconds")
        worker = threading.current_thread().name
        line = f"{stamp} [{category}] ({worker}) {message}".replace("\n", "\\n")
        with self._lock:
            try:
                with open(self.path, "a", encoding="utf-8") as fp:
                    fp.write(line + "\n")
            except OSError:
                pass


def log(logger: Optional[DebugLogger], category: str, message: str) -> None:
    if logger:
        logger.log(category, message)


def truncate(text: str, limit: int = 200) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
