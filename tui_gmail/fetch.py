"""Parallel fetches whose results are applied on the calling thread.

Workers never touch session state. Each one returns an apply action and
`Parallel.run` invokes those actions one at a time, in completion order,
on the thread that called it.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .debuglog import DebugLogger, log

T = TypeVar("T")

Apply = Callable[[], None]
Work = Callable[[], Apply]


@dataclass
class BatchResult:
    ok: int = 0
    fail: int = 0
    error: str = ""

    def record_failure(self, message: str) -> None:
        self.fail += 1
        self.error = message


class Parallel:
    def __init__(self, logger: Optional[DebugLogger] = None) -> None:
        self.logger = logger
        self._work: List[Work] = []

    def add(self, work: Work) -> None:
        self._work.append(work)

    def __len__(self) -> int:
        return len(self._work)

    def run(self) -> int:
        work, self._work = self._work, []
        if not work:
            return 0
        log(self.logger, "STATE", f"parallel start workers={len(work)}")
        applied = 0
        with ThreadPoolExecutor(max_workers=len(work), thread_name_prefix="fetch") as pool:
            futures = [pool.submit(item) for item in work]
            for future in as_completed(futures):
                apply = future.result()
                apply()
                applied += 1
        log(self.logger, "STATE", f"parallel done applied={applied}")
        return applied


def fetch_all(
    ids: Iterable[str],
    fetch: Callable[[str], T],
    verb: str = "fetching",
    logger: Optional[DebugLogger] = None,
) -> Tuple[Dict[str, T], BatchResult]:
    results: Dict[str, T] = {}
    batch = BatchResult()
    p = Parallel(logger=logger)

    def worker(item_id: str) -> Work:
        def run() -> Apply:
            try:
                value = fetch(item_id)
            except Exception as err:
                message = f"Error {verb} {item_id!r}: {err}"

                def failed() -> None:
                    batch.record_failure(message)

                return failed

            def done() -> None:
                results[item_id] = value
                batch.ok += 1

            return done

        return run

    for item_id in ids:
        p.add(worker(item_id))
    p.run()
    return results, batch


def background(work: Callable[[], object], logger: Optional[DebugLogger], what: str) -> threading.Thread:
    """Run `work` on a daemon thread; failures only reach the debug log."""

    def run() -> None:
        try:
            work()
        except Exception as err:
            log(logger, "WARN", f"background {what} failed err={err}")
            return
        log(logger, "ACTION", f"background {what} done")

    thread = threading.Thread(target=run, name=f"bg-{what}", daemon=True)
    thread.start()
    return thread
