import contextlib
import os
import re
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Callable, ContextManager, List, Optional

from .debuglog import DebugLogger, log, truncate

MODES = ("send", "draft", "abort")
MAX_LINE = 80
SPACES = " \t\r"

_MODE_RE = re.compile(r"(?:^|\n)Mode: (\w+)(?:$|\n)")
_MODE_LINE_RE = re.compile(r"^Mode: \w+[ \t\r]*$")

COMPOSE_TEMPLATE = "To: \nSubject: \nMode: Send\n\n"


class EditorError(OSError):
    pass


class UserCancelled(Exception):
    pass


@dataclass
class EditorResult:
    mode: str
    text: str


def editor_command(default: str) -> str:
    return os.environ.get("EDITOR", "").strip() or default


def run_editor(
    text: str,
    command: str,
    suspend: Optional[Callable[[], ContextManager]] = None,
    logger: Optional[DebugLogger] = None,
) -> str:
    return _run_on_tempfile(text, command, suspend, logger, read_back=True)


def open_with(
    text: str,
    command: str,
    suspend: Optional[Callable[[], ContextManager]] = None,
    logger: Optional[DebugLogger] = None,
) -> None:
    """Show `text` in an external program; the temp file is gone once it exits."""
    _run_on_tempfile(text, command, suspend, logger, read_back=False)


def _run_on_tempfile(
    text: str,
    command: str,
    suspend: Optional[Callable[[], ContextManager]],
    logger: Optional[DebugLogger],
    read_back: bool,
) -> str:
    try:
        fd, path = tempfile.mkstemp(prefix="tui-gmail-", suffix=".txt")
    except OSError as err:
        raise EditorError(f"creating tempfile: {err}") from err

    try:
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(text)
        except OSError as err:
            raise EditorError(f"writing tempfile: {err}") from err

        argv = shlex.split(command) + [path]
        log(logger, "ACTION", f"external start argv={argv}")
        with (suspend or contextlib.nullcontext)():
            try:
                proc = subprocess.run(argv, check=False)
            except OSError as err:
                raise EditorError(f"failed to open {command!r}: {err}") from err
        if proc.returncode != 0:
            raise EditorError(f"{command!r} exited with status {proc.returncode}")
        if not read_back:
            log(logger, "ACTION", f"external done argv={argv}")
            return ""

        try:
            with open(path, "r", encoding="utf-8", errors="replace") as fp:
                result = fp.read()
        except OSError as err:
            raise EditorError(f"reading back editor output: {err}") from err
        log(logger, "ACTION", f"editor done len={len(result)}")
        return result
    finally:
        with contextlib.suppress(OSError):
            os.remove(path)


def parse_mode(text: str) -> Optional[str]:
    parts = text.split("\n\n", 1)
    if len(parts) != 2:
        return None
    match = _MODE_RE.search(parts[0])
    if not match:
        return None
    mode = match.group(1).lower()
    if mode not in MODES:
        return None
    return mode


def rejection_reason(text: str) -> str:
    parts = text.split("\n\n", 1)
    if len(parts) != 2:
        return "Malformed email, reopening editor"
    match = _MODE_RE.search(parts[0])
    if not match:
        return f"Sending mode not present in {truncate(parts[0], 60)!r}, trying again"
    return f"Unknown mode {match.group(1)!r}, trying again"


def run_editor_mode(
    text: str,
    run: Callable[[str], str],
    on_retry: Optional[Callable[[str], None]] = None,
    logger: Optional[DebugLogger] = None,
) -> EditorResult:
    seed = text
    retrying = False
    while True:
        result = run(seed)
        mode = parse_mode(result)
        if mode is not None:
            log(logger, "ACTION", f"editor mode={mode}")
            return EditorResult(mode=mode, text=result)
        if retrying and result == seed:
            log(logger, "ACTION", "editor closed without fixing input")
            raise UserCancelled("editor closed without a valid Mode header")
        reason = rejection_reason(result)
        log(logger, "WARN", f"editor output rejected reason={reason}")
        if on_retry:
            on_retry(reason)
        seed = result
        retrying = True


def strip_mode(text: str) -> str:
    parts = text.split("\n\n", 1)
    if len(parts) != 2:
        return text
    headers = [line for line in parts[0].split("\n") if not _MODE_LINE_RE.match(line)]
    return "\n".join(headers) + "\n\n" + parts[1]


def compose_seed(signature: str, body: str = "") -> str:
    text = COMPOSE_TEMPLATE
    if body:
        text += body.rstrip("\n") + "\n\n"
    return text + signature


def quote_body(body: str) -> List[str]:
    quoted: List[str] = []
    for line in body.split("\n"):
        line = line.rstrip(SPACES)
        while len(line) > MAX_LINE:
            quoted.append("> " + line[:MAX_LINE].rstrip(SPACES))
            line = line[MAX_LINE:].lstrip(SPACES)
        if line:
            quoted.append("> " + line)
        else:
            quoted.append(">")
    return quoted


def reply_subject(subject: str, reply_re: "re.Pattern", prefix: str) -> str:
    if reply_re.match(subject):
        return subject
    return prefix + subject


def reply_seed(message, reply_re: "re.Pattern", prefix: str, signature: str) -> str:
    to = message.header("Reply-To") or message.header("From")
    headers = [
        f"To: {to}",
        f"Subject: {reply_subject(message.header('Subject'), reply_re, prefix)}",
    ]
    message_id = message.header("Message-ID") or message.header("Message-Id")
    if message_id:
        refs = message.header("References")
        headers.append(f"In-Reply-To: {message_id}")
        headers.append(f"References: {(refs + ' ' + message_id).strip()}")
    headers.append("Mode: Send")

    lines = [f"On {message.header('Date')}, {message.header('From')} said:"]
    lines.extend(quote_body(message.body()))
    return "\n".join(headers) + "\n\n" + "\n".join(lines) + "\n\n" + signature
