import base64
import binascii
import json
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

import httpx

from .debuglog import DebugLogger, log, truncate

INBOX = "INBOX"
UNREAD = "UNREAD"
TRASH = "TRASH"

DEFAULT_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"


class GmailError(RuntimeError):
    pass


def mime_encode(data) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    text = base64.b64encode(data).decode("ascii")
    return text.replace("+", "-").replace("/", "_")


def mime_decode(text: str) -> bytes:
    text = text.replace("-", "+").replace("_", "/")
    # The service strips trailing padding from payload data.
    text += "=" * (-len(text) % 4)
    return base64.b64decode(text, validate=True)


@dataclass(frozen=True)
class BodyPart:
    mime_type: str
    data: str


@dataclass(frozen=True)
class RemoteMessage:
    id: str
    thread_id: str = ""
    label_ids: FrozenSet[str] = frozenset()
    headers: Tuple[Tuple[str, str], ...] = ()
    parts: Tuple[BodyPart, ...] = ()
    snippet: str = ""

    def header(self, name: str) -> str:
        for key, value in self.headers:
            if key == name:
                return value
        return ""

    def has_label(self, label: str) -> bool:
        return label in self.label_ids

    @property
    def messages(self) -> Tuple["RemoteMessage", ...]:
        return (self,)

    @property
    def subject(self) -> str:
        return self.header("Subject")

    def body(self) -> str:
        if not self.parts:
            return ""
        if len(self.parts) == 1:
            chosen = self.parts[0]
        else:
            plain = [part for part in self.parts if part.mime_type == "text/plain"]
            if not plain:
                return "(no text/plain part in message)"
            chosen = plain[0]
        try:
            return mime_decode(chosen.data).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as err:
            return f"(content error: {err})"


@dataclass(frozen=True)
class RemoteThread:
    id: str
    messages: Tuple[RemoteMessage, ...] = ()

    @property
    def label_ids(self) -> FrozenSet[str]:
        labels: set = set()
        for msg in self.messages:
            labels |= msg.label_ids
        return frozenset(labels)

    def has_label(self, label: str) -> bool:
        return label in self.label_ids

    def header(self, name: str) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].header(name)

    @property
    def subject(self) -> str:
        if not self.messages:
            return ""
        return self.messages[0].header("Subject")

    @property
    def snippet(self) -> str:
        if not self.messages:
            return ""
        return self.messages[-1].snippet


@dataclass(frozen=True)
class ItemSummary:
    id: str
    thread_id: str = ""


@dataclass(frozen=True)
class Label:
    name: str
    id: str


def _flatten_parts(payload: Dict[str, Any]) -> List[BodyPart]:
    children = payload.get("parts") or []
    if not children:
        body = payload.get("body") or {}
        return [BodyPart(str(payload.get("mimeType", "")), str(body.get("data", "")))]
    parts: List[BodyPart] = []
    for child in children:
        parts.extend(_flatten_parts(child))
    return parts


def parse_message(data: Dict[str, Any]) -> RemoteMessage:
    payload = data.get("payload") or {}
    headers = tuple(
        (str(h.get("name", "")), str(h.get("value", "")))
        for h in payload.get("headers") or []
    )
    return RemoteMessage(
        id=str(data.get("id", "")),
        thread_id=str(data.get("threadId", "")),
        label_ids=frozenset(data.get("labelIds") or []),
        headers=headers,
        parts=tuple(_flatten_parts(payload)) if payload else (),
        snippet=str(data.get("snippet", "")),
    )


def parse_thread(data: Dict[str, Any]) -> RemoteThread:
    return RemoteThread(
        id=str(data.get("id", "")),
        messages=tuple(parse_message(m) for m in data.get("messages") or []),
    )


class GmailClient:
    def __init__(
        self,
        access_token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        logger: Optional[DebugLogger] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.logger = logger
        self._http = httpx.Client(
            base_url=self.api_base,
            timeout=httpx.Timeout(timeout),
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def list_threads(self, query: str, max_results: int) -> List[ItemSummary]:
        data = self._request("GET", "/threads", params={"q": query, "maxResults": max_results})
        return [ItemSummary(id=str(t["id"])) for t in data.get("threads") or []]

    def list_messages(self, query: str, max_results: int) -> List[ItemSummary]:
        data = self._request("GET", "/messages", params={"q": query, "maxResults": max_results})
        return [
            ItemSummary(id=str(m["id"]), thread_id=str(m.get("threadId", "")))
            for m in data.get("messages") or []
        ]

    def get_thread(self, thread_id: str) -> RemoteThread:
        data = self._request("GET", f"/threads/{_quote(thread_id)}", params={"format": "full"})
        return parse_thread(data)

    def get_message(self, message_id: str) -> RemoteMessage:
        data = self._request("GET", f"/messages/{_quote(message_id)}", params={"format": "full"})
        return parse_message(data)

    def modify_labels(
        self,
        item_id: str,
        add: Iterable[str] = (),
        remove: Iterable[str] = (),
        thread: bool = False,
    ) -> None:
        kind = "threads" if thread else "messages"
        body = {"addLabelIds": list(add), "removeLabelIds": list(remove)}
        self._request("POST", f"/{kind}/{_quote(item_id)}/modify", body=body)

    def trash(self, item_id: str, thread: bool = False) -> None:
        kind = "threads" if thread else "messages"
        self._request("POST", f"/{kind}/{_quote(item_id)}/trash")

    def send_raw(self, raw: str, thread_id: str = "") -> None:
        body = {"raw": raw}
        if thread_id:
            body["threadId"] = thread_id
        self._request("POST", "/messages/send", body=body)

    def create_draft(self, raw: str, thread_id: str = "") -> None:
        message = {"raw": raw}
        if thread_id:
            message["threadId"] = thread_id
        self._request("POST", "/drafts", body={"message": message})

    def list_labels(self) -> List[Label]:
        data = self._request("GET", "/labels")
        return [
            Label(name=str(item.get("name", "")), id=str(item.get("id", "")))
            for item in data.get("labels") or []
        ]

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        log(self.logger, "HTTP", f"{method} {path} params={params or {}}")
        try:
            response = self._http.request(method, path, params=params, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            status = err.response.status_code
            msg = f"HTTP {status} on {method} {path}: {_error_message(err.response.text.strip())}"
            log(self.logger, "ERR", truncate(msg, 400))
            raise GmailError(msg) from err
        except httpx.RequestError as err:
            msg = f"network error on {method} {path}: {err}"
            log(self.logger, "ERR", msg)
            raise GmailError(msg) from err

        raw = response.content
        log(self.logger, "HTTP", f"{method} {path} ok bytes={len(raw)}")
        if not raw.strip():
            return {}
        try:
            return response.json()
        except ValueError as err:
            raise GmailError(f"invalid JSON from {method} {path}: {err}") from err


def _quote(item_id: str) -> str:
    return urllib.parse.quote(item_id, safe="")


def _error_message(detail: str) -> str:
    try:
        data = json.loads(detail)
    except ValueError:
        return truncate(detail or "(no body)")
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message") or detail)
    return truncate(detail)
