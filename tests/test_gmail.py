"""Tests for the Gmail value types, codec and REST client."""

import json
import unittest

import httpx

from fakes import make_message
from tui_gmail.gmail import (
    UNREAD,
    BodyPart,
    GmailClient,
    GmailError,
    RemoteMessage,
    mime_decode,
    mime_encode,
    parse_message,
    parse_thread,
)


class CodecTests(unittest.TestCase):
    def test_url_safe_substitution(self) -> None:
        # b"\xfb\xff\xbf" is "+/+/" in standard base64.
        self.assertEqual(mime_encode(b"\xfb\xff\xbf"), "-_-_")
        self.assertEqual(mime_decode("-_-_"), b"\xfb\xff\xbf")

    def test_round_trip(self) -> None:
        samples = [b"", b"a", b"ab", b"abc", bytes(range(256)), "héllo wörld".encode("utf-8")]
        for sample in samples:
            with self.subTest(sample=sample[:10]):
                self.assertEqual(mime_decode(mime_encode(sample)), sample)

    def test_encode_accepts_text(self) -> None:
        self.assertEqual(mime_decode(mime_encode("To: x\n\nbody")), b"To: x\n\nbody")

    def test_decode_restores_missing_padding(self) -> None:
        self.assertEqual(mime_decode("aGk"), b"hi")


class MessageTests(unittest.TestCase):
    def test_header_lookup_is_case_sensitive_first_match(self) -> None:
        msg = RemoteMessage(id="m1", headers=(("Subject", "first"), ("subject", "lower"), ("Subject", "second")))
        self.assertEqual(msg.header("Subject"), "first")
        self.assertEqual(msg.header("subject"), "lower")
        self.assertEqual(msg.header("X-Missing"), "")

    def test_body_prefers_text_plain_part(self) -> None:
        msg = RemoteMessage(
            id="m1",
            parts=(
                BodyPart("text/html", mime_encode("<p>html</p>")),
                BodyPart("text/plain", mime_encode("plain text")),
            ),
        )
        self.assertEqual(msg.body(), "plain text")

    def test_single_part_body_is_decoded_regardless_of_type(self) -> None:
        msg = RemoteMessage(id="m1", parts=(BodyPart("text/html", mime_encode("<b>x</b>")),))
        self.assertEqual(msg.body(), "<b>x</b>")

    def test_body_reports_bad_payload(self) -> None:
        msg = RemoteMessage(id="m1", parts=(BodyPart("text/plain", "a"),))
        self.assertIn("content error", msg.body())

    def test_parse_message_flattens_nested_parts(self) -> None:
        data = {
            "id": "m1",
            "threadId": "t1",
            "labelIds": ["INBOX", "UNREAD"],
            "snippet": "snip",
            "payload": {
                "mimeType": "multipart/mixed",
                "headers": [{"name": "Subject", "value": "Hi"}],
                "parts": [
                    {
                        "mimeType": "multipart/alternative",
                        "parts": [
                            {"mimeType": "text/plain", "body": {"data": mime_encode("plain")}},
                            {"mimeType": "text/html", "body": {"data": mime_encode("<p>")}},
                        ],
                    },
                    {"mimeType": "application/pdf", "body": {"attachmentId": "a1"}},
                ],
            },
        }
        msg = parse_message(data)
        self.assertEqual(msg.thread_id, "t1")
        self.assertTrue(msg.has_label(UNREAD))
        self.assertEqual([p.mime_type for p in msg.parts], ["text/plain", "text/html", "application/pdf"])
        self.assertEqual(msg.body(), "plain")
        self.assertEqual(msg.subject, "Hi")

    def test_thread_derives_from_messages(self) -> None:
        data = {
            "id": "t1",
            "messages": [
                {"id": "m1", "labelIds": ["INBOX"], "snippet": "one",
                 "payload": {"headers": [{"name": "Subject", "value": "Plan"},
                                         {"name": "From", "value": "a@example.com"}]}},
                {"id": "m2", "labelIds": ["UNREAD"], "snippet": "two",
                 "payload": {"headers": [{"name": "Subject", "value": "Re: Plan"},
                                         {"name": "From", "value": "b@example.com"}]}},
            ],
        }
        thread = parse_thread(data)
        self.assertEqual(thread.subject, "Plan")
        self.assertEqual(thread.header("From"), "b@example.com")
        self.assertEqual(thread.snippet, "two")
        self.assertEqual(thread.label_ids, frozenset({"INBOX", "UNREAD"}))
        self.assertTrue(thread.has_label(UNREAD))

    def test_message_is_immutable(self) -> None:
        msg = make_message("m1")
        with self.assertRaises(Exception):
            msg.id = "other"  # type: ignore[misc]


class ClientTests(unittest.TestCase):
    def make_client(self, handler) -> GmailClient:
        self.requests = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        client = GmailClient(
            "token-123",
            api_base="https://example.test/gmail/v1/users/me",
            transport=httpx.MockTransport(record),
        )
        self.addCleanup(client.close)
        return client

    def test_list_threads_sends_query_and_token(self) -> None:
        client = self.make_client(lambda request: httpx.Response(200, json={"threads": [{"id": "t1"}, {"id": "t2"}]}))
        result = client.list_threads("in:inbox", 20)
        self.assertEqual([s.id for s in result], ["t1", "t2"])
        request = self.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url.path, "/gmail/v1/users/me/threads")
        self.assertEqual(request.url.params["q"], "in:inbox")
        self.assertEqual(request.url.params["maxResults"], "20")
        self.assertEqual(request.headers["Authorization"], "Bearer token-123")

    def test_get_message_quotes_id(self) -> None:
        client = self.make_client(lambda request: httpx.Response(200, json={"id": "a/b", "snippet": "s"}))
        msg = client.get_message("a/b")
        self.assertEqual(msg.snippet, "s")
        self.assertEqual(self.requests[0].url.raw_path.split(b"?")[0], b"/gmail/v1/users/me/messages/a%2Fb")
        self.assertEqual(self.requests[0].url.params["format"], "full")

    def test_modify_labels_posts_label_lists(self) -> None:
        client = self.make_client(lambda request: httpx.Response(200, json={}))
        client.modify_labels("t1", remove=["UNREAD"], thread=True)
        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertTrue(request.url.path.endswith("/threads/t1/modify"))
        self.assertEqual(json.loads(request.content), {"addLabelIds": [], "removeLabelIds": ["UNREAD"]})

    def test_send_raw_includes_thread(self) -> None:
        client = self.make_client(lambda request: httpx.Response(200))
        client.send_raw("cmF3", thread_id="t9")
        request = self.requests[0]
        self.assertTrue(request.url.path.endswith("/messages/send"))
        self.assertEqual(json.loads(request.content), {"raw": "cmF3", "threadId": "t9"})

    def test_http_error_becomes_gmail_error(self) -> None:
        client = self.make_client(
            lambda request: httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})
        )
        with self.assertRaises(GmailError) as ctx:
            client.list_labels()
        self.assertIn("401", str(ctx.exception))
        self.assertIn("Invalid Credentials", str(ctx.exception))

    def test_network_error_becomes_gmail_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        client = self.make_client(refuse)
        with self.assertRaises(GmailError) as ctx:
            client.get_message("m1")
        self.assertIn("no route", str(ctx.exception))

    def test_invalid_json_becomes_gmail_error(self) -> None:
        client = self.make_client(lambda request: httpx.Response(200, content=b"<html>"))
        with self.assertRaises(GmailError):
            client.list_labels()


if __name__ == "__main__":
    unittest.main()
