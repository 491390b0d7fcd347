"""Tests for the detail viewer scrolling and layout."""

import datetime
import random
import unittest

from fakes import make_message, make_thread
from tui_gmail.gmail import UNREAD
from tui_gmail.viewer import LINE_STEP, DetailViewer

NOW = datetime.datetime(2026, 10, 18, 15, 30, tzinfo=datetime.timezone.utc)


def long_message(lines: int):
    return make_message("m1", body="\n".join(f"line {n}" for n in range(lines)))


class ScrollTests(unittest.TestCase):
    def test_open_resets_scroll(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(50), 0, 3)
        viewer.page_down(10)
        viewer.open(long_message(50), 1, 3)
        self.assertEqual(viewer.scroll, 0)
        self.assertTrue(viewer.is_open)

    def test_close(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(5), 0, 1)
        viewer.close()
        self.assertFalse(viewer.is_open)
        self.assertEqual(viewer.render(80, 20, NOW), [])

    def test_clamp_bounds(self) -> None:
        viewer = DetailViewer()
        viewer.scroll = 500
        self.assertEqual(viewer.clamp(100, 20, 5), 85)
        viewer.scroll = -3
        self.assertEqual(viewer.clamp(100, 20, 5), 0)
        viewer.scroll = 4
        self.assertEqual(viewer.clamp(3, 20, 0), 0)

    def test_random_scrolling_stays_in_bounds(self) -> None:
        rng = random.Random(11)
        for lines in (1, 3, 60):
            viewer = DetailViewer()
            viewer.open(long_message(lines), 0, 1)
            height = 15
            max_scroll = max(0, lines - height + len(viewer.header_lines(80)))
            for _ in range(200):
                step = rng.choice(["page_down", "page_up", "scroll_down", "scroll_up"])
                getattr(viewer, step)(height)
                self.assertTrue(0 <= viewer.scroll <= max_scroll, (lines, step, viewer.scroll))

    def test_scrolling_short_body_without_render(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(1), 0, 1)
        for _ in range(10):
            viewer.page_down(15)
        self.assertEqual(viewer.scroll, 0)
        for _ in range(30):
            viewer.scroll_up()
        self.assertEqual(viewer.scroll, 0)

    def test_page_down_stops_at_last_page(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(30), 0, 1)
        for _ in range(5):
            viewer.page_down(10)
        # 30 body lines, 10 rows, 5 header lines.
        self.assertEqual(viewer.scroll, 25)
        viewer.page_up(10)
        self.assertEqual(viewer.scroll, 15)

    def test_line_steps_use_last_known_height(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(12), 0, 1)
        viewer.render(80, 10, NOW)
        for _ in range(10):
            viewer.scroll_down()
        self.assertEqual(viewer.scroll, 7)

    def test_line_step(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(60), 0, 1)
        viewer.scroll_down()
        viewer.scroll_down()
        self.assertEqual(viewer.scroll, 2 * LINE_STEP)
        viewer.scroll_up()
        self.assertEqual(viewer.scroll, LINE_STEP)


class LayoutTests(unittest.TestCase):
    def test_single_message_header_and_body(self) -> None:
        viewer = DetailViewer()
        viewer.open(make_message("m1", body="first\nsecond"), 2, 7)
        lines = viewer.render(10, 20, NOW)
        self.assertEqual(
            lines,
            [
                "Email 3 of 7",
                "From: Alice <alice@example.com>",
                "Date: Sun, 18 Oct 2026 09:05:00 +0000",
                "Subject: Hello",
                "-" * 10,
                "first",
                "second",
            ],
        )

    def test_render_truncates_to_height(self) -> None:
        viewer = DetailViewer()
        viewer.open(long_message(40), 0, 1)
        viewer.page_down(8)
        lines = viewer.render(80, 8, NOW)
        self.assertEqual(len(lines), 8)
        self.assertEqual(lines[5], "line 8")

    def test_thread_shows_unread_and_last_bodies(self) -> None:
        thread = make_thread(
            "t1",
            make_message("m1", body="old news", sender="Bob <bob@example.com>"),
            make_message("m2", body="unread news", labels=[UNREAD]),
            make_message("m3", body="latest", date="Thu, 15 Oct 2026 09:05:00 +0000"),
        )
        viewer = DetailViewer()
        viewer.open(thread, 0, 1)
        self.assertEqual(viewer.header_lines(4)[0], "Thread 1 of 1 (3 messages)")
        body = viewer.body_lines(NOW)
        self.assertEqual(body[0], "  09:05 - Bob <bob@example.com>")
        self.assertNotIn("old news", body)
        self.assertIn("unread news", body)
        self.assertIn(" Oct 15 - Alice <alice@example.com>", body)
        self.assertEqual(body[-2:], ["latest", ""])


if __name__ == "__main__":
    unittest.main()
