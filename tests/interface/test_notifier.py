"""Tests for the notifier base class and the Telegram channel."""
import requests

from billing.errors import NotificationError
from interface.base import MAX_MESSAGE_LENGTH, Notifier
from interface.telegram.channel import TelegramNotifier


class CollectingNotifier(Notifier):

    def __init__(self, fail=False):
        super().__init__("collect", max_workers=1)
        self.sent = []
        self.fail = fail

    def _deliver(self, text):
        if self.fail:
            raise NotificationError("boom")
        self.sent.append(text)
        return {"message_id": len(self.sent)}


class CrashingNotifier(Notifier):

    def __init__(self):
        super().__init__("crash", max_workers=1)

    def _deliver(self, text):
        raise RuntimeError("unexpected")


class FakeResponse:

    def __init__(self, payload=None, status_code=200, invalid=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid = invalid

    def json(self):
        if self.invalid:
            raise ValueError("not json")
        return self.payload


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


# ==================== Notifier ====================

def test_send_success():
    notifier = CollectingNotifier()
    result = notifier.send("hello")
    assert result.ok is True
    assert result.payload == {"message_id": 1}
    notifier.close()


def test_send_failure_is_reported_not_raised():
    notifier = CollectingNotifier(fail=True)
    result = notifier.send("hello")
    assert result.ok is False
    assert result.error == "boom"
    notifier.close()


def test_unexpected_error_is_reported_not_raised():
    notifier = CrashingNotifier()
    result = notifier.send("hello")
    assert result.ok is False
    assert "unexpected" in result.error
    notifier.close()


def test_short_lines_fit_in_one_chunk_with_title():
    notifier = CollectingNotifier()
    results = notifier.send_chunks(["a", "b", "c"], title="报表")
    assert len(results) == 1
    assert notifier.sent == ["<b>报表</b>\na\nb\nc\n"]
    notifier.close()


def test_long_input_is_split_and_title_only_first():
    notifier = CollectingNotifier()
    line = "x" * 999
    results = notifier.send_chunks([line] * 9, title="T")

    assert len(results) == len(notifier.sent) > 1
    assert all(len(chunk) <= MAX_MESSAGE_LENGTH for chunk in notifier.sent)
    assert notifier.sent[0].startswith("<b>T</b>\n")
    assert all("<b>T</b>" not in chunk for chunk in notifier.sent[1:])
    assert sum(chunk.count(line) for chunk in notifier.sent) == 9
    notifier.close()


def test_empty_lines_without_title_send_nothing():
    notifier = CollectingNotifier()
    assert notifier.send_chunks([]) == []
    assert notifier.sent == []
    notifier.close()


def test_dispatch_returns_future():
    notifier = CollectingNotifier()
    future = notifier.dispatch("async")
    assert future.result(timeout=5).ok is True
    assert notifier.sent == ["async"]
    notifier.close()


# ==================== Telegram ====================

def test_telegram_unconfigured():
    notifier = TelegramNotifier(bot_token="", chat_id="", session=FakeSession())
    assert notifier.is_configured is False
    result = notifier.send("hi")
    assert result.ok is False
    assert "not configured" in result.error
    notifier.close()


def test_telegram_posts_html_message():
    session = FakeSession(FakeResponse({"ok": True, "result": {"message_id": 7}}))
    notifier = TelegramNotifier(
        bot_token="123:abc", chat_id="-100", api_base="https://tg.example/",
        timeout=3, session=session,
    )

    result = notifier.send("<b>hi</b>")

    assert result.ok is True
    assert result.payload["result"]["message_id"] == 7
    call = session.calls[0]
    assert call["url"] == "https://tg.example/bot123:abc/sendMessage"
    assert call["json"] == {"chat_id": "-100", "text": "<b>hi</b>", "parse_mode": "HTML"}
    assert call["timeout"] == 3
    notifier.close()


def test_telegram_api_error():
    session = FakeSession(FakeResponse({"ok": False, "description": "chat not found"}, 400))
    notifier = TelegramNotifier(bot_token="t", chat_id="c", session=session)
    result = notifier.send("hi")
    assert result.ok is False
    assert "chat not found" in result.error
    notifier.close()


def test_telegram_network_error():
    session = FakeSession(error=requests.ConnectionError("refused"))
    notifier = TelegramNotifier(bot_token="t", chat_id="c", session=session)
    result = notifier.send("hi")
    assert result.ok is False
    assert "request failed" in result.error
    notifier.close()


def test_telegram_invalid_json():
    session = FakeSession(FakeResponse(status_code=502, invalid=True))
    notifier = TelegramNotifier(bot_token="t", chat_id="c", session=session)
    result = notifier.send("hi")
    assert result.ok is False
    assert "502" in result.error
    notifier.close()
