"""Tests for alert transports and the background dispatcher."""

import logging

import requests

import notifier
from config import MonitorConfig
from notifier import (
    DiscordNotifier,
    NotificationDispatcher,
    TelegramNotifier,
    build_notifiers,
    format_alert_message,
    open_product_page,
)
from stock_checker import AlertIntent


class FakePostResponse:
    def __init__(self, status=204):
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response or FakePostResponse()
        self.exc = exc
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


class Recorder:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send(self, text):
        if self.fail:
            raise RuntimeError("transport down")
        self.sent.append(text)


def test_format_alert_message():
    msg = format_alert_message(AlertIntent("IN_STOCK", "1+"), "94336414", "https://www.target.com/p/-/A-94336414")
    assert "Available!" in msg
    assert "Status: IN_STOCK" in msg
    assert "TCIN 94336414" in msg
    assert "Qty: 1+" in msg
    assert "(https://www.target.com/p/-/A-94336414)" in msg


def test_discord_posts_content():
    session = FakeSession()
    DiscordNotifier("https://discord.test/hook", session).send("hello")
    assert session.posts == [("https://discord.test/hook", {"json": {"content": "hello"}, "timeout": notifier.WEBHOOK_TIMEOUT})]


def test_discord_failure_is_logged(caplog):
    with caplog.at_level(logging.ERROR):
        DiscordNotifier("https://discord.test/hook", FakeSession(exc=requests.ConnectionError("down"))).send("x")
        DiscordNotifier("https://discord.test/hook", FakeSession(FakePostResponse(500))).send("x")
    assert caplog.text.count("Discord webhook error") == 2


def test_discord_without_url_is_noop():
    session = FakeSession()
    DiscordNotifier("", session).send("x")
    assert session.posts == []


def test_telegram_without_credentials_is_inactive():
    tg = TelegramNotifier(None, None)
    assert tg.active is False
    tg.send("nothing happens")


def test_build_notifiers():
    assert build_notifiers(MonitorConfig()) == []
    [only] = build_notifiers(MonitorConfig(discord_webhook="https://discord.test/hook"))
    assert isinstance(only, DiscordNotifier)
    # telegram needs both token and chat id
    assert build_notifiers(MonitorConfig(telegram_token="abc")) == []


def test_dispatcher_delivers_to_all_even_if_one_fails():
    bad, good = Recorder(fail=True), Recorder()
    dispatcher = NotificationDispatcher([bad, good])
    future = dispatcher.submit("alert")
    future.result(timeout=5)
    dispatcher.shutdown()
    assert good.sent == ["alert"]


def test_dispatcher_without_notifiers():
    dispatcher = NotificationDispatcher([])
    assert dispatcher.enabled is False
    assert dispatcher.submit("alert") is None
    dispatcher.shutdown()


def test_open_product_page(monkeypatch):
    opened = []
    monkeypatch.setattr(notifier.webbrowser, "open", lambda url: opened.append(url) or True)
    assert open_product_page("https://www.target.com/p/-/A-1") is True
    assert opened == ["https://www.target.com/p/-/A-1"]


def test_open_product_page_error_is_logged(monkeypatch, caplog):
    def boom(url):
        raise notifier.webbrowser.Error("no runnable browser")

    monkeypatch.setattr(notifier.webbrowser, "open", boom)
    assert open_product_page("https://www.target.com/p/-/A-1") is False
    assert "Could not open" in caplog.text
