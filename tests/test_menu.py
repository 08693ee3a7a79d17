"""Tests for the interactive menu flow."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from api_tester import menu as menu_module
from api_tester.client import RequestClient, WireResponse
from api_tester.config import ClientConfig
from api_tester.listener import ListenerBindError, ListenerController, ListenerSignal
from api_tester.menu import ACTIONS, Menu, ask_select, ask_text
from tests.conftest import FakeTransport


class ScriptedPrompts:
    """Answers select and text prompts from a fixed list, in order."""

    def __init__(self, answers):
        self._answers = iter(answers)
        self.asked: list[str] = []

    def select(self, message, choices):
        self.asked.append(message)
        answer = next(self._answers)
        assert answer in [value for value, _label in choices]
        return answer

    def text(self, message, default=""):
        self.asked.append(message)
        return next(self._answers)


def _menu(answers, transport=None, listener=None):
    prompts = ScriptedPrompts(answers)
    lines: list[str] = []
    listener = listener or MagicMock(spec=ListenerController)
    client = RequestClient(
        ClientConfig(base_url="https://api.test"), transport or FakeTransport(),
    )
    menu = Menu(
        client, listener,
        select=prompts.select, text=prompts.text, output=lines.append,
    )
    return menu, lines, listener


class TestMakeRequest:
    def test_post_with_body(self):
        transport = FakeTransport(WireResponse(status=201, body=b'{"id": 1}'))
        menu, lines, _ = _menu(["POST", "/users", '{"name": "a"}'], transport)

        menu.make_request()

        assert transport.last.method == "POST"
        assert transport.last.url == "https://api.test/users"
        assert json.loads(transport.last.body) == {"name": "a"}
        assert "Response (201):" in lines

    def test_invalid_json_body_falls_back_to_empty(self):
        transport = FakeTransport()
        menu, lines, _ = _menu(["PUT", "/x", "{oops"], transport)

        menu.make_request()

        assert transport.last.method == "PUT"
        assert transport.last.body == b"{}"
        assert "Invalid JSON, using empty object" in lines

    def test_blank_body_uses_default(self):
        transport = FakeTransport()
        menu, _, _ = _menu(["PATCH", "/x", "  "], transport)
        menu.make_request()
        assert transport.last.body == b"{}"

    def test_get_has_no_body_prompt(self):
        transport = FakeTransport()
        menu, _, _ = _menu(["GET", "/items"], transport)
        menu.make_request()
        assert transport.last.body is None

    def test_failure_is_summarized(self):
        transport = FakeTransport(WireResponse(status=404, body=b'{"error":"not found"}'))
        menu, lines, _ = _menu(["GET", "/missing"], transport)
        menu.make_request()
        assert "Request failed: http_error 404\n" in lines


class TestListenerActions:
    def test_start_and_already_running(self):
        menu, lines, listener = _menu([])
        listener.port = 3000
        listener.start.side_effect = [ListenerSignal.STARTED, ListenerSignal.ALREADY_RUNNING]

        menu.start_listener()
        menu.start_listener()

        assert lines == ["Server listening on port 3000", "Server is already running"]

    def test_bind_error_is_reported(self):
        menu, lines, listener = _menu([])
        listener.start.side_effect = ListenerBindError("Cannot bind 127.0.0.1:3000")
        menu.start_listener()
        assert lines == ["Error: Cannot bind 127.0.0.1:3000"]

    def test_stop_not_running(self):
        menu, lines, listener = _menu([])
        listener.stop.return_value = ListenerSignal.NOT_RUNNING
        menu.stop_listener()
        assert lines == ["Server is not running"]


class TestRun:
    def test_exit_cleans_up(self):
        menu, lines, listener = _menu(["start", "exit"])
        listener.start.return_value = ListenerSignal.STARTED

        menu.run()

        listener.start.assert_called_once()
        listener.cleanup.assert_called_once()
        assert lines[-1] == "Goodbye!"

    @pytest.mark.parametrize("exc", [KeyboardInterrupt, EOFError])
    def test_interrupt_cleans_up(self, exc):
        listener = MagicMock(spec=ListenerController)
        client = RequestClient(ClientConfig(base_url="https://api.test"), FakeTransport())

        def select(_message, _choices):
            raise exc

        Menu(client, listener, select=select, output=lambda _s: None).run()
        listener.cleanup.assert_called_once()


class TestPrompts:
    def test_select_uses_questionary(self, monkeypatch):
        question = MagicMock()
        question.unsafe_ask.return_value = "stop"
        select = MagicMock(return_value=question)
        monkeypatch.setattr(menu_module.questionary, "select", select)

        assert ask_select("What would you like to do?", ACTIONS) == "stop"

        message = select.call_args.args[0]
        choices = select.call_args.kwargs["choices"]
        assert message == "What would you like to do?"
        assert [c.value for c in choices] == ["request", "start", "stop", "exit"]
        assert [c.title for c in choices][0] == "Make API Request"

    def test_text_passes_default(self, monkeypatch):
        question = MagicMock()
        question.unsafe_ask.return_value = "{}"
        text = MagicMock(return_value=question)
        monkeypatch.setattr(menu_module.questionary, "text", text)

        assert ask_text("Request body (JSON):", default="{}") == "{}"
        text.assert_called_once_with("Request body (JSON):", default="{}")
