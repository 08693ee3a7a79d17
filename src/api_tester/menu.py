"""Interactive menu: make requests and drive the local listener."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import questionary
from questionary import Choice

from api_tester.client import RequestClient
from api_tester.listener import ListenerBindError, ListenerController, ListenerSignal
from api_tester.models import Failure, HttpMethod, RequestDescriptor

logger = logging.getLogger(__name__)

Select = Callable[[str, list[tuple[str, str]]], str]
Text = Callable[[str, str], str]
Output = Callable[[str], None]

ACTIONS: list[tuple[str, str]] = [
    ("request", "Make API Request"),
    ("start", "Start Local Server"),
    ("stop", "Stop Local Server"),
    ("exit", "Exit"),
]


def ask_select(message: str, choices: list[tuple[str, str]]) -> str:
    """Arrow-key selection; Ctrl+C raises KeyboardInterrupt."""
    return questionary.select(
        message,
        choices=[Choice(title=label, value=value) for value, label in choices],
        instruction="(use arrow keys)",
    ).unsafe_ask()


def ask_text(message: str, default: str = "") -> str:
    return questionary.text(message, default=default).unsafe_ask()


class Menu:
    """Prompt loop over a RequestClient and a ListenerController."""

    def __init__(
        self,
        client: RequestClient,
        listener: ListenerController,
        select: Select = ask_select,
        text: Text = ask_text,
        output: Output = print,
    ) -> None:
        self.client = client
        self.listener = listener
        self._select_prompt = select
        self._text_prompt = text
        self._out = output

    # -- prompts --------------------------------------------------------------

    def _select(self, message: str, choices: list[tuple[str, str]]) -> str:
        return self._select_prompt(message, choices)

    def _input(self, message: str, default: str = "") -> str:
        return self._text_prompt(message, default).strip() or default

    # -- actions --------------------------------------------------------------

    def make_request(self) -> None:
        method = HttpMethod(
            self._select(
                "HTTP Method:",
                [(m.value, m.value) for m in HttpMethod],
            )
        )
        endpoint = self._input("Endpoint (e.g., /users):")

        body: Any = None
        if method.accepts_body:
            body_input = self._input("Request body (JSON):", default="{}")
            try:
                body = json.loads(body_input)
            except json.JSONDecodeError:
                self._out("Invalid JSON, using empty object")
                body = {}

        self._out(f"\nMaking {method.value} request to {endpoint}...\n")

        try:
            descriptor = RequestDescriptor(method=method, path=endpoint, body=body)
        except ValueError as e:
            self._out(f"Invalid request: {e}\n")
            return

        outcome = self.client.execute(descriptor)
        # The client already logged failures; only show a summary here.
        if isinstance(outcome, Failure):
            status = f" {outcome.status_code}" if outcome.status_code else ""
            self._out(f"Request failed: {outcome.kind.value}{status}\n")
            return

        self._out(f"Response ({outcome.status_code}):")
        self._out(json.dumps(outcome.body, indent=2))
        self._out("")

    def start_listener(self) -> None:
        try:
            result = self.listener.start()
        except ListenerBindError as e:
            self._out(f"Error: {e}")
            return
        if result is ListenerSignal.ALREADY_RUNNING:
            self._out("Server is already running")
        else:
            self._out(f"Server listening on port {self.listener.port}")

    def stop_listener(self) -> None:
        if self.listener.stop() is ListenerSignal.NOT_RUNNING:
            self._out("Server is not running")
        else:
            self._out("Server stopped")

    # -- loop -----------------------------------------------------------------

    def run(self) -> None:
        """Loop until the user exits; always tears the listener down."""
        handlers = {
            "request": self.make_request,
            "start": self.start_listener,
            "stop": self.stop_listener,
        }
        self._out("=== API Tester CLI ===\n")
        try:
            while True:
                action = self._select("What would you like to do?", ACTIONS)
                if action == "exit":
                    break
                handlers[action]()
        except (KeyboardInterrupt, EOFError):
            self._out("")
        finally:
            self.listener.cleanup()
        self._out("Goodbye!")
