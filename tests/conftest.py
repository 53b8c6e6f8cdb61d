"""Shared fakes: a recording page driver, a scripted planner, scripted operator input."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import pytest
from langchain_core.messages import AIMessage

from browser_automation_agent.config import AgentSettings
from browser_automation_agent.errors import BrowserNotStartedError, SelectorTimeoutError
from browser_automation_agent.human_input import HumanInputChannel
from browser_automation_agent.models import FormField


class FakeBrowser:
    """Page driver stand-in that records every call.

    ``failing_selectors`` time out (once per call, like the real driver);
    ``form_fields`` is what get_form_fields returns.
    """

    def __init__(self, form_fields: Optional[List[FormField]] = None, failing_selectors: Iterable[str] = ()):
        self.form_fields = form_fields or []
        self.failing_selectors = set(failing_selectors)
        self.fail_all_selectors = False
        self.calls: List[tuple] = []
        self.started = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self.started and not self.closed

    def _check(self):
        if not self.is_open:
            raise BrowserNotStartedError()

    def _maybe_time_out(self, selector: str):
        if self.fail_all_selectors or selector in self.failing_selectors:
            raise SelectorTimeoutError(selector, 10.0)

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def navigate(self, url: str):
        self._check()
        self.calls.append(("navigate", url))

    async def click(self, selector: str):
        self._check()
        self.calls.append(("click", selector))
        self._maybe_time_out(selector)

    async def click_at(self, x: float, y: float):
        self._check()
        self.calls.append(("click_at", x, y))

    async def type_text(self, selector: str, text: str):
        self._check()
        self.calls.append(("type_text", selector, text))
        self._maybe_time_out(selector)

    async def get_form_fields(self) -> List[FormField]:
        self._check()
        self.calls.append(("get_form_fields",))
        return list(self.form_fields)

    async def take_screenshot(self) -> str:
        self._check()
        self.calls.append(("take_screenshot",))
        return "aGVsbG8="


def tool_call(name: str, args: Optional[Dict] = None, call_id: Optional[str] = None) -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": name, "args": args or {}, "id": call_id or f"call_{name}"}],
    )


class ScriptedPlanner:
    """Chat model stand-in: replays AIMessages and records what it was shown.

    When the script runs out it repeats ``default`` (if given).
    """

    def __init__(self, responses: Iterable[AIMessage] = (), default: Optional[AIMessage] = None):
        self.responses = list(responses)
        self.default = default
        self.seen: List[list] = []
        self.bound_tools: List = []
        self.bind_kwargs: Dict = {}

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        self.bind_kwargs = kwargs
        return self

    async def ainvoke(self, messages, config=None, **kwargs):
        self.seen.append(list(messages))
        if self.responses:
            return self.responses.pop(0)
        if self.default is not None:
            return self.default.model_copy()
        raise AssertionError("ScriptedPlanner ran out of responses")


def scripted_input(answers: Iterable[str]):
    """input() replacement returning answers in order and counting calls"""
    remaining = list(answers)

    def read(marker: str = "") -> str:
        read.calls += 1
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    read.calls = 0
    return read


@pytest.fixture
def fake_browser():
    browser = FakeBrowser()
    browser.started = True
    return browser


@pytest.fixture
def printed():
    return []


@pytest.fixture
def make_channel(printed):
    def _make(answers, timeout=None):
        return HumanInputChannel(input_func=scripted_input(answers), output_func=printed.append, timeout=timeout)
    return _make


@pytest.fixture
def settings():
    return AgentSettings(max_turns=25, openai_api_key="test-key")
