"""Tests for the command-line shell."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from langchain_core.messages import AIMessage

from conftest import FakeBrowser, ScriptedPlanner, scripted_input, tool_call

from browser_automation_agent import cli
from browser_automation_agent.agent import BrowserAutomationAgent
from browser_automation_agent.config import ENV_VARS, SelectorPolicy
from browser_automation_agent.errors import BrowserSessionError
from browser_automation_agent.human_input import HumanInputChannel


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


def fake_agent_class(planner, answers=(), browser=None):
    created = []

    def build(settings):
        agent = BrowserAutomationAgent(
            settings=settings,
            browser=browser or FakeBrowser(),
            human_input=HumanInputChannel(input_func=scripted_input(answers), output_func=lambda line: None),
            llm=planner,
        )
        created.append(agent)
        return agent

    build.created = created
    return build


class TestParser:
    def test_run_flags_become_settings(self, tmp_path):
        args = cli.build_parser().parse_args([
            "--env-file", str(tmp_path / "none.env"),
            "run", "Post a tweet",
            "--max-turns", "5", "--headless", "--input-timeout", "30", "--selector-policy", "strict",
        ])

        settings = cli.settings_from_args(args)

        assert args.task == "Post a tweet"
        assert settings.max_turns == 5
        assert settings.headless is True
        assert settings.human_input_timeout == 30
        assert settings.selector_policy == SelectorPolicy.STRICT

    def test_serve_flags(self, tmp_path):
        args = cli.build_parser().parse_args(["--env-file", str(tmp_path / "none.env"), "serve", "--port", "8080"])

        settings = cli.settings_from_args(args)

        assert settings.port == 8080
        assert settings.max_turns == 25

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestRun:
    def test_successful_task(self, capsys, tmp_path):
        planner = ScriptedPlanner([
            tool_call("navigate_to_url", {"url": "https://example.com"}),
            AIMessage(content="Navigated."),
        ])
        agent_class = fake_agent_class(planner)

        with patch.object(cli, "BrowserAutomationAgent", agent_class):
            code = cli.main(["--env-file", str(tmp_path / "none.env"), "run", "Open https://example.com"])

        out = capsys.readouterr().out
        assert code == 0
        assert "Task completed successfully" in out
        assert "Final response: Navigated." in out
        assert agent_class.created[0].browser.closed

    def test_prompts_for_task_when_missing(self, capsys, tmp_path):
        planner = ScriptedPlanner([AIMessage(content="ok")])
        agent_class = fake_agent_class(planner, answers=["", "Fill the form at https://example.com"])

        with patch.object(cli, "BrowserAutomationAgent", agent_class):
            code = cli.main(["--env-file", str(tmp_path / "none.env"), "run"])

        assert code == 0
        assert planner.seen[0][1].content == "Fill the form at https://example.com"

    def test_turn_limit(self, capsys, tmp_path):
        planner = ScriptedPlanner(default=tool_call("take_screenshot"))
        agent_class = fake_agent_class(planner)

        with patch.object(cli, "BrowserAutomationAgent", agent_class):
            code = cli.main(["--env-file", str(tmp_path / "none.env"), "run", "Loop", "--max-turns", "3"])

        out = capsys.readouterr().out
        assert code == 2
        assert "exceeded the maximum number of turns (3)" in out
        assert "submitting the form manually" in out
        assert agent_class.created[0].browser.closed

    def test_browser_start_failure(self, capsys, tmp_path):
        browser = FakeBrowser()

        async def broken_start():
            raise BrowserSessionError("Chrome/Chromium not found. Please install Chrome.")

        browser.start = broken_start
        agent_class = fake_agent_class(ScriptedPlanner(), browser=browser)

        with patch.object(cli, "BrowserAutomationAgent", agent_class):
            code = cli.main(["--env-file", str(tmp_path / "none.env"), "run", "Anything"])

        assert code == 1
        assert "Failed to initialize browser" in capsys.readouterr().out
        assert browser.closed

    def test_fatal_task_error(self, capsys, tmp_path):
        planner = ScriptedPlanner([tool_call("ask_user_for_input", {"prompt": "Email?", "field_name": "email"})])
        agent_class = fake_agent_class(planner, answers=[])

        with patch.object(cli, "BrowserAutomationAgent", agent_class):
            code = cli.main(["--env-file", str(tmp_path / "none.env"), "run", "Sign up"])

        assert code == 1
        assert "Error executing task" in capsys.readouterr().out
        assert agent_class.created[0].browser.closed
