"""Tests for the planner/tool loop."""

from __future__ import annotations

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from conftest import FakeBrowser, ScriptedPlanner, tool_call
from browser_automation_agent.agent import (
    BrowserAutomationAgent,
    build_planner,
    create_browser_agent_graph,
    create_llm,
    message_text,
    run_agent_loop,
)
from browser_automation_agent.catalogue import ToolCatalogue
from browser_automation_agent.config import AgentSettings
from browser_automation_agent.errors import BrowserNotStartedError, ConfigurationError, HumanInputError
from browser_automation_agent.models import FormField
from browser_automation_agent.tools import create_browser_tools


def make_graph(browser, channel, planner):
    catalogue = ToolCatalogue(create_browser_tools(browser, channel, compose_delay=0))
    return create_browser_agent_graph(catalogue, build_planner(planner, catalogue))


class TestLoop:
    @pytest.mark.asyncio
    async def test_final_answer_without_tools(self, fake_browser, make_channel):
        planner = ScriptedPlanner([AIMessage(content="Nothing to do.")])
        graph = make_graph(fake_browser, make_channel([]), planner)

        result = await run_agent_loop(graph, "Say hi", max_turns=5)

        assert result.status == "completed"
        assert result.succeeded
        assert result.final_output == "Nothing to do."
        assert result.turns == 0
        assert fake_browser.calls == []

    @pytest.mark.asyncio
    async def test_planner_sees_system_prompt_and_task(self, fake_browser, make_channel):
        planner = ScriptedPlanner([AIMessage(content="done")])
        graph = make_graph(fake_browser, make_channel([]), planner)

        await run_agent_loop(graph, "Fill the form at https://example.com", max_turns=5)

        first_call = planner.seen[0]
        assert isinstance(first_call[0], SystemMessage)
        assert isinstance(first_call[1], HumanMessage)
        assert first_call[1].content == "Fill the form at https://example.com"
        assert len(first_call) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_turns", [1, 3, 7])
    async def test_turn_limit_stops_after_exactly_k_round_trips(self, fake_browser, make_channel, max_turns):
        planner = ScriptedPlanner(default=tool_call("take_screenshot"))
        graph = make_graph(fake_browser, make_channel([]), planner)

        result = await run_agent_loop(graph, "Loop forever", max_turns=max_turns)

        assert result.status == "turn_limit_exceeded"
        assert not result.succeeded
        assert result.final_output is None
        assert result.turns == max_turns
        assert len(result.history) == max_turns
        assert len(planner.seen) == max_turns
        assert len(fake_browser.calls_to("take_screenshot")) == max_turns

    @pytest.mark.asyncio
    async def test_result_is_appended_before_next_plan(self, fake_browser, make_channel):
        planner = ScriptedPlanner([
            tool_call("navigate_to_url", {"url": "https://example.com"}, call_id="c1"),
            AIMessage(content="Done"),
        ])
        graph = make_graph(fake_browser, make_channel([]), planner)

        await run_agent_loop(graph, "Go", max_turns=5)

        second_call = planner.seen[1]
        assert isinstance(second_call[-1], ToolMessage)
        assert second_call[-1].tool_call_id == "c1"
        assert second_call[-1].content == "Navigated to https://example.com"

    @pytest.mark.asyncio
    async def test_schema_violation_is_fed_back_to_planner(self, fake_browser, make_channel):
        planner = ScriptedPlanner([
            tool_call("navigate_to_url", {"address": "https://example.com"}, call_id="bad"),
            tool_call("navigate_to_url", {"url": "https://example.com"}, call_id="good"),
            AIMessage(content="Navigated after correcting the arguments."),
        ])
        graph = make_graph(fake_browser, make_channel([]), planner)

        result = await run_agent_loop(graph, "Go", max_turns=5)

        assert result.succeeded
        assert [record.status for record in result.history] == ["schema_violation", "success"]
        rejected = planner.seen[1][-1]
        assert rejected.status == "error"
        assert "Invalid arguments for navigate_to_url" in rejected.content
        assert fake_browser.calls == [("navigate", "https://example.com")]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_fed_back_to_planner(self, fake_browser, make_channel):
        planner = ScriptedPlanner([tool_call("hack_the_planet"), AIMessage(content="Giving up.")])
        graph = make_graph(fake_browser, make_channel([]), planner)

        result = await run_agent_loop(graph, "Go", max_turns=5)

        assert result.history[0].status == "unknown_tool"
        assert result.final_output == "Giving up."

    @pytest.mark.asyncio
    async def test_human_input_is_recorded(self, fake_browser, make_channel):
        planner = ScriptedPlanner([
            tool_call("ask_user_for_input", {"prompt": "Please enter your first name", "field_name": "first_name"}),
            tool_call("type_text", {"selector": "#first_name", "text": "Alice"}),
            AIMessage(content="Filled the first name."),
        ])
        graph = make_graph(fake_browser, make_channel(["", "Alice"]), planner)

        result = await run_agent_loop(graph, "Fill the form", max_turns=10)

        assert result.history[0].result == "Alice"
        assert fake_browser.calls == [("type_text", "#first_name", "Alice")]

    @pytest.mark.asyncio
    async def test_driver_fault_propagates(self, fake_browser, make_channel):
        fake_browser.closed = True
        planner = ScriptedPlanner([tool_call("navigate_to_url", {"url": "https://example.com"})])
        graph = make_graph(fake_browser, make_channel([]), planner)

        with pytest.raises(BrowserNotStartedError):
            await run_agent_loop(graph, "Go", max_turns=5)

    @pytest.mark.asyncio
    async def test_human_input_failure_propagates(self, fake_browser, make_channel):
        planner = ScriptedPlanner([tool_call("ask_user_for_input", {"prompt": "Email?", "field_name": "email"})])
        graph = make_graph(fake_browser, make_channel([]), planner)

        with pytest.raises(HumanInputError):
            await run_agent_loop(graph, "Go", max_turns=5)


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_reports_number_of_form_fields(self, make_channel, settings):
        browser = FakeBrowser(form_fields=[
            FormField(tag="input", type="text", name="first_name"),
            FormField(tag="input", type="email", name="email"),
            FormField(tag="textarea", type="textarea", name="message"),
        ])
        planner = ScriptedPlanner([
            tool_call("navigate_to_url", {"url": "https://example.com"}, call_id="c1"),
            tool_call("get_form_fields", {}, call_id="c2"),
            AIMessage(content="The page at https://example.com has 3 form fields."),
        ])
        agent = BrowserAutomationAgent(
            settings=settings, browser=browser, human_input=make_channel([]), llm=planner, compose_delay=0
        )

        await agent.initialize()
        try:
            result = await agent.execute_task(
                "Navigate to https://example.com and report the number of form fields"
            )
        finally:
            await agent.close()

        assert browser.calls == [("navigate", "https://example.com"), ("get_form_fields",)]
        assert result.succeeded
        assert "3" in result.final_output
        assert [record.name for record in result.history] == ["navigate_to_url", "get_form_fields"]
        assert browser.closed
        assert planner.bind_kwargs == {"parallel_tool_calls": False}
        assert [t.name for t in planner.bound_tools] == agent.catalogue.names

    @pytest.mark.asyncio
    async def test_execute_before_initialize(self, make_channel, settings):
        agent = BrowserAutomationAgent(
            settings=settings, browser=FakeBrowser(), human_input=make_channel([]), llm=ScriptedPlanner()
        )

        with pytest.raises(BrowserNotStartedError):
            await agent.execute_task("anything")

    @pytest.mark.asyncio
    async def test_execute_after_close(self, make_channel, settings):
        agent = BrowserAutomationAgent(
            settings=settings, browser=FakeBrowser(), human_input=make_channel([]), llm=ScriptedPlanner()
        )
        await agent.initialize()
        await agent.close()

        with pytest.raises(BrowserNotStartedError):
            await agent.execute_task("anything")

    @pytest.mark.asyncio
    async def test_agent_uses_configured_turn_limit(self, make_channel):
        browser = FakeBrowser()
        agent = BrowserAutomationAgent(
            settings=AgentSettings(max_turns=2),
            browser=browser,
            human_input=make_channel([]),
            llm=ScriptedPlanner(default=tool_call("take_screenshot")),
        )
        await agent.initialize()

        result = await agent.execute_task("Loop")

        assert result.status == "turn_limit_exceeded"
        assert result.turns == 2
        assert result.max_turns == 2


class TestHelpers:
    def test_message_text_joins_text_parts(self):
        message = AIMessage(content=[{"type": "text", "text": "3 "}, {"type": "text", "text": "fields"}])
        assert message_text(message) == "3 fields"

    def test_create_llm_requires_credentials(self):
        with pytest.raises(ConfigurationError):
            create_llm(AgentSettings())

    def test_create_llm_prefers_azure(self):
        from langchain_openai import AzureChatOpenAI

        llm = create_llm(AgentSettings(
            azure_endpoint="https://example.openai.azure.com/",
            azure_api_key="azure-key",
            openai_api_key="openai-key",
        ))
        assert isinstance(llm, AzureChatOpenAI)

    def test_create_llm_openai(self):
        from langchain_openai import ChatOpenAI

        llm = create_llm(AgentSettings(openai_api_key="openai-key", openai_model="gpt-4o-mini"))
        assert isinstance(llm, ChatOpenAI)
        assert llm.model_name == "gpt-4o-mini"
