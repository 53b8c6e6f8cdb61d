"""
LangGraph-based Browser Automation Agent

This module implements the agent loop using LangGraph's state graph:

    planning --(tool call)--> action --(turns left)--> planning
        |                        |
        +--(final answer)--> END +--(turn limit)--> END

Tool calls run strictly one after another, and the planner only sees the
history once every result of the previous decision has been appended.
"""
import logging
from typing import Annotated, Literal, Optional
from typing_extensions import TypedDict

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_openai import AzureChatOpenAI, ChatOpenAI
from langgraph.graph import StateGraph, END
from langgraph.graph.message import add_messages

from .browser import BrowserSession
from .catalogue import ToolCatalogue
from .config import AgentSettings, load_settings
from .errors import BrowserNotStartedError, ConfigurationError
from .human_input import HumanInputChannel, terminal_channel
from .models import AgentRunResult, ToolCallRecord
from .prompts import SYSTEM_PROMPT
from .tools import create_browser_tools

logger = logging.getLogger(__name__)


# ==============================================================
# STATE DEFINITION
# ==============================================================

def add_history_items(existing: list, new: list) -> list:
    """Reducer for history_items - append new items"""
    return existing + new


class BrowserAgentState(TypedDict):
    """
    State for one task execution. Discarded when the task ends.
    """
    # Conversation: task message, planner messages, tool results
    messages: Annotated[list[BaseMessage], add_messages]

    task: str
    turn_count: int
    max_turns: int

    # Structured record of every tool call
    history_items: Annotated[list, add_history_items]

    turn_limit_exceeded: bool


# ==============================================================
# GRAPH NODE: PLANNING
# ==============================================================

def create_planning_node(planner):
    """
    Create the planning node with the planner injected.

    The planner is any runnable that takes a message list and returns an
    AIMessage carrying either tool calls or a final answer.
    """
    async def planning(state: BrowserAgentState) -> dict:
        logger.info(f"\n{'='*60}")
        logger.info(f"Turn {state['turn_count'] + 1}/{state['max_turns']}")
        logger.info(f"{'='*60}")
        logger.info("🤔 Agent deciding next action...")

        messages = [SystemMessage(content=SYSTEM_PROMPT)] + state["messages"]
        response = await planner.ainvoke(messages)

        if response.tool_calls:
            for tool_call in response.tool_calls:
                logger.info(f"📌 Decision: {tool_call['name']}({tool_call['args']})")
        else:
            logger.info(f"📌 Final answer: {message_text(response)[:200]}")

        return {"messages": [response]}

    return planning


# ==============================================================
# GRAPH NODE: ACTION
# ==============================================================

def create_action_node(catalogue: ToolCatalogue):
    """
    Create the action node with the tool catalogue injected.

    Runs every tool call of the last planner message in order and counts one
    turn for the decision.
    """
    async def action(state: BrowserAgentState) -> dict:
        decision = state["messages"][-1]
        turn = state["turn_count"] + 1

        tool_messages = []
        records = []
        for position, tool_call in enumerate(decision.tool_calls):
            call_id = tool_call.get("id") or f"call_{turn}_{position}"
            execution = await catalogue.execute(tool_call["name"], tool_call.get("args") or {})

            logger.info(f"🔧 Tool result: {execution.content[:100]}")

            tool_messages.append(ToolMessage(
                content=execution.content,
                tool_call_id=call_id,
                name=tool_call["name"],
                status="error" if execution.rejected else "success",
            ))
            records.append(ToolCallRecord(
                turn=turn,
                tool_call_id=call_id,
                name=execution.name,
                arguments=execution.arguments,
                result=execution.content,
                status=execution.status,
            ))

        return {
            "messages": tool_messages,
            "history_items": records,
            "turn_count": turn,
            "turn_limit_exceeded": turn >= state["max_turns"],
        }

    return action


# ==============================================================
# ROUTING FUNCTIONS
# ==============================================================

def should_continue(state: BrowserAgentState) -> Literal["action", "done"]:
    """Route to the action node if the planner asked for a tool, else finish"""
    last_message = state["messages"][-1] if state["messages"] else None
    if isinstance(last_message, AIMessage) and last_message.tool_calls:
        return "action"
    return "done"


def after_action(state: BrowserAgentState) -> Literal["planning", "turn_limit"]:
    """Go back to planning unless the turn ceiling was reached"""
    if state["turn_limit_exceeded"]:
        logger.info(f"⚠️ Max turns ({state['max_turns']}) reached")
        return "turn_limit"
    return "planning"


# ==============================================================
# HELPER FUNCTIONS
# ==============================================================

def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of parts"""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def create_llm(settings: AgentSettings):
    """
    Create the chat model used as planner.

    Azure OpenAI is used when endpoint and key are configured, otherwise
    OpenAI when OPENAI_API_KEY is set.
    """
    if settings.uses_azure:
        logger.info(f"✅ LLM client configured: Azure OpenAI ({settings.azure_deployment})")
        return AzureChatOpenAI(
            api_key=settings.azure_api_key,
            api_version=settings.api_version,
            azure_deployment=settings.azure_deployment,
            azure_endpoint=settings.azure_endpoint
        )
    if settings.openai_api_key:
        logger.info(f"✅ LLM client configured: OpenAI ({settings.openai_model})")
        return ChatOpenAI(model=settings.openai_model, api_key=settings.openai_api_key)

    raise ConfigurationError(
        "Missing required environment variables!\n"
        "Please set AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_API_KEY, or OPENAI_API_KEY,\n"
        "in your .env file or environment."
    )


def build_planner(llm, catalogue: ToolCatalogue):
    """Bind the catalogue to the chat model, one tool call per decision"""
    return llm.bind_tools(catalogue.tools, parallel_tool_calls=False)


# ==============================================================
# GRAPH BUILDER
# ==============================================================

def create_browser_agent_graph(catalogue: ToolCatalogue, planner):
    """
    Create the compiled agent graph.

    Args:
        catalogue: ToolCatalogue the action node dispatches into
        planner: Runnable returning AIMessages (usually build_planner(...))

    Returns:
        Compiled LangGraph
    """
    graph_builder = StateGraph(BrowserAgentState)

    graph_builder.add_node("planning", create_planning_node(planner))
    graph_builder.add_node("action", create_action_node(catalogue))

    graph_builder.set_entry_point("planning")

    graph_builder.add_conditional_edges(
        "planning",
        should_continue,
        {
            "action": "action",
            "done": END
        }
    )
    graph_builder.add_conditional_edges(
        "action",
        after_action,
        {
            "planning": "planning",
            "turn_limit": END
        }
    )

    return graph_builder.compile()


async def run_agent_loop(graph, task: str, max_turns: int) -> AgentRunResult:
    """
    Run one task through a compiled agent graph.

    Exceptions raised inside a node (driver faults, human input errors)
    propagate to the caller.
    """
    initial_state = {
        "messages": [HumanMessage(content=task)],
        "task": task,
        "turn_count": 0,
        "max_turns": max_turns,
        "history_items": [],
        "turn_limit_exceeded": False,
    }

    # Two nodes per turn plus the final planning step
    config = {"recursion_limit": max_turns * 2 + 5}
    final_state = initial_state
    async for event in graph.astream(initial_state, config=config, stream_mode="values"):
        final_state = event

    if final_state["turn_limit_exceeded"]:
        return AgentRunResult(
            task=task,
            status="turn_limit_exceeded",
            turns=final_state["turn_count"],
            max_turns=max_turns,
            history=final_state["history_items"],
        )

    return AgentRunResult(
        task=task,
        status="completed",
        final_output=message_text(final_state["messages"][-1]),
        turns=final_state["turn_count"],
        max_turns=max_turns,
        history=final_state["history_items"],
    )


# ==============================================================
# CONVENIENCE WRAPPER CLASS
# ==============================================================

class BrowserAutomationAgent:
    """
    One agent owns one browser session and runs one task at a time.

    Usage:
        agent = BrowserAutomationAgent()
        await agent.initialize()
        try:
            result = await agent.execute_task("Fill the form at https://example.com")
        finally:
            await agent.close()
    """

    def __init__(
        self,
        settings: Optional[AgentSettings] = None,
        browser=None,
        human_input: Optional[HumanInputChannel] = None,
        llm=None,
        compose_delay: float = 1.0,
    ):
        """
        Args:
            settings: Configuration (default: load_settings())
            browser: Page driver (default: a BrowserSession built from settings)
            human_input: Operator channel (default: the shared terminal channel, with settings timeout)
            llm: Chat model supporting bind_tools (default: create_llm(settings))
            compose_delay: Seconds to wait for the tweet composer to open
        """
        self.settings = settings if settings is not None else load_settings()
        self.browser = browser if browser is not None else BrowserSession(
            headless=self.settings.headless,
            chrome_path=self.settings.chrome_path,
            port=self.settings.debugging_port,
            selector_timeout=self.settings.selector_timeout,
        )
        self.human_input = human_input if human_input is not None else terminal_channel(
            self.settings.human_input_timeout
        )
        self.catalogue = ToolCatalogue(create_browser_tools(
            self.browser,
            self.human_input,
            selector_policy=self.settings.selector_policy,
            compose_delay=compose_delay,
        ))
        self._llm = llm
        self._initialized = False
        self._closed = False

    async def initialize(self):
        """Open the browser session"""
        if self._closed:
            raise BrowserNotStartedError("Agent already closed")
        await self.browser.start()
        self._initialized = True

    async def execute_task(self, task: str) -> AgentRunResult:
        """
        Run the agent loop for one task.

        Returns:
            AgentRunResult with status "completed" or "turn_limit_exceeded"

        Raises:
            BrowserNotStartedError: called before initialize() or after close()
        """
        if not self._initialized or self._closed:
            raise BrowserNotStartedError()

        if self._llm is None:
            self._llm = create_llm(self.settings)

        graph = create_browser_agent_graph(self.catalogue, build_planner(self._llm, self.catalogue))

        logger.info(f"\n{'='*70}")
        logger.info("🚀 Starting automation task")
        logger.info(f"{'='*70}")
        logger.info(f"Task: {task}")
        logger.info(f"Max Turns: {self.settings.max_turns}")
        logger.info(f"Tools: {', '.join(self.catalogue.names)}")
        logger.info(f"{'='*70}\n")

        result = await run_agent_loop(graph, task, self.settings.max_turns)

        if result.succeeded:
            logger.info(f"✅ Task completed in {result.turns} turns")
        else:
            logger.warning(f"❌ Task exceeded the maximum number of turns ({result.max_turns})")
        return result

    async def close(self):
        """Close the browser session. Safe to call more than once."""
        self._closed = True
        await self.browser.close()
