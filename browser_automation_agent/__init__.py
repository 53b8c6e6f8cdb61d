"""
Browser Automation Agent - LangGraph-based browser automation with an LLM planner.

- Fixed catalogue of schema-validated browser tools
- Turn-bounded planner/tool loop built on a LangGraph state graph
- Operator prompts for information the agent does not have
- Real browser actions via CDP
"""

__version__ = "1.0.0"

from .agent import BrowserAutomationAgent, BrowserAgentState, create_browser_agent_graph, run_agent_loop
from .browser import BrowserSession
from .catalogue import ToolCatalogue
from .config import AgentSettings, SelectorPolicy, load_settings
from .human_input import HumanInputChannel
from .models import AgentRunResult, AutomationTask, FormField, TaskStatus, ToolCallRecord
from .selector_fallback import SelectorFallback
from .tools import create_browser_tools

__all__ = [
    'BrowserAutomationAgent',
    'BrowserAgentState',
    'create_browser_agent_graph',
    'run_agent_loop',
    'BrowserSession',
    'ToolCatalogue',
    'AgentSettings',
    'SelectorPolicy',
    'load_settings',
    'HumanInputChannel',
    'AgentRunResult',
    'AutomationTask',
    'FormField',
    'TaskStatus',
    'ToolCallRecord',
    'SelectorFallback',
    'create_browser_tools',
]
