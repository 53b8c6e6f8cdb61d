"""
Exception hierarchy for the browser automation agent.

Two families matter to the agent loop:

- ``BrowserActionError`` covers recoverable page-level failures (a selector
  that never appeared, a rejected CDP command). Tools translate these into
  short text results so the planner can react.
- ``BrowserSessionError`` covers driver faults (no session, lost connection).
  These are never absorbed by tools and end the task.
"""
from typing import Optional


class BrowserAutomationError(Exception):
    """Base class for every error raised by this package"""


class ConfigurationError(BrowserAutomationError):
    """Settings are missing or invalid"""


# ==============================================================
# PAGE DRIVER
# ==============================================================

class BrowserSessionError(BrowserAutomationError):
    """The browser session is unusable (fatal for the current task)"""


class BrowserNotStartedError(BrowserSessionError):
    """An operation was attempted before start() or after close()"""

    def __init__(self, message: str = "Browser not initialized"):
        super().__init__(message)


class BrowserActionError(BrowserAutomationError):
    """A single browser action failed but the session is still alive"""


class BrowserCommandError(BrowserActionError):
    """Chrome rejected a CDP command"""

    def __init__(self, method: str, error: dict):
        self.method = method
        self.error = error
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        super().__init__(f"CDP error in {method}: {message}")


class NavigationError(BrowserActionError):
    """Chrome reported that a navigation failed"""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to navigate to {url}: {reason}")


class SelectorTimeoutError(BrowserActionError):
    """A selector did not resolve to a rendered element in time"""

    def __init__(self, selector: str, timeout: float):
        self.selector = selector
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:g}s waiting for selector {selector!r}")


class SelectorsExhaustedError(BrowserActionError):
    """Every candidate in a selector fallback list failed (strict policy only)"""

    def __init__(self, action: str, selectors):
        self.action = action
        self.selectors = tuple(selectors)
        super().__init__(
            f"No selector worked for '{action}' (tried {len(self.selectors)}: "
            f"{', '.join(self.selectors)})"
        )


# ==============================================================
# TOOLS
# ==============================================================

class ToolError(BrowserAutomationError):
    """A tool call was rejected before execution"""


class UnknownToolError(ToolError):
    def __init__(self, name: str, available):
        self.name = name
        self.available = tuple(available)
        super().__init__(
            f"Unknown tool '{name}'. Available tools: {', '.join(self.available)}"
        )


class ToolSchemaError(ToolError):
    """Tool arguments failed validation against the tool's schema"""

    def __init__(self, name: str, problems: list):
        self.name = name
        self.problems = list(problems)
        super().__init__(f"Invalid arguments for {name}: {'; '.join(self.problems)}")


# ==============================================================
# HUMAN INPUT
# ==============================================================

class HumanInputError(BrowserAutomationError):
    """The operator could not be asked for input"""


class HumanInputTimeoutError(HumanInputError):
    def __init__(self, prompt: str, timeout: float):
        self.prompt = prompt
        self.timeout = timeout
        super().__init__(f"No answer within {timeout:g}s for prompt: {prompt}")


# ==============================================================
# TASK SHELL
# ==============================================================

class TaskNotFoundError(BrowserAutomationError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class TaskAlreadyRunningError(BrowserAutomationError):
    def __init__(self, task_id: str, detail: Optional[str] = None):
        self.task_id = task_id
        super().__init__(detail or "Task is already in progress")
