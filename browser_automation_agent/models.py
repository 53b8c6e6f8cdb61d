"""
Data models for the browser automation agent.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, List
from uuid import uuid4

from pydantic import BaseModel, Field


class FormField(BaseModel):
    """One input, textarea or select element found on the page"""
    tag: str
    type: str = "text"
    name: str = ""
    id: str = ""
    placeholder: str = ""
    required: bool = False
    label: str = ""


class ToolExecution(BaseModel):
    """Outcome of dispatching one tool call through the catalogue"""
    name: str
    arguments: dict
    content: str  # Text fed back to the planner
    status: Literal["success", "schema_violation", "unknown_tool"] = "success"

    @property
    def rejected(self) -> bool:
        return self.status != "success"


class ToolCallRecord(BaseModel):
    """One step in agent history - which tool ran and what it returned"""
    turn: int
    tool_call_id: str
    name: str
    arguments: dict
    result: str
    status: Literal["success", "schema_violation", "unknown_tool"] = "success"


class AgentRunResult(BaseModel):
    """How a single task execution ended"""
    task: str
    status: Literal["completed", "turn_limit_exceeded"]
    final_output: Optional[str] = None
    turns: int = 0
    max_turns: int
    history: List[ToolCallRecord] = []

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class AutomationTask(BaseModel):
    """A task submitted to the HTTP shell"""
    id: str = Field(default_factory=lambda: uuid4().hex)
    url: str
    description: str
    fields: List[FormField] = []
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    result: Optional[str] = None
    error: Optional[str] = None

    @property
    def instruction(self) -> str:
        """Task text handed to the agent loop"""
        return f"Navigate to {self.url} and {self.description}"
