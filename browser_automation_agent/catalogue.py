"""
Fixed catalogue of tools resolved when the agent is built.

The planner picks tools by name at runtime. The catalogue checks the name and
validates the arguments against the tool's schema before anything runs, so a
bad call never reaches the browser. Rejections come back as tool results the
planner can correct.
"""
import logging
from typing import Iterable, List

from langchain_core.tools import BaseTool
from pydantic import ValidationError

from .errors import ToolSchemaError, UnknownToolError
from .models import ToolExecution

logger = logging.getLogger(__name__)


def _as_dict(arguments) -> dict:
    return dict(arguments) if isinstance(arguments, dict) else {}


def _describe_errors(error: ValidationError) -> List[str]:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg', 'invalid value')}")
    return problems


class ToolCatalogue:
    """Immutable name -> tool mapping"""

    def __init__(self, tools: Iterable[BaseTool]):
        registry = {}
        for t in tools:
            if t.name in registry:
                raise ValueError(f"Duplicate tool name: {t.name}")
            if t.args_schema is None:
                raise ValueError(f"Tool {t.name} has no argument schema")
            registry[t.name] = t
        self._tools = registry

    @property
    def tools(self) -> List[BaseTool]:
        return list(self._tools.values())

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def validate(self, name: str, arguments: dict) -> dict:
        """
        Check a tool call without running it.

        Returns:
            The validated arguments

        Raises:
            UnknownToolError: name is not in the catalogue
            ToolSchemaError: arguments do not match the tool's schema
        """
        if name not in self._tools:
            raise UnknownToolError(name, self.names)
        schema = self._tools[name].args_schema
        try:
            parsed = schema.model_validate(arguments if arguments is not None else {})
        except ValidationError as e:
            raise ToolSchemaError(name, _describe_errors(e)) from e
        return parsed.model_dump()

    async def execute(self, name: str, arguments: dict) -> ToolExecution:
        """
        Validate and run one tool call.

        Rejected calls are returned as results with a non-success status.
        Exceptions raised by the tool itself propagate.
        """
        try:
            validated = self.validate(name, arguments)
        except UnknownToolError as e:
            logger.warning(f"Rejected call to unknown tool: {name}")
            return ToolExecution(name=name, arguments=_as_dict(arguments), content=f"❌ {e}", status="unknown_tool")
        except ToolSchemaError as e:
            logger.warning(f"Rejected call with invalid arguments: {e}")
            return ToolExecution(name=name, arguments=_as_dict(arguments), content=f"❌ {e}", status="schema_violation")

        content = await self._tools[name].ainvoke(validated)
        return ToolExecution(name=name, arguments=validated, content=str(content))
