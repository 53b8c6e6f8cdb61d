"""
Runtime configuration loaded from the environment (and an optional .env file).
"""
import os
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class SelectorPolicy(str, Enum):
    """What to do when every candidate in a selector fallback list fails"""
    SOFT = "soft"  # report a text result, let the planner decide
    STRICT = "strict"  # raise, ending the task


# Environment variable -> settings field
ENV_VARS = {
    "AZURE_OPENAI_ENDPOINT": "azure_endpoint",
    "AZURE_OPENAI_API_KEY": "azure_api_key",
    "OPENAI_API_VERSION": "api_version",
    "AZURE_OPENAI_CHAT_DEPLOYMENT_NAME": "azure_deployment",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
    "AGENT_MAX_TURNS": "max_turns",
    "BROWSER_HEADLESS": "headless",
    "CHROME_PATH": "chrome_path",
    "CHROME_DEBUGGING_PORT": "debugging_port",
    "SELECTOR_TIMEOUT": "selector_timeout",
    "HUMAN_INPUT_TIMEOUT": "human_input_timeout",
    "SELECTOR_POLICY": "selector_policy",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
}


class AgentSettings(BaseModel):
    # Planner backend
    azure_endpoint: Optional[str] = None
    azure_api_key: Optional[str] = None
    api_version: str = "2024-12-01-preview"
    azure_deployment: str = "gpt-4o-mini"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # Agent loop
    max_turns: int = Field(25, ge=1)
    human_input_timeout: Optional[float] = Field(None, gt=0)
    selector_policy: SelectorPolicy = SelectorPolicy.SOFT

    # Browser
    headless: bool = False
    chrome_path: Optional[str] = None
    debugging_port: int = Field(0, ge=0)  # 0: Chrome picks a free port
    selector_timeout: float = Field(10.0, gt=0)

    # HTTP shell
    host: str = "0.0.0.0"
    port: int = 3000

    log_level: str = "INFO"

    @property
    def uses_azure(self) -> bool:
        return bool(self.azure_endpoint and self.azure_api_key)


def load_settings(env_file: Optional[Union[str, Path]] = None, **overrides) -> AgentSettings:
    """
    Build settings from environment variables, then apply explicit overrides.

    Args:
        env_file: Optional path to a .env file (default: search from the cwd)
        **overrides: Field values that win over the environment; None is ignored

    Returns:
        Validated AgentSettings
    """
    load_dotenv(dotenv_path=env_file)

    values = {}
    for var, field in ENV_VARS.items():
        raw = os.getenv(var)
        if raw is not None and raw.strip():
            values[field] = raw.strip()

    values.update({k: v for k, v in overrides.items() if v is not None})
    return AgentSettings(**values)
