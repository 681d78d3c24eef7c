"""Settings for the agent service, read from the process environment."""

import os
from typing import List, Literal, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_MCP_ENDPOINT = "https://api.githubcopilot.com/mcp/"
TOKEN_ENV_VARS = ("COPILOT_MCP_TOKEN", "GITHUB_COPILOT_MCP_TOKEN")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got '{raw}'.")


class FoundrySettings(BaseModel):
    """
    Configuration of the runtime, the tool gateway and the polling loop.

    Attributes:
        runtime: Which conversation runtime hosts the agent.
        project_endpoint: Azure AI Foundry project endpoint (or OpenAI base URL).
        deployment_name: Model deployment the transient agent runs on.
        use_default_azure_credential: Use DefaultAzureCredential instead of the Azure CLI credential.
        instructions: Agent instructions; generated from the catalog when unset.
        agent_name: Name of the transient agent.
        poll_interval: Seconds between two run polls.
        max_polls: Polls before a run is abandoned.
        mcp_enabled: Whether the MCP tools are advertised at all.
        mcp_server_label: Label of the MCP server.
        mcp_endpoint: JSON-RPC endpoint of the MCP gateway.
        mcp_token: Bearer token for the MCP gateway.
        mcp_timeout: Request timeout for one tool call, in seconds.
        allowed_tools: Tool names to enable; empty enables every known tool.
        recency_days: Window of the default repository search query.
        openai_api_key: API key for the OpenAI Assistants runtime.
        openai_api_version: API version, for Azure OpenAI endpoints.
    """

    model_config = ConfigDict(frozen=True)

    runtime: Literal["azure-agents", "openai-assistants"] = "azure-agents"
    project_endpoint: Optional[str] = None
    deployment_name: Optional[str] = None
    use_default_azure_credential: bool = True
    instructions: Optional[str] = None
    agent_name: str = "McpAgent"
    poll_interval: float = Field(default=0.5, ge=0.2, le=1.0)
    max_polls: int = Field(default=600, ge=1)
    mcp_enabled: bool = True
    mcp_server_label: str = "github"
    mcp_endpoint: str = DEFAULT_MCP_ENDPOINT
    mcp_token: Optional[str] = Field(default=None, repr=False)
    mcp_timeout: float = Field(default=60.0, gt=0)
    allowed_tools: List[str] = Field(default_factory=list)
    recency_days: int = Field(default=30, ge=1)
    openai_api_key: Optional[str] = Field(default=None, repr=False)
    openai_api_version: Optional[str] = None

    @field_validator("mcp_endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"mcp_endpoint must be an http(s) URL, got '{value}'")
        return value

    @field_validator("allowed_tools")
    @classmethod
    def _strip_names(cls, value: List[str]) -> List[str]:
        return [name.strip() for name in value if name and name.strip()]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, load_dotenv_file: bool = True) -> "FoundrySettings":
        """
        Build the settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            load_dotenv_file: Load a ``.env`` file into ``os.environ`` first.

        Returns:
            The validated settings.

        Raises:
            ConfigurationError: If a value is malformed or out of range.
        """
        if load_dotenv_file:
            load_dotenv()
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        values: dict = {}
        for field, name in (
            ("runtime", "FOUNDRY_RUNTIME"),
            ("project_endpoint", "FOUNDRY_PROJECT_ENDPOINT"),
            ("deployment_name", "FOUNDRY_DEPLOYMENT_NAME"),
            ("instructions", "FOUNDRY_INSTRUCTIONS"),
            ("agent_name", "FOUNDRY_AGENT_NAME"),
            ("poll_interval", "FOUNDRY_POLL_INTERVAL"),
            ("max_polls", "FOUNDRY_MAX_POLLS"),
            ("mcp_server_label", "FOUNDRY_MCP_SERVER_LABEL"),
            ("mcp_endpoint", "COPILOT_MCP_ENDPOINT"),
            ("mcp_timeout", "COPILOT_MCP_TIMEOUT"),
            ("recency_days", "FOUNDRY_MCP_RECENCY_DAYS"),
            ("openai_api_key", "OPENAI_API_KEY"),
            ("openai_api_version", "OPENAI_API_VERSION"),
        ):
            value = get(name)
            if value is not None:
                values[field] = value

        for field, name in (
            ("use_default_azure_credential", "FOUNDRY_USE_DEFAULT_AZURE_CREDENTIAL"),
            ("mcp_enabled", "FOUNDRY_MCP_ENABLED"),
        ):
            value = get(name)
            if value is not None:
                values[field] = _parse_bool(name, value)

        token = next((get(name) for name in TOKEN_ENV_VARS if get(name)), None)
        if token:
            values["mcp_token"] = token

        allowed = get("FOUNDRY_MCP_ALLOWED_TOOLS")
        if allowed:
            values["allowed_tools"] = allowed.split(",")

        try:
            settings = cls(**values)
        except ValidationError as exc:
            msg = f"Invalid configuration: {exc}"
            logger.error(msg)
            raise ConfigurationError(msg) from exc

        if not settings.mcp_token:
            logger.warning("No MCP token configured; tool calls will report a missing credential.")
        return settings

    def require_runtime(self) -> None:
        """
        Check that the runtime can be reached with these settings.

        Raises:
            ConfigurationError: Naming every missing variable.
        """
        missing = []
        if self.runtime == "azure-agents" and not self.project_endpoint:
            missing.append("FOUNDRY_PROJECT_ENDPOINT")
        if not self.deployment_name:
            missing.append("FOUNDRY_DEPLOYMENT_NAME")
        if self.runtime == "openai-assistants" and not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if missing:
            msg = f"Missing configuration: {', '.join(missing)}."
            logger.error(msg)
            raise ConfigurationError(msg)
