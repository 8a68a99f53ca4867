"""
BC Telemetry Buddy server configuration

Reads environment variables (a .env file is loaded by the server entry point)
into a validated ServerConfig covering the Application Insights target,
authentication, workspace layout, caching, PII handling and external references.
"""

import json
import os
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError


APP_INSIGHTS_API_URL = "https://api.applicationinsights.io/v1/apps"
APP_INSIGHTS_SCOPE = "https://api.applicationinsights.io/.default"

AuthFlow = Literal["azure_cli", "device_code", "client_credentials"]


class ConfigurationError(Exception):
    """Raised when environment configuration cannot be parsed."""


class Reference(BaseModel):
    """An external source of reference KQL queries."""
    name: str
    type: Literal["github", "web"] = "github"
    url: str
    enabled: bool = True


class ServerConfig(BaseModel):
    """Configuration for the MCP server and its collaborators"""
    app_insights_app_id: str = Field("", description="Application Insights application id")
    tenant_id: str = Field("", description="Entra ID tenant id")
    client_id: str = Field("", description="App registration client id")
    client_secret: str = Field("", description="App registration secret (client_credentials flow)")
    auth_flow: AuthFlow = Field("azure_cli", description="How bearer tokens are acquired")
    workspace_path: Path = Field(default_factory=Path.cwd, description="Workspace root")
    queries_folder: str = Field("queries", description="Saved query folder under the workspace")
    cache_enabled: bool = True
    cache_ttl_seconds: int = Field(3600, ge=0)
    remove_pii: bool = False
    references: List[Reference] = Field(default_factory=list)

    @property
    def queries_path(self) -> Path:
        return self.workspace_path / self.queries_folder

    @property
    def cache_path(self) -> Path:
        return self.workspace_path / ".vscode" / ".bctb" / "cache"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


def load_server_config() -> ServerConfig:
    """
    Build the server configuration from environment variables.

    Raises:
        ConfigurationError: If a value cannot be parsed
    """
    try:
        references = json.loads(os.getenv("BCTB_REFERENCES", "[]") or "[]")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"BCTB_REFERENCES is not valid JSON: {e}") from e

    values = {
        "app_insights_app_id": os.getenv("BCTB_APP_INSIGHTS_APP_ID", ""),
        "tenant_id": os.getenv("BCTB_TENANT_ID", ""),
        "client_id": os.getenv("BCTB_CLIENT_ID", ""),
        "client_secret": os.getenv("BCTB_CLIENT_SECRET", ""),
        "auth_flow": os.getenv("BCTB_AUTH_FLOW", "azure_cli"),
        "queries_folder": os.getenv("BCTB_QUERIES_FOLDER", "queries"),
        "cache_enabled": _env_bool("BCTB_CACHE_ENABLED", "true"),
        "cache_ttl_seconds": os.getenv("BCTB_CACHE_TTL_SECONDS", "3600"),
        "remove_pii": _env_bool("BCTB_REMOVE_PII", "false"),
        "references": references,
    }
    workspace = os.getenv("BCTB_WORKSPACE_PATH")
    if workspace:
        values["workspace_path"] = Path(workspace)

    try:
        return ServerConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Config validation failed: {e}") from e


def validate_server_config(config: ServerConfig) -> Optional[str]:
    """
    Validate the configuration for running queries.

    Returns:
        Error message if configuration is invalid, None if valid
    """
    missing = []
    if not config.app_insights_app_id:
        missing.append("BCTB_APP_INSIGHTS_APP_ID")
    if config.auth_flow in ("device_code", "client_credentials"):
        if not config.tenant_id:
            missing.append("BCTB_TENANT_ID")
        if not config.client_id:
            missing.append("BCTB_CLIENT_ID")
    if config.auth_flow == "client_credentials" and not config.client_secret:
        missing.append("BCTB_CLIENT_SECRET")

    if missing:
        return f"Error: BC Telemetry Buddy not configured. Please set {', '.join(missing)} environment variables."

    return None
