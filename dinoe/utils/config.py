"""
Configuration Management
========================

All runtime settings come from environment variables (optionally loaded
from a `.env` file) and are validated once, here, into frozen dataclasses.

The agent receives these objects at construction time and never re-reads
the environment during a session.

Usage:
    from dinoe.utils.config import get_config

    config = get_config()
    print(config.provider.kind, config.provider.model)
    print(config.agent.max_iterations)
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv


def _optional(name: str, default: str) -> str:
    """Get an optional environment variable with a default."""
    return os.getenv(name, default)


def _optional_int(name: str, default: int) -> int:
    """Get an optional integer environment variable."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _optional_float(name: str, default: float) -> float:
    """Get an optional float environment variable."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def _optional_bool(name: str, default: bool) -> bool:
    """True for 'true', '1', 'yes' or 'on' (case-insensitive)."""
    value = os.getenv(name)
    if not value:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

class ProviderKind(str, Enum):
    """Model backends the provider adapter knows how to talk to."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    GLM = "glm"

    @classmethod
    def parse(cls, value: str) -> "ProviderKind":
        name = value.strip().lower()
        if name == "zai":
            return cls.GLM
        try:
            return cls(name)
        except ValueError:
            available = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown provider: {value}. Available: {available}, zai") from None


# Environment variables checked, in order, before DINOE_API_KEY
API_KEY_ENV_VARS: dict[ProviderKind, tuple[str, ...]] = {
    ProviderKind.OPENAI: ("OPENAI_API_KEY", "DINOE_OPENAI_API_KEY"),
    ProviderKind.OPENROUTER: ("OPENROUTER_API_KEY", "DINOE_OPENROUTER_API_KEY"),
    ProviderKind.GLM: ("ZAI_API_KEY", "GLM_API_KEY", "DINOE_ZAI_API_KEY", "DINOE_GLM_API_KEY"),
    ProviderKind.OLLAMA: (),
}


@dataclass(frozen=True)
class ProviderConfig:
    """Which model backend to use and how to reach it."""
    kind: ProviderKind
    api_key: str | None     # None only for providers without auth (ollama)
    base_url: str | None    # None means the backend's default endpoint
    model: str
    temperature: float
    stream_enabled: bool
    timeout_seconds: float = 120.0


@dataclass(frozen=True)
class AgentConfig:
    """Limits and tuning knobs for the agent loop."""
    max_iterations: int = 20
    max_history: int = 50
    loop_threshold: int = 3
    memory_snippet_limit: int = 5
    shell_timeout_seconds: float = 60.0
    summarize_history: bool = False

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.max_history < 1:
            raise ValueError("max_history must be >= 1")
        if self.loop_threshold < 1:
            raise ValueError("loop_threshold must be >= 1")


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.provider.model
        config.agent.max_history
        config.workspace_dir
    """
    provider: ProviderConfig
    agent: AgentConfig
    workspace_dir: Path
    log_level: str


def default_workspace_dir() -> Path:
    """~/.dinoe/workspace"""
    return Path.home() / ".dinoe" / "workspace"


def resolve_api_key(kind: ProviderKind) -> str | None:
    """
    Find the credential for a provider.

    Provider-specific variables win over the generic DINOE_API_KEY.

    Raises:
        ValueError: If the provider needs a key and none is set
    """
    for var_name in API_KEY_ENV_VARS[kind]:
        value = os.getenv(var_name)
        if value:
            return value

    generic = os.getenv("DINOE_API_KEY")
    if generic:
        return generic

    if kind is ProviderKind.OLLAMA:
        return None

    names = ", ".join(API_KEY_ENV_VARS[kind] + ("DINOE_API_KEY",))
    raise ValueError(f"No API key found for provider '{kind.value}'. Set one of: {names}")


def load_config() -> Config:
    """
    Load and validate all configuration from the environment.

    Raises:
        ValueError: If a value is malformed or a required key is missing
    """
    load_dotenv()

    kind = ProviderKind.parse(_optional("DINOE_PROVIDER", "openai"))
    workspace = os.getenv("DINOE_WORKSPACE")

    return Config(
        provider=ProviderConfig(
            kind=kind,
            api_key=resolve_api_key(kind),
            base_url=os.getenv("DINOE_BASE_URL") or None,
            model=_optional("DINOE_MODEL", "gpt-4o"),
            temperature=_optional_float("DINOE_TEMPERATURE", 1.0),
            stream_enabled=_optional_bool("DINOE_STREAM", True),
            timeout_seconds=_optional_float("DINOE_PROVIDER_TIMEOUT", 120.0),
        ),
        agent=AgentConfig(
            max_iterations=_optional_int("DINOE_MAX_ITERATIONS", 20),
            max_history=_optional_int("DINOE_MAX_HISTORY", 50),
            loop_threshold=_optional_int("DINOE_LOOP_THRESHOLD", 3),
            memory_snippet_limit=_optional_int("DINOE_MEMORY_SNIPPETS", 5),
            shell_timeout_seconds=_optional_float("DINOE_SHELL_TIMEOUT", 60.0),
            summarize_history=_optional_bool("DINOE_SUMMARIZE_HISTORY", False),
        ),
        workspace_dir=Path(workspace).expanduser() if workspace else default_workspace_dir(),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """Load the configuration on first access and cache it."""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config_instance
    _config_instance = None
