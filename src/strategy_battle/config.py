"""
Session configuration.

A session is configured from a JSON file::

    {
      "mode": "werewolf",
      "agents": [
        {"name": "AI-Alpha", "endpoint": "https://api.openai.com/v1", "model": "gpt-4o-mini"},
        ...
      ],
      "director": {"name": "GM", "model": "gpt-4o", "system_prompt": "..."}
    }

Credentials left empty are read from the environment (``.env`` is honoured).
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError
from .models import Agent, GameMode, RoleType

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1"


class EndpointConfig(BaseModel):
    """OpenAI-compatible chat-completions endpoint"""
    endpoint: str = DEFAULT_ENDPOINT
    credential: str = ""
    credential_env: str = "OPENAI_API_KEY"
    model: str = "gpt-4o-mini"
    requests_per_minute: int = 25


class AgentConfig(EndpointConfig):
    """One player"""
    id: Optional[str] = None
    name: str
    persona: str = ""


class DirectorConfig(EndpointConfig):
    """The GM in director mode"""
    name: str = "GM"
    system_prompt: str = ""


def _default_role_counts() -> Dict[RoleType, int]:
    return {
        RoleType.WEREWOLF: 2,
        RoleType.SEER: 1,
        RoleType.WITCH: 1,
        RoleType.VILLAGER: 2,
    }


class WerewolfSettings(BaseModel):
    """Scripted Werewolf tunables"""
    role_counts: Dict[RoleType, int] = Field(default_factory=_default_role_counts)
    max_days: int = 20

    def role_list(self) -> List[RoleType]:
        """Roles in declaration order, one entry per seat"""
        roles = []
        for role_type, count in self.role_counts.items():
            roles.extend([role_type] * count)
        return roles


class SessionConfig(BaseModel):
    """Static structure supplied at session start"""
    mode: GameMode = GameMode.DIRECTOR
    agents: List[AgentConfig]
    director: Optional[DirectorConfig] = None
    fallback_director: Optional[DirectorConfig] = None

    context_limit: int = 30
    call_timeout: float = 60.0
    temperature: float = 0.7
    max_tokens: int = 500
    max_rounds: int = 50
    max_directive_retries: int = 1
    auto_continue: bool = False

    werewolf: WerewolfSettings = Field(default_factory=WerewolfSettings)

    def resolve_credentials(self) -> None:
        """Fill empty credentials from the environment"""
        endpoints: List[EndpointConfig] = list(self.agents)
        if self.director:
            endpoints.append(self.director)
        if self.fallback_director:
            endpoints.append(self.fallback_director)

        for cfg in endpoints:
            if not cfg.credential and cfg.credential_env:
                cfg.credential = os.getenv(cfg.credential_env, "")

    def validate_for_start(self, director_injected: bool = False) -> None:
        """
        Raise ConfigurationError if a session cannot start with this config.

        Args:
            director_injected: A director callable is supplied by the host, so
                no director endpoint or credential is needed.
        """
        if not self.agents:
            raise ConfigurationError("No agents configured")

        names = [a.name for a in self.agents]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate agent names: {duplicates}")

        ids = [cfg.id or f"p{index}" for index, cfg in enumerate(self.agents, 1)]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate agent ids: {duplicates}")

        for cfg in self.agents:
            if not cfg.name.strip():
                raise ConfigurationError("Agent with empty name")
            if not cfg.credential:
                raise ConfigurationError(f"Missing credential for agent {cfg.name}")

        if self.mode == GameMode.DIRECTOR and not director_injected:
            if self.director is None:
                raise ConfigurationError("Director mode requires a director")
            if not self.director.credential:
                raise ConfigurationError(f"Missing credential for director {self.director.name}")

        if self.mode == GameMode.WEREWOLF:
            seats = len(self.werewolf.role_list())
            if seats != len(self.agents):
                raise ConfigurationError(
                    f"Role count ({seats}) doesn't match number of agents ({len(self.agents)})"
                )
            if self.werewolf.role_counts.get(RoleType.WEREWOLF, 0) < 1:
                raise ConfigurationError("At least one werewolf is required")

    def build_agents(self) -> List[Agent]:
        """Fresh Agent records in roster order"""
        agents = []
        for index, cfg in enumerate(self.agents, 1):
            agents.append(Agent(
                id=cfg.id or f"p{index}",
                name=cfg.name.strip(),
                endpoint=cfg.endpoint,
                credential=cfg.credential,
                model=cfg.model,
                persona=cfg.persona,
            ))
        return agents


def load_config(path: str | Path, mode: Optional[GameMode] = None) -> SessionConfig:
    """
    Load and validate a session config file.

    Args:
        path: JSON file
        mode: Overrides the file's mode

    Returns:
        SessionConfig with credentials resolved from the environment
    """
    load_dotenv(override=False)

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read config {path}: {e}") from e

    if mode is not None:
        raw["mode"] = mode.value

    try:
        config = SessionConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {path}: {e}") from e

    config.resolve_credentials()
    logger.info(f"📋 Loaded config: mode={config.mode.value}, {len(config.agents)} agents")
    return config
