"""
AI Strategy Battle - LLM multi-agent game coordinator.

Runs director-driven free play or a scripted Werewolf game between
LLM agents behind OpenAI-compatible endpoints.
"""
from .config import AgentConfig, DirectorConfig, EndpointConfig, SessionConfig, WerewolfSettings, load_config
from .coordinator import TurnCoordinator
from .errors import AgentNotFound, ConfigurationError, DirectorCallError, LLMCallError
from .events import LoggingObserver, SessionObserver
from .models import Camp, CoordinatorState, GameMode, RoleType, SessionResult
from .transcript import InMemoryTranscript

__version__ = "1.0.0"

__all__ = [
    "AgentConfig",
    "AgentNotFound",
    "Camp",
    "ConfigurationError",
    "CoordinatorState",
    "DirectorCallError",
    "DirectorConfig",
    "EndpointConfig",
    "GameMode",
    "InMemoryTranscript",
    "LLMCallError",
    "LoggingObserver",
    "RoleType",
    "SessionConfig",
    "SessionObserver",
    "SessionResult",
    "TurnCoordinator",
    "WerewolfSettings",
    "load_config",
]
