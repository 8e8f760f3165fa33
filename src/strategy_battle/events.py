"""
Observer interface the coordinator reports through.

The core never touches a rendering technology; a host UI subclasses
SessionObserver and overrides what it needs.
"""
import logging
from typing import List

from .models import Agent, CoordinatorState, RoundState
from .transcript import redact

logger = logging.getLogger(__name__)


class SessionObserver:
    """No-op observer"""

    def on_status_change(self, state: CoordinatorState, round_state: RoundState) -> None:
        pass

    def on_action_logged(self, speaker: str, text: str) -> None:
        pass

    def on_players_changed(self, agents: List[Agent]) -> None:
        pass


class LoggingObserver(SessionObserver):
    """Mirrors session events to the log"""

    def on_status_change(self, state: CoordinatorState, round_state: RoundState) -> None:
        logger.info(
            f"📍 {state.value} | round {round_state.round_number} | phase {round_state.phase}"
        )

    def on_action_logged(self, speaker: str, text: str) -> None:
        logger.debug(f"[{speaker}] {redact(text)[:120]}")

    def on_players_changed(self, agents: List[Agent]) -> None:
        alive = [a.name for a in agents if a.alive]
        logger.info(f"👥 Alive: {alive}")
