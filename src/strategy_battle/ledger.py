"""
Secret ledger - per-agent private knowledge.
"""
import logging
from typing import Dict, List

logger = logging.getLogger(__name__)


class SecretLedger:
    """
    Queue of private strings per agent id.

    Entries are never dequeued while the session runs: a revealed role or a
    seer result is ongoing knowledge and is repeated in every prompt built
    for that agent.
    """

    def __init__(self):
        self._entries: Dict[str, List[str]] = {}

    def add_secret(self, agent_id: str, text: str) -> bool:
        """
        Queue a secret for an agent.

        Returns:
            False if the identical text was already queued for that agent
        """
        text = text.strip()
        if not text:
            return False

        entries = self._entries.setdefault(agent_id, [])
        if text in entries:
            logger.debug(f"Secret already queued for {agent_id}")
            return False

        entries.append(text)
        logger.debug(f"🔒 Secret queued for {agent_id} ({len(entries)} total)")
        return True

    def entries(self, agent_id: str) -> List[str]:
        return list(self._entries.get(agent_id, []))

    def peek(self, agent_id: str) -> str:
        """All secrets for an agent joined by newlines (empty if none)"""
        return "\n".join(self._entries.get(agent_id, []))

    def clear_all(self) -> None:
        self._entries.clear()

    def __contains__(self, agent_id: str) -> bool:
        return bool(self._entries.get(agent_id))
