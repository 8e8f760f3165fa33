"""
Agent directory - roster lookup and free-text name resolution.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional

from .errors import AgentNotFound
from .models import Agent, RoleType

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """Casefold and drop all whitespace"""
    return _WHITESPACE.sub("", text).casefold()


class AgentDirectory:
    """
    Holds the session's agents in roster order.

    Names coming from LLM output are resolved in three tiers (exact,
    normalized, substring). Within a tier the first agent in roster order
    wins.
    """

    def __init__(self, agents: Iterable[Agent]):
        self._agents: Dict[str, Agent] = {}
        for agent in agents:
            self._agents[agent.id] = agent

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self):
        return iter(self._agents.values())

    def get(self, agent_id: str) -> Agent:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFound(agent_id) from None

    def all(self) -> List[Agent]:
        return list(self._agents.values())

    def alive(self) -> List[Agent]:
        return [a for a in self._agents.values() if a.alive]

    def with_role(self, role: RoleType, alive_only: bool = True) -> List[Agent]:
        return [
            a for a in self._agents.values()
            if a.role == role and (a.alive or not alive_only)
        ]

    def resolve(self, name_text: str, candidates: Optional[Iterable[Agent]] = None) -> Optional[Agent]:
        """
        Resolve a free-text name to an agent.

        Args:
            name_text: Name as written by an LLM
            candidates: Restrict the search (defaults to the whole roster)

        Returns:
            The matching agent or None
        """
        pool = list(candidates) if candidates is not None else self.all()
        text = (name_text or "").strip()
        if not text or not pool:
            return None

        # 1. exact
        for agent in pool:
            if agent.name == text:
                return agent

        # 2. case/space normalized
        wanted = normalize_name(text)
        if not wanted:
            return None
        for agent in pool:
            if normalize_name(agent.name) == wanted:
                return agent

        # 3. containment either way
        for agent in pool:
            name = normalize_name(agent.name)
            if name and (name in wanted or wanted in name):
                return agent

        logger.debug(f"No agent matches '{text}'")
        return None

    def find_mentioned(self, text: str, candidates: Iterable[Agent]) -> Optional[Agent]:
        """
        Find the candidate whose name appears earliest in a free-text reply.

        Longer names win when two names start at the same position, so
        "AI-Alpha2" is not read as "AI-Alpha".
        """
        haystack = normalize_name(text or "")
        if not haystack:
            return None

        best: Optional[Agent] = None
        best_key = None
        for agent in candidates:
            name = normalize_name(agent.name)
            if not name:
                continue
            pos = haystack.find(name)
            if pos < 0:
                continue
            key = (pos, -len(name))
            if best_key is None or key < best_key:
                best, best_key = agent, key
        return best
