"""
Pytest configuration for coordinator tests.
"""
import pytest

from strategy_battle.models import Agent, RoleType

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


@pytest.fixture
def roster():
    """Six agents with the default Werewolf seating already applied."""
    seating = [
        ("p1", "Alice", RoleType.WEREWOLF),
        ("p2", "Bob", RoleType.WEREWOLF),
        ("p3", "Carol", RoleType.SEER),
        ("p4", "Dave", RoleType.WITCH),
        ("p5", "Erin", RoleType.VILLAGER),
        ("p6", "Frank", RoleType.VILLAGER),
    ]
    return [
        Agent(id=agent_id, name=name, endpoint="http://test", model=name, role=role)
        for agent_id, name, role in seating
    ]


@pytest.fixture(autouse=True)
def _no_ambient_key(monkeypatch):
    """Keep a developer's real key out of config tests."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
