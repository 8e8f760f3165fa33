"""
Unit tests for the deterministic Werewolf rules.
"""
import pytest

from strategy_battle.config import WerewolfSettings
from strategy_battle.directory import AgentDirectory
from strategy_battle.errors import ConfigurationError
from strategy_battle.game_engine import WerewolfGameEngine
from strategy_battle.models import Agent, Camp, NightActions, RoleType, WerewolfState
from tests.mock_agents import FirstChoiceRng


def _kill(roster, *names):
    for agent in roster:
        if agent.name in names:
            agent.alive = False


def test_assign_roles_uses_configured_counts():
    agents = [Agent(id=f"p{i}", name=f"N{i}", endpoint="e", model="m") for i in range(6)]
    engine = WerewolfGameEngine(rng=FirstChoiceRng())

    engine.assign_roles(agents)

    assert [a.role for a in agents] == [
        RoleType.WEREWOLF, RoleType.WEREWOLF, RoleType.SEER,
        RoleType.WITCH, RoleType.VILLAGER, RoleType.VILLAGER,
    ]


def test_assign_roles_rejects_count_mismatch():
    agents = [Agent(id="p1", name="A", endpoint="e", model="m")]
    engine = WerewolfGameEngine(WerewolfSettings())

    with pytest.raises(ConfigurationError):
        engine.assign_roles(agents)


def test_victory_wolves_reach_parity(roster):
    """2 wolves vs 2 good -> wolves win."""
    engine = WerewolfGameEngine()
    _kill(roster, "Carol", "Dave")

    assert engine.check_victory_condition(roster) == Camp.WOLF


def test_victory_no_living_non_wolves(roster):
    engine = WerewolfGameEngine()
    _kill(roster, "Carol", "Dave", "Erin", "Frank")

    assert engine.check_victory_condition(roster) == Camp.WOLF


def test_victory_all_wolves_dead(roster):
    engine = WerewolfGameEngine()
    _kill(roster, "Alice", "Bob")

    assert engine.check_victory_condition(roster) == Camp.GOOD


def test_no_winner_while_good_outnumber(roster):
    """2 wolves vs 3 good -> game continues."""
    engine = WerewolfGameEngine()
    _kill(roster, "Erin")

    assert engine.check_victory_condition(roster) is None


def test_tally_wolf_votes_majority_and_tie():
    engine = WerewolfGameEngine(rng=FirstChoiceRng())

    assert engine.tally_wolf_votes({}) is None
    assert engine.tally_wolf_votes({"p1": "p5", "p2": "p5", "p7": "p6"}) == "p5"
    assert engine.tally_wolf_votes({"p1": "p6", "p2": "p5"}) == "p6"


def test_night_kill_and_save(roster):
    engine = WerewolfGameEngine()
    directory = AgentDirectory(roster)
    state = WerewolfState(day_number=1)
    state.night = NightActions(wolf_target="p5")

    engine.apply_witch_choice(state, directory, save=True, poison_target=None)
    deaths = engine.resolve_night(state, directory)

    assert deaths == []
    assert directory.get("p5").alive
    assert state.witch_antidote_used

    # the antidote is spent for the rest of the game
    state.night = NightActions(wolf_target="p5")
    engine.apply_witch_choice(state, directory, save=True, poison_target=None)
    assert engine.resolve_night(state, directory) == ["p5"]
    assert not directory.get("p5").alive


def test_witch_may_save_and_poison_same_night(roster):
    engine = WerewolfGameEngine()
    directory = AgentDirectory(roster)
    state = WerewolfState(day_number=1)
    state.night = NightActions(wolf_target="p5")

    engine.apply_witch_choice(state, directory, save=True, poison_target="p1")
    deaths = engine.resolve_night(state, directory)

    assert deaths == ["p1"]
    assert state.witch_antidote_used and state.witch_poison_used


def test_save_without_victim_keeps_antidote(roster):
    engine = WerewolfGameEngine()
    directory = AgentDirectory(roster)
    state = WerewolfState(day_number=1)

    engine.apply_witch_choice(state, directory, save=True, poison_target=None)

    assert not state.witch_antidote_used
    assert engine.resolve_night(state, directory) == []


def test_vote_plurality_and_tie(roster):
    engine = WerewolfGameEngine()
    directory = AgentDirectory(roster)
    state = WerewolfState(day_number=1)

    state.votes = {"p1": "p2", "p2": "p3", "p3": "p1", "p4": "p1", "p6": "p1"}
    assert engine.resolve_vote(state, directory) == "p1"
    assert not directory.get("p1").alive
    assert state.votes == {}

    state.votes = {"p2": "p3", "p3": "p2"}
    assert engine.resolve_vote(state, directory) is None
    assert directory.get("p2").alive and directory.get("p3").alive


def test_tally_votes_counts_in_first_vote_order():
    engine = WerewolfGameEngine()

    counts = engine.tally_votes({"p1": "p3", "p2": "p4", "p3": "p4", "p4": "p3", "p5": "p4"})

    assert counts == {"p3": 2, "p4": 3}
    assert counts.most_common() == [("p4", 3), ("p3", 2)]
    assert engine.tally_votes({}) == {}


def test_seer_check_records_history(roster):
    engine = WerewolfGameEngine()
    state = WerewolfState(day_number=2)

    assert engine.record_seer_check(state, roster[2], roster[0]) is True
    assert engine.record_seer_check(state, roster[2], roster[4]) is False
    assert state.seer_checks == {"Alice": True, "Erin": False}
    assert state.history[0]["result"] == "wolf"


def test_headcount_tiebreak_goes_to_wolves(roster):
    engine = WerewolfGameEngine()

    assert engine.winner_by_headcount(roster) == Camp.GOOD
    _kill(roster, "Carol", "Dave")
    assert engine.winner_by_headcount(roster) == Camp.WOLF
