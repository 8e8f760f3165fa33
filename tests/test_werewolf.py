"""
Tests for the scripted Werewolf game driven through the coordinator.

With FirstChoiceRng the seating is fixed: Alice and Bob are wolves, Carol
is the seer, Dave the witch, Erin and Frank villagers.
"""
import asyncio
import json

import pytest

from strategy_battle.config import WerewolfSettings
from strategy_battle.coordinator import TurnCoordinator
from strategy_battle.models import Camp, GameMode
from strategy_battle.werewolf import WerewolfRuleEngine, parse_json_reply
from tests.mock_agents import ClientPool, FirstChoiceRng, ScriptedClient, make_config, until, werewolf_player

NAMES = ["Alice", "Bob", "Carol", "Dave", "Erin", "Frank"]


def _session(players, **overrides):
    config = make_config(NAMES, mode=GameMode.WEREWOLF, **overrides)
    pool = ClientPool({name: ScriptedClient(default=reply) for name, reply in players.items()})
    return TurnCoordinator(config, client_factory=pool, rng=FirstChoiceRng()), pool


def _texts(session):
    return [m.text for m in session.transcript.messages()]


def _default_players():
    return {
        "Alice": werewolf_player(vote="Bob"),
        "Bob": werewolf_player(vote="Carol"),
        "Carol": werewolf_player(),
        "Dave": werewolf_player(),
        "Erin": werewolf_player(),
        "Frank": werewolf_player(),
    }


@pytest.mark.asyncio
async def test_first_day_plays_out():
    """Erin dies at night, Alice is voted out, nobody has won yet."""
    session, pool = _session(_default_players())
    task = asyncio.create_task(session.start())

    speech_pauses = 0
    for _ in range(10):
        await until(lambda: session.paused or session.ended)
        if any("进入下一个夜晚" in t for t in _texts(session)):
            break
        speech_pauses += 1
        session.resume()

    directory = session.directory
    texts = _texts(session)

    # five living players spoke, each followed by a pause
    assert speech_pauses == 5
    assert not directory.get("p5").alive
    assert any("昨晚死亡的玩家是：Erin" in t for t in texts)

    assert not directory.get("p1").alive
    assert "Alice 被投票出局！\n身份是：狼人" in texts
    assert any(t.startswith("投票结果：Alice(3票)") for t in texts)
    assert session.rule_engine.state.winner is None

    # the seer's result is private to Carol
    assert "是狼人" in session.ledger.peek("p3")
    assert not any("查验结果" in t for t in texts)
    for name in ("Alice", "Bob", "Dave", "Erin", "Frank"):
        assert not any("查验结果" in p for p in pool[name].prompts)
    assert any("查验结果" in p for p in pool["Carol"].prompts)

    # wolves learn their teammates, villagers never do
    assert any("你的狼人队友：Bob" in p for p in pool["Alice"].prompts)
    assert not any("你的狼人队友" in p for p in pool["Frank"].prompts)

    session.resume()
    await until(lambda: session.paused or session.ended)
    assert any("第 2 天 - 夜晚" in t for t in _texts(session))

    session.stop()
    result = await asyncio.wait_for(task, timeout=1)
    assert result.reason == "stopped"


@pytest.mark.asyncio
async def test_wolves_win_at_parity():
    """Good players vote each other out until wolves reach parity."""
    players = {
        "Alice": werewolf_player(wolf_target="Erin", vote="Carol"),
        "Bob": werewolf_player(wolf_target="Erin", vote="Carol"),
        "Carol": werewolf_player(vote="Dave"),
        "Dave": werewolf_player(vote="Carol"),
        "Erin": werewolf_player(vote="Carol"),
        "Frank": werewolf_player(vote="Carol"),
    }
    session, _ = _session(players, auto_continue=True)

    result = await asyncio.wait_for(session.start(), timeout=2)

    # night 1: Erin; day 1: Carol voted out -> 2 wolves vs Dave and Frank
    assert result.reason == "victory"
    assert result.winner == Camp.WOLF
    texts = _texts(session)
    reveal = next(t for t in texts if "游戏结束" in t)
    assert "获胜方：狼人阵营" in reveal
    assert "Alice：狼人" in reveal
    assert session.ledger.peek("p1") == ""


@pytest.mark.asyncio
async def test_witch_saves_and_poisons():
    """Antidote saves Erin and poison kills Alice the same night; both potions stay spent."""
    players = _default_players()
    players["Dave"] = werewolf_player(witch="解药：救\n毒药：Alice")
    session, pool = _session(players, auto_continue=True)
    session.config.werewolf = WerewolfSettings(max_days=2)

    result = await asyncio.wait_for(session.start(), timeout=2)

    directory = session.directory
    state = session.rule_engine.state
    texts = _texts(session)

    # night 1: 1 wolf vs 4 good
    assert any("昨晚死亡的玩家是：Alice" in t for t in texts)
    assert state.witch_antidote_used and state.witch_poison_used

    # day 1: votes for the dead Alice are skipped, Bob's vote alone exiles Carol
    assert "投票结果：Carol(1票)" in texts
    assert "Carol 被投票出局！\n身份是：预言家" in texts

    # night 2: no potion left, so the witch is not asked and Erin dies
    witch_prompts = [c[-1]["content"] for c in pool["Dave"].calls if "[女巫夜晚行动" in c[-1]["content"]]
    assert len(witch_prompts) == 1
    assert any("昨晚死亡的玩家是：Erin" in t for t in texts)
    assert not directory.get("p5").alive

    # day 2: nobody has a living target, then the day cap ends it 1 wolf vs 2 good
    assert "无人投票，本轮无人出局。" in texts
    assert [a.name for a in directory.alive()] == ["Bob", "Dave", "Frank"]
    assert result.reason == "max_days"
    assert result.winner == Camp.GOOD


@pytest.mark.asyncio
async def test_unparseable_witch_reply_is_reprompted_then_skipped():
    players = _default_players()
    players["Dave"] = werewolf_player(witch="嗯……")
    session, pool = _session(players)
    task = asyncio.create_task(session.start())

    await until(lambda: session.paused or session.ended)

    witch_prompts = [c[-1]["content"] for c in pool["Dave"].calls if "[女巫夜晚行动" in c[-1]["content"]]
    assert len(witch_prompts) == 2
    assert "无法识别你的选择" in witch_prompts[1]
    assert "Dave 的选择无法识别，视为放弃" in _texts(session)
    assert not session.rule_engine.state.witch_antidote_used
    assert not session.directory.get("p5").alive

    session.stop()
    await asyncio.wait_for(task, timeout=1)



@pytest.mark.asyncio
async def test_unparseable_choice_is_reprompted_then_skipped():
    players = _default_players()
    players["Carol"] = lambda messages: "我不知道"
    session, pool = _session(players)
    task = asyncio.create_task(session.start())

    await until(lambda: session.paused or session.ended)

    seer_prompts = [c[-1]["content"] for c in pool["Carol"].calls if "[预言家夜晚行动" in c[-1]["content"]]
    assert len(seer_prompts) == 2
    assert "无法识别你的选择" in seer_prompts[1]
    assert "Carol 的选择无法识别，视为放弃" in _texts(session)
    assert session.rule_engine.state.seer_checks == {}

    session.stop()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_max_days_uses_headcount():
    session, _ = _session(_default_players(), auto_continue=True)
    session.config.werewolf = WerewolfSettings(max_days=0)

    result = await session.start()

    assert result.reason == "max_days"
    assert result.winner == Camp.GOOD


def test_parse_json_reply():
    assert parse_json_reply('```json\n{"target": "Bob"}\n```') == {"target": "Bob"}
    assert parse_json_reply('我选择 {"target": "Bob"} 吧') == {"target": "Bob"}
    assert parse_json_reply("[1, 2]") is None
    assert parse_json_reply("no json") is None


def test_parse_witch_reply():
    session, _ = _session({})
    engine = WerewolfRuleEngine(session)
    targets = [a for a in session.directory.all() if a.name != "Dave"]

    assert engine.parse_witch_reply("解药：救\n毒药：不用", targets) == (True, None)
    save, poison = engine.parse_witch_reply("解药：不救\n毒药：Bob", targets)
    assert save is False and poison.name == "Bob"
    assert engine.parse_witch_reply("我要使用毒药毒死Frank", targets)[1].name == "Frank"
    assert engine.parse_witch_reply("都不使用", targets) == (False, None)
    assert engine.parse_witch_reply("嗯……", targets) is None


def test_parse_target_and_speech():
    session, _ = _session({})
    engine = WerewolfRuleEngine(session)
    agents = session.directory.all()

    assert engine.parse_target('{"target": "bob"}', agents).name == "Bob"
    assert engine.parse_target("我投给 Carol", agents).name == "Carol"
    assert engine.parse_target("弃权", agents) is None

    speech = engine.parse_speech(agents[0], json.dumps({"speech": "我是好人", "suspicion": "Dave"}), agents[1:])
    assert speech.text == "我是好人"
    assert speech.suspicion == "Dave"

    plain = engine.parse_speech(agents[0], "我觉得Erin很怪", agents[1:])
    assert plain.text == "我觉得Erin很怪"
    assert plain.suspicion == "Erin"
