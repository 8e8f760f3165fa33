"""
Werewolf rule engine - the scripted alternative to director-driven play.

night -> day_discussion -> day_vote -> night ... until a camp wins.

Agents are asked sequentially through the coordinator. Free text is only
parsed for in-phase choices (targets, witch potions, speeches); when a
choice cannot be matched to a legal target the agent gets one corrective
re-prompt, after which the choice is skipped.
"""
import json
import logging
import random
import re
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from . import prompts
from .game_engine import WerewolfGameEngine
from .models import Agent, Camp, NightActions, Phase, RoleType, Speech, WerewolfState

if TYPE_CHECKING:
    from .coordinator import TurnCoordinator

logger = logging.getLogger(__name__)

WINNER_LABELS = {
    Camp.GOOD: "好人阵营",
    Camp.WOLF: "狼人阵营",
}

_SAVE_LINE = re.compile(r"解药\s*[：:]\s*(不救|不使用|不用|救|使用)")
_POISON_LINE = re.compile(r"毒药\s*[：:]\s*([^\n]+)")
_PASS_WORDS = ("不", "无", "pass", "none")


def parse_json_reply(response: str) -> Optional[Dict]:
    """Safely parse a JSON object out of an LLM reply"""
    cleaned = response.replace("```json", "").replace("```", "").strip()
    if not cleaned:
        return None

    try:
        data = json.loads(cleaned)
        return data if isinstance(data, dict) else None
    except json.JSONDecodeError:
        pass

    json_match = re.search(r'\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}', cleaned, re.DOTALL)
    if json_match:
        try:
            data = json.loads(json_match.group())
            return data if isinstance(data, dict) else None
        except json.JSONDecodeError:
            return None
    return None


class WerewolfRuleEngine:
    """Runs a complete scripted Werewolf game on a coordinator"""

    def __init__(self, session: "TurnCoordinator", rng: Optional[random.Random] = None):
        self.session = session
        self.directory = session.directory
        self.settings = session.config.werewolf
        self.game = WerewolfGameEngine(self.settings, rng)
        self.state = WerewolfState()
        self.last_night_summary = "昨晚平安无事"

    @property
    def ended(self) -> bool:
        return self.session.ended

    async def run(self) -> Optional[Camp]:
        """Play until a camp wins or the session is stopped"""
        agents = self.directory.all()

        self.session.post(
            prompts.SYSTEM_SPEAKER,
            prompts.werewolf_opening([a.name for a in agents], self.settings.role_counts),
        )
        self.game.assign_roles(agents)
        self._send_role_secrets()
        self.session.players_changed()
        self.session.post(prompts.SYSTEM_SPEAKER, "✅ 身份已秘密分配完成！游戏即将开始...")

        while not self.ended:
            if self.state.day_number >= self.settings.max_days:
                logger.warning("Max days reached, ending game")
                self._game_over(self.game.winner_by_headcount(agents), reason="max_days")
                break

            await self.run_night()
            if self._check_game_over():
                break

            await self.run_day_discussion()
            if self.ended:
                break

            await self.run_vote()
            if self._check_game_over():
                break

            self.session.post(prompts.SYSTEM_SPEAKER, '⏸️ 点击"继续游戏"进入下一个夜晚...')
            await self.session.pause()

        return self.state.winner

    def _send_role_secrets(self) -> None:
        wolves = self.directory.with_role(RoleType.WEREWOLF, alive_only=False)
        for agent in self.directory:
            teammates = [w.name for w in wolves if w.id != agent.id]
            self.session.ledger.add_secret(agent.id, prompts.role_reveal(agent, teammates))
            self.session.post(prompts.SECRET_SPEAKER, f"已向 {agent.name} 发送身份信息")

    def _check_game_over(self) -> bool:
        if self.ended:
            return True

        winner = self.game.check_victory_condition(self.directory.all())
        if winner is None:
            return False

        self._game_over(winner)
        return True

    def _game_over(self, winner: Camp, reason: str = "victory") -> None:
        self.state.winner = winner
        logger.info(f"🏆 Game over, winner: {winner.value}")
        self.session.post(
            prompts.SYSTEM_SPEAKER,
            prompts.final_reveal(WINNER_LABELS[winner], self.directory.all()),
        )
        self.session.finish(reason, winner=winner)

    # =========================================================================
    # NIGHT
    # =========================================================================

    async def run_night(self) -> List[str]:
        """Wolves, then seer, then witch, then resolution"""
        self.state.day_number += 1
        self.state.phase = Phase.NIGHT
        self.state.night = NightActions()
        self.session.set_phase(Phase.NIGHT.value, self.state.day_number)

        logger.info(f"🌙 Night {self.state.day_number}")
        self.session.post(
            prompts.NIGHT_SPEAKER,
            f"========== 第 {self.state.day_number} 天 - 夜晚 ==========\n\n天黑请闭眼...",
        )

        await self._wolves_action()
        if self.ended:
            return []
        await self._seer_action()
        if self.ended:
            return []
        await self._witch_action()
        if self.ended:
            return []

        deaths = self.game.resolve_night(self.state, self.directory)
        names = [self.directory.get(agent_id).name for agent_id in deaths]

        if names:
            self.last_night_summary = f"昨晚死亡的玩家是：{'、'.join(names)}"
        else:
            self.last_night_summary = "昨晚是平安夜，没有玩家死亡。"
        self.session.post(
            prompts.DAY_SPEAKER,
            f"========== 天亮了 ==========\n\n{self.last_night_summary}",
        )
        if names:
            self.session.players_changed()
        return deaths

    async def _wolves_action(self) -> None:
        wolves = self.directory.with_role(RoleType.WEREWOLF)
        targets = [a for a in self.directory.alive() if a.role != RoleType.WEREWOLF]
        if not wolves or not targets:
            return

        self.session.post(prompts.WOLF_SPEAKER, "狼人请睁眼，选择今晚要击杀的目标...")
        alive_names = [a.name for a in self.directory.alive()]
        choices: Dict[str, str] = {}

        for wolf in wolves:
            if self.ended:
                return
            teammates = [w.name for w in wolves if w.id != wolf.id]
            prompt = prompts.wolf_night_prompt(
                self.state.day_number, alive_names, [t.name for t in targets], teammates, choices,
            )
            target = await self.choose_target(wolf, prompt, targets)
            if target:
                self.state.night.wolf_votes[wolf.id] = target.id
                choices[wolf.name] = target.name
                logger.info(f"🐺 {wolf.name} -> {target.name}")

        self.state.night.wolf_target = self.game.tally_wolf_votes(self.state.night.wolf_votes)
        self.session.post(prompts.WOLF_SPEAKER, "狼人已做出选择，请闭眼...")

    async def _seer_action(self) -> None:
        for seer in self.directory.with_role(RoleType.SEER):
            if self.ended:
                return
            candidates = [a for a in self.directory.alive() if a.id != seer.id]
            if not candidates:
                continue

            self.session.post(prompts.SEER_SPEAKER, "预言家请睁眼，选择你要查验的目标...")
            prompt = prompts.seer_night_prompt(
                self.state.day_number, [c.name for c in candidates], self.state.seer_checks,
            )
            target = await self.choose_target(seer, prompt, candidates)
            if target:
                is_wolf = self.game.record_seer_check(self.state, seer, target)
                self.session.ledger.add_secret(
                    seer.id, prompts.seer_result_secret(self.state.day_number, target.name, is_wolf),
                )
                logger.info(f"🔮 {seer.name} checked {target.name}: {'wolf' if is_wolf else 'not wolf'}")
            self.session.post(prompts.SEER_SPEAKER, "预言家请闭眼...")

    async def _witch_action(self) -> None:
        witches = self.directory.with_role(RoleType.WITCH)
        if not witches:
            return
        witch = witches[0]

        night = self.state.night
        victim = self.directory.get(night.wolf_target) if night.wolf_target else None
        antidote_available = victim is not None and not self.state.witch_antidote_used
        poison_available = not self.state.witch_poison_used
        if not antidote_available and not poison_available:
            return

        poison_targets = [a for a in self.directory.alive() if a.id != witch.id]

        self.session.post(prompts.WITCH_SPEAKER, "女巫请睁眼...")
        instruction = prompts.witch_night_prompt(
            self.state.day_number,
            victim.name if victim else None,
            antidote_available,
            poison_available,
            [a.name for a in poison_targets],
        )

        prompt = instruction
        choice = None
        answered = False
        for attempt in range(2):
            reply = await self.session.call_agent(witch, prompt)
            if reply is None:
                break
            answered = True
            choice = self.parse_witch_reply(reply, poison_targets)
            if choice is not None:
                break
            logger.warning(f"Unparseable witch reply from {witch.name}: {reply[:80]}")
            prompt = f"{instruction}\n\n{prompts.ACTION_CORRECTION.format(options='解药：救/不救；毒药：玩家名字/不用')}"

        if choice is None:
            logger.info("💊 Witch passes")
            if answered:
                self.session.post(prompts.SYSTEM_SPEAKER, f"{witch.name} 的选择无法识别，视为放弃")
        else:
            save, poison = choice
            self.game.apply_witch_choice(
                self.state,
                self.directory,
                save=save and antidote_available,
                poison_target=poison.id if (poison and poison_available) else None,
            )
            logger.info(f"💊 Witch save={night.witch_save} poison={night.witch_poison_target}")

        self.session.post(prompts.WITCH_SPEAKER, "女巫请闭眼...")

    def parse_witch_reply(self, text: str, poison_targets: List[Agent]) -> Optional[Tuple[bool, Optional[Agent]]]:
        """
        Read the witch's potion choices.

        Returns:
            (save, poison_target) or None if neither potion was addressed
        """
        save: Optional[bool] = None
        match = _SAVE_LINE.search(text)
        if match:
            save = match.group(1) in ("救", "使用")
        elif "使用解药" in text:
            save = True

        poison: Optional[Agent] = None
        poison_decided = False
        match = _POISON_LINE.search(text)
        if match:
            value = match.group(1).strip()
            if value.lower().startswith(_PASS_WORDS):
                poison_decided = True
            else:
                poison = (
                    self.directory.find_mentioned(value, poison_targets)
                    or self.directory.resolve(value, poison_targets)
                )
                poison_decided = poison is not None
        elif "使用毒药" in text:
            rest = text.split("使用毒药", 1)[1]
            poison = self.directory.find_mentioned(rest, poison_targets)
            poison_decided = poison is not None

        if save is None and not poison_decided:
            if "不使用" in text or text.strip().lower() == "pass":
                return False, None
            return None
        return bool(save), poison

    # =========================================================================
    # DAY
    # =========================================================================

    async def run_day_discussion(self) -> List[Speech]:
        """Every living agent speaks once, in roster order, pausing after each"""
        self.state.phase = Phase.DAY_DISCUSSION
        self.state.day_speeches = []
        self.session.set_phase(Phase.DAY_DISCUSSION.value)
        logger.info(f"☀️ Day {self.state.day_number} discussion")

        self.session.post(prompts.DAY_SPEAKER, "现在进入发言环节，请存活的玩家依次发言...")

        alive = self.directory.alive()
        dead = [a.name for a in self.directory if not a.alive]
        wolves = self.directory.with_role(RoleType.WEREWOLF, alive_only=False)

        for agent in alive:
            if self.ended:
                break

            teammates = [w.name for w in wolves if w.id != agent.id and w.alive]
            hint = prompts.role_hint(
                agent, teammates, self.state.seer_checks,
                self.state.witch_antidote_used, self.state.witch_poison_used,
            )
            prompt = prompts.day_speech_prompt(
                self.state.day_number,
                hint,
                self.last_night_summary,
                [a.name for a in alive],
                dead,
                [f"{s.name}: {s.text}" for s in self.state.day_speeches],
            )

            reply = await self.session.call_agent(agent, prompt)
            if reply is None:
                continue

            others = [a for a in alive if a.id != agent.id]
            speech = self.parse_speech(agent, reply, others)
            self.state.day_speeches.append(speech)
            self.session.post(f"💬 {agent.name}", speech.text)

            await self.session.pause()

        return self.state.day_speeches

    def parse_speech(self, agent: Agent, reply: str, others: List[Agent]) -> Speech:
        data = parse_json_reply(reply)
        if data and data.get("speech"):
            text = str(data["speech"]).strip()
            suspect = self.directory.resolve(str(data.get("suspicion") or ""), others)
        else:
            text = reply.strip()
            suspect = self.directory.find_mentioned(reply, others)

        return Speech(
            agent_id=agent.id,
            name=agent.name,
            text=text,
            suspicion=suspect.name if suspect else None,
        )

    async def run_vote(self) -> Optional[str]:
        """Every living agent votes for another; plurality exiles, ties exile nobody"""
        self.state.phase = Phase.DAY_VOTE
        self.session.set_phase(Phase.DAY_VOTE.value)
        logger.info(f"🗳️ Day {self.state.day_number} vote")

        self.session.post(
            prompts.VOTE_SPEAKER,
            "========== 投票环节 ==========\n\n请所有存活玩家投票，选出你认为最可疑的人...",
        )

        alive = self.directory.alive()
        for agent in alive:
            agent.voted_for = None
        self.state.votes = {}

        recap = [
            f"{s.name}: {s.text} (怀疑: {s.suspicion or '无'})"
            for s in self.state.day_speeches
        ]

        for voter in alive:
            if self.ended:
                return None
            targets = [a for a in alive if a.id != voter.id]
            prompt = prompts.vote_prompt(self.state.day_number, recap, [t.name for t in targets])
            target = await self.choose_target(voter, prompt, targets)
            if target:
                voter.voted_for = target.id
                self.state.votes[voter.id] = target.id
                logger.info(f"🗳️ {voter.name} -> {target.name}")
                self.session.post(prompts.VOTE_SPEAKER, f"{voter.name} 完成了投票")

        if not self.state.votes:
            self.session.post(prompts.VOTE_SPEAKER, "无人投票，本轮无人出局。")
            self.state.day_speeches = []
            return None

        counts = self.game.tally_votes(self.state.votes)
        summary = "、".join(
            f"{self.directory.get(target_id).name}({n}票)" for target_id, n in counts.most_common()
        )
        self.session.post(prompts.VOTE_SPEAKER, f"投票结果：{summary}")

        eliminated = self.game.resolve_vote(self.state, self.directory)
        self.state.day_speeches = []

        if eliminated:
            agent = self.directory.get(eliminated)
            self.session.post(
                prompts.VOTE_SPEAKER,
                f"{agent.name} 被投票出局！\n身份是：{prompts.ROLE_NAMES[agent.role]}",
            )
            self.session.players_changed()
        else:
            top = max(counts.values())
            tied = [self.directory.get(t).name for t, n in counts.items() if n == top]
            self.session.post(
                prompts.VOTE_SPEAKER,
                f"平票！{'、'.join(tied)} 都获得了最高票数，本轮无人出局。",
            )
        return eliminated

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def choose_target(self, agent: Agent, instruction: str, candidates: List[Agent]) -> Optional[Agent]:
        """
        Ask for a target among candidates: one corrective re-prompt, then skip.
        """
        prompt = instruction
        for attempt in range(2):
            reply = await self.session.call_agent(agent, prompt)
            if reply is None:
                return None

            target = self.parse_target(reply, candidates)
            if target:
                return target

            logger.warning(f"Unparseable choice from {agent.name} (attempt {attempt + 1}): {reply[:80]}")
            options = "、".join(c.name for c in candidates)
            prompt = f"{instruction}\n\n{prompts.ACTION_CORRECTION.format(options=options)}"

        self.session.post(prompts.SYSTEM_SPEAKER, f"{agent.name} 的选择无法识别，视为放弃")
        return None

    def parse_target(self, reply: str, candidates: List[Agent]) -> Optional[Agent]:
        data = parse_json_reply(reply)
        if data and data.get("target"):
            target = self.directory.resolve(str(data["target"]), candidates)
            if target:
                return target
        return self.directory.find_mentioned(reply, candidates)
