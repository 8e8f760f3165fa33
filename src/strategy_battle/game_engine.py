"""
Game engine for Werewolf - deterministic rules and state transitions.

No agent is contacted here; the rule engine in ``werewolf.py`` collects
choices and feeds them in.
"""
import logging
import random
from collections import Counter
from typing import Dict, Iterable, List, Optional

from .config import WerewolfSettings
from .directory import AgentDirectory
from .errors import ConfigurationError
from .models import Agent, Camp, RoleType, WerewolfState

logger = logging.getLogger(__name__)


class WerewolfGameEngine:
    """
    Werewolf rules.

    Victory: no living wolves -> good camp wins; otherwise living wolves >=
    living non-wolves -> wolf camp wins.

    Witch: antidote and poison are independent one-shot potions and may both
    be used in the same night.
    """

    def __init__(self, settings: Optional[WerewolfSettings] = None, rng: Optional[random.Random] = None):
        self.settings = settings or WerewolfSettings()
        self.rng = rng or random.Random()

    def assign_roles(self, agents: List[Agent]) -> None:
        """Shuffle the configured roles and hand them out in roster order"""
        roles = self.settings.role_list()
        if len(roles) != len(agents):
            raise ConfigurationError(
                f"Role count ({len(roles)}) doesn't match number of agents ({len(agents)})"
            )

        self.rng.shuffle(roles)

        for agent, role in zip(agents, roles):
            agent.role = role
            agent.alive = True
            agent.voted_for = None
            logger.info(f"🎭 {agent.name} -> {role.value}")

    def tally_wolf_votes(self, votes: Dict[str, str]) -> Optional[str]:
        """
        Majority among the wolves' picks, ties broken uniformly at random.

        Args:
            votes: wolf_id -> target_id

        Returns:
            Target agent id or None when no wolf chose
        """
        if not votes:
            return None

        counts = Counter(votes.values())
        top = max(counts.values())
        tied = [target for target, n in counts.items() if n == top]
        if len(tied) == 1:
            return tied[0]
        return self.rng.choice(tied)

    def record_seer_check(self, state: WerewolfState, seer: Agent, target: Agent) -> bool:
        """Store a check in the seer's history; returns True if target is a wolf"""
        is_wolf = target.role == RoleType.WEREWOLF
        state.night.seer_target = target.id
        state.seer_checks[target.name] = is_wolf
        state.history.append({
            'type': 'seer_check',
            'day': state.day_number,
            'seer_id': seer.id,
            'target_id': target.id,
            'result': 'wolf' if is_wolf else 'not_wolf',
        })
        return is_wolf

    def apply_witch_choice(
        self,
        state: WerewolfState,
        directory: AgentDirectory,
        save: bool,
        poison_target: Optional[str],
    ) -> None:
        """
        Record the witch's potions for tonight, consuming them.

        Illegal choices (no victim, potion already spent, dead target) are
        ignored.
        """
        night = state.night

        if save:
            if night.wolf_target and not state.witch_antidote_used:
                night.witch_save = True
                state.witch_antidote_used = True
                state.history.append({
                    'type': 'witch_save',
                    'day': state.day_number,
                    'saved_id': night.wolf_target,
                })
            else:
                logger.debug("Witch save ignored (no victim or antidote spent)")

        if poison_target:
            target = directory.get(poison_target)
            if not state.witch_poison_used and target.alive:
                night.witch_poison_target = poison_target
                state.witch_poison_used = True
                state.history.append({
                    'type': 'witch_poison',
                    'day': state.day_number,
                    'poisoned_id': poison_target,
                })
            else:
                logger.debug("Witch poison ignored (spent or target dead)")

    def resolve_night(self, state: WerewolfState, directory: AgentDirectory) -> List[str]:
        """
        Apply tonight's deaths.

        A wolf kill fails only if the witch saved that night; poison always
        kills.

        Returns:
            Ids of agents who died, in the order they are announced
        """
        night = state.night
        deaths: List[str] = []

        if night.wolf_target and not night.witch_save:
            deaths.append(night.wolf_target)

        if night.witch_poison_target and night.witch_poison_target not in deaths:
            deaths.append(night.witch_poison_target)

        for agent_id in deaths:
            agent = directory.get(agent_id)
            agent.alive = False
            state.history.append({
                'type': 'elimination',
                'phase': 'night',
                'day': state.day_number,
                'agent_id': agent_id,
            })

        state.last_night_deaths = deaths
        return deaths

    def tally_votes(self, votes: Dict[str, str]) -> Counter:
        """Votes per target id, in first-vote order"""
        return Counter(votes.values())

    def resolve_vote(self, state: WerewolfState, directory: AgentDirectory) -> Optional[str]:
        """
        Plurality vote; a tie (or no votes) eliminates no one.

        Returns:
            Id of the eliminated agent or None
        """
        counts = self.tally_votes(state.votes)
        for voter_id, target_id in state.votes.items():
            state.history.append({
                'type': 'vote',
                'day': state.day_number,
                'voter_id': voter_id,
                'target_id': target_id,
            })

        eliminated = None
        if counts:
            top = max(counts.values())
            leaders = [target for target, n in counts.items() if n == top]
            if len(leaders) == 1:
                eliminated = leaders[0]

        if eliminated:
            directory.get(eliminated).alive = False
            state.history.append({
                'type': 'elimination',
                'phase': 'day',
                'day': state.day_number,
                'agent_id': eliminated,
                'vote_count': counts[eliminated],
            })

        state.votes = {}
        return eliminated

    def check_victory_condition(self, agents: Iterable[Agent]) -> Optional[Camp]:
        """
        Check if any camp has won the game.

        Returns:
            Winning camp or None if game continues
        """
        alive = [a for a in agents if a.alive]
        alive_wolves = sum(1 for a in alive if a.role == RoleType.WEREWOLF)
        alive_good = len(alive) - alive_wolves

        if alive_wolves == 0:
            return Camp.GOOD
        if alive_wolves >= alive_good:
            return Camp.WOLF
        return None

    def winner_by_headcount(self, agents: Iterable[Agent]) -> Camp:
        """Tiebreak used when the day cap is reached"""
        alive = [a for a in agents if a.alive]
        wolves = sum(1 for a in alive if a.role == RoleType.WEREWOLF)
        return Camp.GOOD if len(alive) - wolves > wolves else Camp.WOLF
