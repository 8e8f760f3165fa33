"""
Pydantic models for session state, transcript messages and Werewolf game state.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class GameMode(str, Enum):
    """Who drives the rounds"""
    DIRECTOR = "director"
    WEREWOLF = "werewolf"


class CoordinatorState(str, Enum):
    """Lifecycle of a session"""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class RoleType(str, Enum):
    """Werewolf roles"""
    WEREWOLF = "werewolf"
    VILLAGER = "villager"
    SEER = "seer"
    WITCH = "witch"


class Camp(str, Enum):
    """Werewolf camps"""
    GOOD = "good"
    WOLF = "wolf"


class Phase(str, Enum):
    """Werewolf phases"""
    NIGHT = "night"
    DAY_DISCUSSION = "day_discussion"
    DAY_VOTE = "day_vote"


class Agent(BaseModel):
    """One configured LLM-backed participant"""
    id: str
    name: str
    endpoint: str
    credential: str = ""
    model: str
    persona: str = ""

    # Mutated during play
    alive: bool = True
    role: Optional[RoleType] = None
    voted_for: Optional[str] = None  # agent id

    @property
    def camp(self) -> Optional[Camp]:
        if self.role is None:
            return None
        return Camp.WOLF if self.role == RoleType.WEREWOLF else Camp.GOOD


class TranscriptMessage(BaseModel):
    """One visible message in the shared transcript"""
    speaker: str
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)


class RoundState(BaseModel):
    """Round bookkeeping owned by the coordinator"""
    phase: str = "setup"
    round_number: int = 0
    paused: bool = False
    awaiting_resume: bool = False
    active_agent_id: Optional[str] = None


class Speech(BaseModel):
    """A day-discussion speech"""
    agent_id: str
    name: str
    text: str
    suspicion: Optional[str] = None  # agent name


class NightActions(BaseModel):
    """Choices collected during one night (agent ids)"""
    wolf_votes: Dict[str, str] = Field(default_factory=dict)  # wolf_id -> target_id
    wolf_target: Optional[str] = None
    seer_target: Optional[str] = None
    witch_save: bool = False
    witch_poison_target: Optional[str] = None


class WerewolfState(BaseModel):
    """Complete scripted-game state"""
    phase: Phase = Phase.NIGHT
    day_number: int = 0

    # Role-specific state
    witch_antidote_used: bool = False
    witch_poison_used: bool = False
    seer_checks: Dict[str, bool] = Field(default_factory=dict)  # target name -> is wolf

    night: NightActions = Field(default_factory=NightActions)
    last_night_deaths: List[str] = Field(default_factory=list)  # agent ids
    day_speeches: List[Speech] = Field(default_factory=list)
    votes: Dict[str, str] = Field(default_factory=dict)  # voter_id -> target_id

    history: List[Dict] = Field(default_factory=list)
    winner: Optional[Camp] = None


class SessionResult(BaseModel):
    """How a session ended"""
    reason: str
    rounds: int = 0
    winner: Optional[Camp] = None
