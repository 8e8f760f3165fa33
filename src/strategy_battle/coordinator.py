"""
Turn coordinator - the session state machine.

idle -> running -> (paused <-> running) -> ended

In director mode every round asks the director for directives, applies
them and pauses. In Werewolf mode the scripted rule engine drives the
rounds and uses the coordinator for agent calls, transcript posts and
pauses.
"""
import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional

from . import prompts
from .config import EndpointConfig, SessionConfig
from .directives import AdvanceTurn, Directive, DirectiveParser, EndGame, Malformed, SendSecret
from .directory import AgentDirectory
from .errors import DirectorCallError
from .events import SessionObserver
from .gate import ResumeGate
from .ledger import SecretLedger
from .llm_client import LLMClient
from .models import Agent, Camp, CoordinatorState, GameMode, RoundState, SessionResult
from .transcript import InMemoryTranscript, TranscriptViewBuilder
from .werewolf import WerewolfRuleEngine

logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]
DirectorFn = Callable[[Messages], Awaitable[str]]


class TurnCoordinator:
    """
    Drives one game session.

    Args:
        config: Session configuration
        transcript: Shared transcript collaborator (in-memory by default)
        observer: Receives status/action/player events
        director: Host generation function used as the director instead of
            ``config.director``
        client_factory: Builds a completion client for an endpoint config;
            defaults to ``LLMClient``
        rng: Randomness for role shuffles and tie-breaks
    """

    def __init__(
        self,
        config: SessionConfig,
        transcript: Optional[InMemoryTranscript] = None,
        observer: Optional[SessionObserver] = None,
        director: Optional[DirectorFn] = None,
        client_factory: Optional[Callable[[EndpointConfig], Any]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.transcript = transcript or InMemoryTranscript()
        self.observer = observer or SessionObserver()
        self.view = TranscriptViewBuilder(self.transcript, config.context_limit)
        self.ledger = SecretLedger()
        self.parser = DirectiveParser()
        self.rng = rng or random.Random()

        agents = config.build_agents()
        self.directory = AgentDirectory(agents)
        self._endpoints: Dict[str, EndpointConfig] = {
            agent.id: cfg for agent, cfg in zip(agents, config.agents)
        }

        self.state = CoordinatorState.IDLE
        self.round = RoundState()
        self.result: Optional[SessionResult] = None
        self.rule_engine = None

        self._gate = ResumeGate()
        self._director_fn = director
        self._client_factory = client_factory or (
            lambda cfg: LLMClient.from_config(cfg, timeout=config.call_timeout)
        )
        self._clients: Dict[str, Any] = {}

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def ended(self) -> bool:
        return self.state == CoordinatorState.ENDED

    @property
    def paused(self) -> bool:
        return self.state == CoordinatorState.PAUSED

    async def start(self) -> SessionResult:
        """
        Run the session until it ends.

        Raises:
            ConfigurationError: before any state change, if the config is unusable
            DirectorCallError: after the session has been ended, if no director answers
        """
        if self.state != CoordinatorState.IDLE:
            raise RuntimeError(f"Session cannot start from state {self.state.value}")

        self.config.validate_for_start(director_injected=self._director_fn is not None)

        self.ledger.clear_all()
        self.round = RoundState(phase="setup", round_number=0)
        self._set_state(CoordinatorState.RUNNING)
        logger.info(f"🎮 Session starting: mode={self.config.mode.value}, {len(self.directory)} agents")

        try:
            if self.config.mode == GameMode.WEREWOLF:
                self.rule_engine = WerewolfRuleEngine(self, rng=self.rng)
                await self.rule_engine.run()
            else:
                await self._run_director_loop()
        except DirectorCallError as e:
            logger.error(f"Director failed, ending session: {e}", exc_info=True)
            self.finish("director_error", notice=f"⛔ 主持人无法响应，游戏中止：{e}")
            raise
        finally:
            await self._close_clients()

        if not self.ended:
            self.finish("completed")
        return self.result

    def stop(self, reason: str = "stopped") -> None:
        """End the session now; safe from any state, a no-op once ended"""
        if self.ended:
            return
        logger.info(f"⏹️ Session stopped: {reason}")
        self.finish(reason, notice=f"⏹️ 游戏已停止（{reason}）")

    def finish(self, reason: str, winner: Optional[Camp] = None, notice: Optional[str] = None) -> None:
        """Transition to ended, clear secrets and release any waiter"""
        if self.ended:
            return

        self.round.paused = False
        self.round.active_agent_id = None
        self.ledger.clear_all()
        self.result = SessionResult(reason=reason, rounds=self.round.round_number, winner=winner)

        if notice:
            self.post(prompts.SYSTEM_SPEAKER, notice)

        self._set_state(CoordinatorState.ENDED)
        self._gate.release()

    async def pause(self) -> None:
        """End of a round: block until resume() or stop()"""
        if self.ended or self.config.auto_continue:
            return
        if self.round.paused:
            raise RuntimeError("Session is already paused")

        self.round.paused = True
        self.round.awaiting_resume = True
        self._set_state(CoordinatorState.PAUSED)
        try:
            await self._gate.wait()
        finally:
            self.round.awaiting_resume = False

    def resume(self) -> bool:
        """User continuation signal; a no-op unless paused"""
        if self.state != CoordinatorState.PAUSED:
            return False

        self.round.paused = False
        self._set_state(CoordinatorState.RUNNING)
        self._gate.release()
        return True

    def set_phase(self, phase: str, round_number: Optional[int] = None) -> None:
        self.round.phase = phase
        if round_number is not None:
            self.round.round_number = round_number
        self.observer.on_status_change(self.state, self.round)

    def _set_state(self, state: CoordinatorState) -> None:
        self.state = state
        self.observer.on_status_change(state, self.round)

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def post(self, speaker: str, text: str) -> None:
        """Append to the shared transcript and report it"""
        self.transcript.append(speaker, text)
        self.observer.on_action_logged(speaker, text)

    def players_changed(self) -> None:
        self.observer.on_players_changed(self.directory.all())

    # =========================================================================
    # AGENT CALLS
    # =========================================================================

    def build_agent_messages(
        self,
        agent: Agent,
        instruction: Optional[str] = None,
        include_secret: bool = True,
    ) -> Messages:
        """
        Prompt for one agent.

        Without an instruction the agent gets the public context and is asked
        to take its turn. The agent's own secrets are added when
        ``include_secret`` is set; no other agent's secrets ever are.
        """
        secrets = self.ledger.peek(agent.id) if include_secret else ""

        if instruction is None:
            user = prompts.agent_turn_prompt(self.view.build_public_context(), secrets)
        else:
            block = prompts.secret_block(secrets)
            user = f"{block}\n\n{instruction}" if block else instruction

        return [
            {"role": "system", "content": prompts.agent_system_prompt(agent)},
            {"role": "user", "content": user},
        ]

    async def call_agent(
        self,
        agent: Agent,
        instruction: Optional[str] = None,
        include_secret: bool = True,
    ) -> Optional[str]:
        """
        Ask one agent for a reply.

        Every failure (HTTP, payload, timeout, empty reply) is contained here:
        it is logged, a "no response" notice is posted and None is returned.
        """
        messages = self.build_agent_messages(agent, instruction, include_secret)
        self.round.active_agent_id = agent.id

        try:
            client = self._client_for(agent.id, self._endpoints[agent.id])
            reply = await asyncio.wait_for(
                client.complete(
                    messages,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                ),
                timeout=self.config.call_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⌛ {agent.name} timed out after {self.config.call_timeout}s")
            reply = None
        except Exception as e:
            logger.warning(f"❌ {agent.name} call failed: {e}", exc_info=True)
            reply = None
        finally:
            self.round.active_agent_id = None

        if self.ended:
            return None

        reply = (reply or "").strip()
        if not reply:
            self.post(prompts.SYSTEM_SPEAKER, f"{agent.name} 没有响应（因技术原因跳过）")
            return None
        return reply

    def _client_for(self, key: str, cfg: EndpointConfig):
        client = self._clients.get(key)
        if client is None:
            client = self._client_factory(cfg)
            self._clients[key] = client
        return client

    async def _close_clients(self) -> None:
        for key, client in list(self._clients.items()):
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.debug(f"Closing client {key} failed: {e}")
        self._clients.clear()

    # =========================================================================
    # DIRECTOR MODE
    # =========================================================================

    @property
    def director_name(self) -> str:
        if self.config.director:
            return self.config.director.name
        return "GM"

    async def ask_director(self, messages: Messages) -> str:
        """
        Get the director's response, trying the fallback director on failure.

        Raises:
            DirectorCallError: when every director failed
        """
        attempts = []
        if self._director_fn is not None:
            attempts.append(("host", lambda: self._director_fn(messages)))
        elif self.config.director:
            primary = self._client_for("__director__", self.config.director)
            attempts.append((self.config.director.name, lambda: primary.complete(
                messages, max_tokens=self.config.max_tokens, temperature=self.config.temperature,
            )))
        if self.config.fallback_director:
            fallback = self._client_for("__fallback_director__", self.config.fallback_director)
            attempts.append((self.config.fallback_director.name, lambda: fallback.complete(
                messages, max_tokens=self.config.max_tokens, temperature=self.config.temperature,
            )))

        errors = []
        for name, call in attempts:
            try:
                return await asyncio.wait_for(call(), timeout=self.config.call_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"⌛ Director {name} timed out")
                errors.append(f"{name}: timeout")
            except Exception as e:
                logger.warning(f"❌ Director {name} failed: {e}")
                errors.append(f"{name}: {e}")

        raise DirectorCallError("; ".join(errors) or "no director configured")

    async def _run_director_loop(self) -> None:
        names = [a.name for a in self.directory]
        custom = self.config.director.system_prompt if self.config.director else ""
        system_prompt = prompts.director_system_prompt(custom, names)

        self.post(prompts.SYSTEM_SPEAKER, f"🎮 游戏开始！参与玩家：{'、'.join(names)}")
        self.players_changed()

        while not self.ended:
            if self.round.round_number >= self.config.max_rounds:
                self.finish("max_rounds", notice=f"⏹️ 已达到最大回合数 {self.config.max_rounds}，游戏结束")
                break

            self.set_phase("director", self.round.round_number + 1)
            logger.info(f"=== Round {self.round.round_number} ===")

            await self.play_director_round(system_prompt)
            if self.ended:
                break
            await self.pause()

    async def play_director_round(self, system_prompt: str) -> List[Directive]:
        """
        One round: ask the director, apply what it said.

        A response without any directive posts a format correction and
        re-prompts immediately, up to ``max_directive_retries`` times; after
        that the round ends with no action.

        Returns:
            The directives that were applied (empty if none)
        """
        correction = None
        opening = self.round.round_number == 1

        for attempt in range(self.config.max_directive_retries + 1):
            messages = [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompts.director_user_prompt(
                    self.view.build_public_context(), opening, correction,
                )},
            ]
            response = await self.ask_director(messages)
            if self.ended:
                return []

            self.post(f"🎲 {self.director_name}", response)
            directives = self.parser.parse(response)

            if not isinstance(directives[0], Malformed):
                await self.apply_directives(directives)
                return directives

            self.post(prompts.SYSTEM_SPEAKER, prompts.FORMAT_CORRECTION)
            correction = prompts.FORMAT_CORRECTION
            logger.info(f"Re-prompting director (attempt {attempt + 1})")

        logger.warning("Director gave no usable directive, round ends without action")
        return []

    async def apply_directives(self, directives: List[Directive]) -> None:
        for directive in directives:
            if self.ended:
                return

            if isinstance(directive, EndGame):
                logger.info("🏁 Director ended the game")
                self.finish(
                    "director_end",
                    notice=f"🏁 游戏结束，共进行 {self.round.round_number} 轮",
                )
                return
            if isinstance(directive, SendSecret):
                self._apply_secret(directive)
            elif isinstance(directive, AdvanceTurn):
                await self._apply_turn(directive)

    def _apply_secret(self, directive: SendSecret) -> None:
        agent = self.directory.resolve(directive.agent_name)
        if agent is None:
            logger.warning(f"Secret for unknown agent '{directive.agent_name}'")
            self.post(prompts.SYSTEM_SPEAKER, f"⚠️ 找不到玩家「{directive.agent_name}」，秘密指示未送达")
            return

        self.ledger.add_secret(agent.id, directive.content)
        self.post(prompts.SECRET_SPEAKER, f"已向 {agent.name} 发送秘密指示")

    async def _apply_turn(self, directive: AdvanceTurn) -> None:
        agent = self.directory.resolve(directive.agent_name)
        if agent is None:
            logger.warning(f"Turn for unknown agent '{directive.agent_name}'")
            self.post(prompts.SYSTEM_SPEAKER, f"⚠️ 找不到玩家「{directive.agent_name}」，跳过本轮")
            return
        if not agent.alive:
            self.post(prompts.SYSTEM_SPEAKER, f"⚠️ {agent.name} 已出局，跳过本轮")
            return

        reply = await self.call_agent(agent)
        if reply is not None:
            self.post(agent.name, reply)
