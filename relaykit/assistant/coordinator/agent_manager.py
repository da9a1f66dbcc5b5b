"""
Sub-agent management.

This module provides named sub-agents that the primary session can create,
message and remove. Each agent keeps its own continuation token and runs its
work on its own serial lane: messages to one agent are processed in order,
while different agents run concurrently.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import uuid as uuid_lib

from ..core.enums import AgentEvent
from ..core.exceptions import FeatureDisabledError
from ..core.interfaces import DisplaySink, LoggingDisplaySink, PersistenceStore
from ..core.models import (
    AgentConfig, AgentSession, AgentSnapshot, AgentTaskResult, AssistantSettings,
    ConversationState, MessageItem, PersistedAgent
)
from .turn_engine import ConversationTurnEngine, TurnRequest

logger = logging.getLogger(__name__)

MANAGER_LABEL = "AgentManager"
NO_MESSAGE = "<no message>"
STOPPED_ERROR = "Agent stopped"

AgentListener = Callable[[AgentEvent, Any], None]
AgentJob = Callable[[], Awaitable[AgentTaskResult]]


class AgentLane:
    """Serial execution lane of one agent: a queue drained by one worker task."""

    def __init__(self, agent_id: str):
        self.agent_id = agent_id
        self._queue: "asyncio.Queue[Tuple[str, AgentJob, asyncio.Future]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._current: Optional[Tuple[str, asyncio.Future]] = None
        self._discarded = False

    def submit(self, request_id: str, job: AgentJob) -> "asyncio.Future[AgentTaskResult]":
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        if self._discarded:
            future.set_result(self._stopped(request_id))
            return future
        self._queue.put_nowait((request_id, job, future))
        if self._worker is None:
            self._worker = asyncio.create_task(self._work(), name=f"agent-{self.agent_id}")
        return future

    def _stopped(self, request_id: str) -> AgentTaskResult:
        return AgentTaskResult(
            request_id=request_id, agent_id=self.agent_id, ok=False, error=STOPPED_ERROR
        )

    async def _work(self) -> None:
        while True:
            request_id, job, future = await self._queue.get()
            if future.done():
                continue
            self._current = (request_id, future)
            try:
                result = await job()
            except asyncio.CancelledError:
                if not future.done():
                    future.set_result(self._stopped(request_id))
                raise
            except Exception as e:
                result = AgentTaskResult(
                    request_id=request_id, agent_id=self.agent_id, ok=False,
                    error=str(e) or type(e).__name__
                )
            finally:
                self._current = None
            if not future.done():
                future.set_result(result)

    @property
    def pending(self) -> int:
        return self._queue.qsize() + (1 if self._current is not None else 0)

    def discard(self) -> int:
        """Abandon in-flight and queued work; returns how many requests were dropped."""
        self._discarded = True
        dropped = 0
        if self._current is not None:
            request_id, future = self._current
            if not future.done():
                future.set_result(self._stopped(request_id))
                dropped += 1
        while not self._queue.empty():
            request_id, _, future = self._queue.get_nowait()
            if not future.done():
                future.set_result(self._stopped(request_id))
                dropped += 1
        if self._worker is not None:
            self._worker.cancel()
            self._worker = None
        return dropped


class AgentManager:
    """Manager of role-based sub-agents.

    This class provides:
    - Agent creation with composed instructions and tool visibility
    - Per-agent serial lanes with cross-agent concurrency
    - Private continuation tokens, persisted across restarts
    - Stop and reset operations that keep the roster intact
    - Roster and task lifecycle notifications
    """

    def __init__(
        self,
        engine: ConversationTurnEngine,
        settings: Optional[AssistantSettings] = None,
        persistence: Optional[PersistenceStore] = None,
        display: Optional[DisplaySink] = None
    ):
        self._engine = engine
        self._settings = settings or AssistantSettings()
        self._persistence = persistence
        self._display = display or LoggingDisplaySink()
        self._agents: Dict[str, AgentSession] = {}
        self._lanes: Dict[str, AgentLane] = {}
        self._listeners: List[AgentListener] = []

        logger.info("AgentManager initialized")

    @property
    def agentic_enabled(self) -> bool:
        return self._settings.agentic_enabled

    # Notifications

    def add_listener(self, listener: AgentListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AgentListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: AgentEvent, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception as e:
                logger.error(f"Agent listener failed on {event}: {e}")

    def _post(self, text: str) -> None:
        try:
            self._display.post(MANAGER_LABEL, text)
        except Exception as e:
            logger.debug(f"Display post failed: {e}")

    # Persistence

    def restore(self) -> int:
        """Load persisted agents. Returns the number restored."""
        if self._persistence is None:
            return 0
        restored = 0
        for stored in self._persistence.load_agents():
            if stored.agent_id in self._agents:
                continue
            self._agents[stored.agent_id] = AgentSession(
                agent_id=stored.agent_id,
                config=AgentConfig(
                    role=stored.role,
                    model=stored.model,
                    instructions=stored.instructions,
                ),
                continuation_token=stored.continuation_token,
            )
            restored += 1
        if restored:
            logger.info(f"Restored {restored} persisted agents")
            self._emit(AgentEvent.AGENTS_CHANGED)
        return restored

    def _persist(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.store_agents([
                PersistedAgent(
                    agent_id=session.agent_id,
                    role=session.config.role,
                    model=session.config.model,
                    instructions=session.config.instructions,
                    continuation_token=session.continuation_token,
                )
                for session in self._agents.values()
            ])
        except Exception as e:
            logger.error(f"Failed to persist agents: {e}")

    # Lifecycle

    def compose_instructions(self, config: AgentConfig) -> str:
        parts = [
            f"You are an assistant agent with the role '{config.role}'. "
            "Follow the global development instructions. Communicate in plain text.\n\n",
            self._settings.merged_instructions(),
        ]
        if config.instructions and config.instructions.strip():
            parts.append("\n\n# Role-specific instructions\n")
            parts.append(config.instructions)
        return "".join(parts)

    def create(self, config: AgentConfig) -> str:
        """
        Create an agent.

        Args:
            config: Role, optional model and instructions, tool visibility

        Returns:
            The new agent id

        Raises:
            FeatureDisabledError: If agentic mode is disabled
        """
        if not self.agentic_enabled:
            raise FeatureDisabledError("Agentic mode is disabled in settings")

        session = AgentSession(
            agent_id=str(uuid_lib.uuid4()),
            config=config.model_copy(update={"instructions": self.compose_instructions(config)}),
        )
        self._agents[session.agent_id] = session
        self._lanes[session.agent_id] = AgentLane(session.agent_id)
        self._persist()

        self._post(f"Created agent {config.role} [{session.agent_id}]")
        logger.info(f"Created agent {config.role} [{session.agent_id}]")
        self._emit(AgentEvent.AGENTS_CHANGED, session.agent_id)
        return session.agent_id

    def remove(self, agent_id: str) -> bool:
        """Remove an agent and discard its lane; False for unknown ids."""
        session = self._agents.pop(agent_id, None)
        if session is None:
            return False
        lane = self._lanes.pop(agent_id, None)
        if lane is not None:
            lane.discard()
        self._persist()

        self._post(f"Removed agent {session.config.role} [{agent_id}]")
        logger.info(f"Removed agent {session.config.role} [{agent_id}]")
        self._emit(AgentEvent.AGENTS_CHANGED, agent_id)
        self._emit(AgentEvent.AGENT_REMOVED, agent_id)
        return True

    def _lane_for(self, agent_id: str) -> AgentLane:
        lane = self._lanes.get(agent_id)
        if lane is None:
            lane = AgentLane(agent_id)
            self._lanes[agent_id] = lane
        return lane

    def stop_agent(self, agent_id: str) -> bool:
        """Abandon an agent's outstanding work and give it a fresh lane."""
        if agent_id not in self._agents:
            return False
        lane = self._lanes.pop(agent_id, None)
        if lane is not None:
            lane.discard()
        self._lanes[agent_id] = AgentLane(agent_id)

        self._post(f"Stopped agent [{agent_id}]")
        self._emit(AgentEvent.AGENT_STOPPED, agent_id)
        return True

    def stop_all_agents(self) -> int:
        """Stop every agent's lane; returns how many lanes were replaced."""
        stopped = 0
        for agent_id in list(self._lanes):
            lane = self._lanes.pop(agent_id)
            lane.discard()
            self._lanes[agent_id] = AgentLane(agent_id)
            stopped += 1

        self._post(f"Stopped tasks for {stopped} agent(s)")
        self._emit(AgentEvent.AGENTS_STOPPED, stopped)
        return stopped

    def reset_for_new_session(self) -> None:
        """Clear every agent's continuation token, keeping the agents."""
        for session in self._agents.values():
            session.continuation_token = None
        self._persist()

        self._post("Reset agents conversation state for new session")
        self._emit(AgentEvent.AGENTS_RESET)

    # Messaging

    async def _run_task(self, agent_id: str, request_id: str, message: str) -> AgentTaskResult:
        session = self._agents.get(agent_id)
        if session is None:
            return AgentTaskResult(
                request_id=request_id, agent_id=agent_id, ok=False, error="Agent not found"
            )

        items = []
        if session.continuation_token is None:
            items.append(MessageItem.system(f"Agent Role: {session.config.role}"))
        items.append(MessageItem.user(message))

        outcome = await self._engine.run(TurnRequest(
            state=ConversationState(items=items, continuation_token=session.continuation_token),
            instructions=session.config.instructions or self.compose_instructions(session.config),
            model=session.config.model or self._settings.chat_model,
            visibility=session.config.visibility(),
            label=session.label,
            reasoning_label=f"Reasoning({session.config.role})",
            scope_selection=False,
        ))

        if self._agents.get(agent_id) is session:
            session.continuation_token = outcome.continuation_token
            self._persist()

        logger.info(f"Agent[{agent_id}][{request_id}] reply length={len(outcome.text)}")
        return AgentTaskResult(
            request_id=request_id,
            agent_id=agent_id,
            ok=True,
            text=outcome.text or NO_MESSAGE,
        )

    def send_async(self, agent_id: str, message: str) -> "asyncio.Future[AgentTaskResult]":
        """
        Queue a message on the agent's lane.

        Returns:
            A future resolving to the task result; already resolved with
            ok=False when agentic mode is off or the agent is unknown
        """
        loop = asyncio.get_running_loop()
        if not self.agentic_enabled:
            future = loop.create_future()
            future.set_result(AgentTaskResult(
                request_id="", agent_id=agent_id, ok=False, error="Agentic mode disabled"
            ))
            return future
        if agent_id not in self._agents:
            future = loop.create_future()
            future.set_result(AgentTaskResult(
                request_id="", agent_id=agent_id, ok=False, error="Agent not found"
            ))
            return future

        request_id = str(uuid_lib.uuid4())
        self._emit(AgentEvent.TASK_STARTED, {"requestId": request_id, "agentId": agent_id})

        future = self._lane_for(agent_id).submit(
            request_id, lambda: self._run_task(agent_id, request_id, message)
        )
        future.add_done_callback(self._on_task_done)
        return future

    def _on_task_done(self, future: "asyncio.Future[AgentTaskResult]") -> None:
        if future.cancelled():
            return
        self._emit(AgentEvent.TASK_FINISHED, future.result())

    async def send(self, agent_id: str, message: str) -> str:
        """
        Send a message and wait for the reply text.

        Raises:
            FeatureDisabledError: If agentic mode is disabled
        """
        if not self.agentic_enabled:
            raise FeatureDisabledError("Agentic mode is disabled in settings")
        if agent_id not in self._agents:
            return f"Agent not found: {agent_id}"

        result = await self.send_async(agent_id, message)
        if result.ok:
            return result.text or NO_MESSAGE
        return f"Agent error: {result.error}"

    # Queries

    def exists(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def get_session(self, agent_id: str) -> Optional[AgentSession]:
        return self._agents.get(agent_id)

    def get_roster(self) -> List[AgentSnapshot]:
        return [
            AgentSnapshot(
                agent_id=session.agent_id,
                role=session.config.role,
                instructions=session.config.instructions,
                model=session.config.model,
            )
            for session in self._agents.values()
        ]

    async def shutdown(self) -> None:
        """Discard every lane."""
        for lane in self._lanes.values():
            lane.discard()
        self._lanes.clear()
        await asyncio.sleep(0)
        logger.info("AgentManager shutdown completed")
