"""
Primary session controller.

The primary session is the user-facing conversation. Each user message runs
as one logical turn on the session's serial lane so the caller is never
blocked. Turns can be cancelled and the session can be restarted from scratch.
"""

import asyncio
import json
import logging
from typing import Any, Callable, List, Optional
import uuid as uuid_lib

from ..core.enums import SessionEvent
from ..core.interfaces import (
    ContextProvider, DisplaySink, LoggingDisplaySink, PersistenceStore, SpeechSink
)
from ..core.models import AssistantSettings, ConversationState, EditorContext, InputItem, MessageItem
from ..tools.scope import ToolScopeSelector
from .agent_manager import AgentManager
from .turn_engine import ConversationTurnEngine, TurnRequest

logger = logging.getLogger(__name__)

MANAGER_LABEL = "AI(manager)"
REASONING_LABEL = "Reasoning(manager)"

SessionListener = Callable[[SessionEvent, Any], None]


def context_items(context: Optional[EditorContext]) -> List[InputItem]:
    """System items describing the open file, caret and selection."""
    if context is None:
        return []

    path = context.file_path
    items: List[InputItem] = [MessageItem.system(
        f"Current file open: {path}, file version: {context.version} "
        "- you must always reread file if version changed"
    )]

    if context.caret_line is not None and context.caret_column is not None:
        caret = (
            f"User Caret position in the file {path} - Line: {context.caret_line}, "
            f"Column (Offset): {context.caret_column}"
        )
    else:
        caret = f"User Caret position in the file {path} - not available"
    if context.has_selection():
        caret += (
            f"\nSelection starts at line {context.selection_start_line}, "
            f"column {context.selection_start_column} and ends at line "
            f"{context.selection_end_line}, column {context.selection_end_column}\n"
            f"Selected text is: {context.selected_text}"
        )
    items.append(MessageItem.system(caret))
    return items


class PrimarySessionController:
    """Controller of the user-facing conversation.

    This class provides:
    - Non-blocking message submission with context injection
    - Serial turns, each continuing from the previous turn's token
    - Cancellation of the in-flight turn and the queued ones
    - Session restart, which also resets every sub-agent's conversation
    - ``session`` and ``inProgress`` notifications
    """

    def __init__(
        self,
        engine: ConversationTurnEngine,
        settings: Optional[AssistantSettings] = None,
        scope_selector: Optional[ToolScopeSelector] = None,
        agent_manager: Optional[AgentManager] = None,
        persistence: Optional[PersistenceStore] = None,
        context_provider: Optional[ContextProvider] = None,
        display: Optional[DisplaySink] = None,
        speech: Optional[SpeechSink] = None
    ):
        self._engine = engine
        self._settings = settings or AssistantSettings()
        self._scope = scope_selector or ToolScopeSelector(self._settings.default_allow_all_tools)
        self._agent_manager = agent_manager
        self._persistence = persistence
        self._context_provider = context_provider
        self._display = display or LoggingDisplaySink()
        self._speech = speech

        self._session_id = str(uuid_lib.uuid4())
        self._token: Optional[str] = None
        if persistence is not None:
            self._token = persistence.load_primary_token()
        self._tasks: List[asyncio.Task] = []
        self._current: Optional[asyncio.Task] = None
        self._generation = 0
        self._in_progress = False
        self._listeners: List[SessionListener] = []

        logger.info(f"Primary session initialized: {self._session_id}")

    @property
    def current_session_id(self) -> str:
        return self._session_id

    @property
    def continuation_token(self) -> Optional[str]:
        return self._token

    def in_progress(self) -> bool:
        return self._in_progress

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: SessionEvent, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception as e:
                logger.error(f"Session listener failed on {event}: {e}")

    def _post(self, text: str) -> None:
        try:
            self._display.post(MANAGER_LABEL, text)
        except Exception as e:
            logger.debug(f"Display post failed: {e}")

    def _set_in_progress(self, value: bool) -> None:
        if self._in_progress == value:
            return
        self._in_progress = value
        self._emit(SessionEvent.IN_PROGRESS_CHANGED, value)

    def _build_items(self, text: str, model: str) -> List[InputItem]:
        items: List[InputItem] = []
        if self._context_provider is not None:
            try:
                items.extend(context_items(self._context_provider.current_context()))
            except Exception as e:
                logger.warning(f"Editor context unavailable: {e}")
        items.append(MessageItem.system(json.dumps({"currentModel": model}, separators=(",", ":"))))
        items.append(MessageItem.user(text))
        return items

    def send_message(self, text: str) -> asyncio.Task:
        """
        Queue a logical turn for a user message.

        Turns run one at a time in submission order; each one reads the
        continuation token left by the turn before it.

        Args:
            text: The user's message

        Returns:
            The task running the turn; it never raises
        """
        previous = self._tasks[-1] if self._tasks else None
        self._set_in_progress(True)
        task = asyncio.create_task(
            self._run_turn(text, previous, self._generation), name=f"session-{self._session_id}"
        )
        self._tasks.append(task)
        return task

    async def _run_turn(self, text: str, previous: Optional[asyncio.Task], generation: int) -> None:
        try:
            if previous is not None:
                # wait() leaves the previous turn alone if this one is cancelled
                await asyncio.wait({previous})
            if generation != self._generation:
                logger.info("Queued turn dropped after stop")
                return
            await self._execute_turn(text)
        except asyncio.CancelledError:
            logger.info("Queued turn cancelled before it started")
        finally:
            self._tasks.remove(asyncio.current_task())
            if not self._tasks:
                self._set_in_progress(False)

    async def _execute_turn(self, text: str) -> None:
        session_id = self._session_id
        model = self._settings.chat_model
        self._current = asyncio.current_task()
        try:
            outcome = await self._engine.run(TurnRequest(
                state=ConversationState(
                    items=self._build_items(text, model),
                    continuation_token=self._token,
                ),
                instructions=self._settings.merged_instructions(),
                model=model,
                visibility_provider=self._scope.merged_visibility,
                label=MANAGER_LABEL,
                reasoning_label=REASONING_LABEL,
                speak=self._settings.speech_enabled and self._speech is not None,
            ))
            if session_id != self._session_id:
                logger.info(f"Session {session_id} replaced during turn, dropping its token")
                return
            self._token = outcome.continuation_token
            self._persist_token()
            logger.info(f"Turn finished: rounds={outcome.rounds}, tool_calls={outcome.tool_calls}")
        except asyncio.CancelledError:
            logger.info("Processing was cancelled")
            self._post("Cancelled")
        except Exception as e:
            logger.error(f"Unexpected error during turn: {type(e).__name__}: {e}")
            self._post(str(e) or "Unexpected error")
        finally:
            self._current = None

    def _persist_token(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.store_primary_token(self._token)
        except Exception as e:
            logger.error(f"Failed to persist session token: {e}")

    def stop_processing(self) -> bool:
        """
        Cancel the in-flight turn and drop the queued ones.

        Returns:
            False if nothing was running or queued
        """
        if not self._tasks:
            return False
        self._generation += 1
        current = self._current
        if current is not None and not current.done():
            current.cancel()
            logger.info("Cancelling in-flight turn")
        dropped = len(self._tasks) - (1 if current is not None else 0)
        if dropped:
            logger.info(f"Dropping {dropped} queued turn(s)")
        return True

    async def wait(self) -> None:
        """Wait for the in-flight and queued turns, if any, to finish."""
        tasks = list(self._tasks)
        if tasks:
            await asyncio.wait(tasks)

    def new_session(self) -> str:
        """
        Start a fresh conversation.

        Returns:
            The new session id
        """
        old = self._session_id
        self._session_id = str(uuid_lib.uuid4())
        self._token = None
        self._persist_token()
        if self._agent_manager is not None:
            self._agent_manager.reset_for_new_session()

        logger.info(f"Started new session {self._session_id} (previous: {old})")
        self._emit(SessionEvent.SESSION_CHANGED, {"old": old, "new": self._session_id})
        return self._session_id

    def stop_and_clear_session(self) -> str:
        self.stop_processing()
        return self.new_session()
