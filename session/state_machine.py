"""Session state machine coordinating capture, conversation and replies."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Set

from config.catalog import CoachingCatalog
from config.settings import Settings
from memory.conversation_buffer import ConversationBuffer
from memory.store import SessionStore, PersistenceError
from pipeline.request_pipeline import RequestPipeline
from schemas.coaching import CoachingExpert, CoachingOption
from schemas.conversation import ChatResponse, Message, Role
from schemas.session import SessionState, UsageAccount
from schemas.transcript import TranscriptSegment
from speech.capture_adapter import SpeechCaptureAdapter
from speech.recognizer import Microphone, MicrophonePermissionError, RecognizerFactory
from .summary_generator import SummaryGenerator
from .usage_accountant import UsageAccountant

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState, SessionState], None]

UNSUPPORTED_MESSAGE = (
    "Speech recognition is not supported in this environment, "
    "so the session cannot start."
)


class CoachingSession:
    """
    Top-level coordinator for one coaching session.

    Owns the session state; the capture adapter, request pipeline, usage
    accountant and summary generator only read it through ``can_capture``
    or ask for transitions through the public methods below.
    """

    def __init__(
        self,
        session_id: str,
        store: SessionStore,
        pipeline: RequestPipeline,
        catalog: CoachingCatalog,
        recognizer_factory: RecognizerFactory,
        microphone: Optional[Microphone] = None,
        account: Optional[UsageAccount] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize session.

        Args:
            session_id: Persisted session ID
            store: Persistence collaborator
            pipeline: Request pipeline for replies and feedback
            catalog: Coaching option and expert catalog
            recognizer_factory: Creates recognizers for the capture adapter
            microphone: Audio capture device
            account: Credit balance mirror for usage accounting
            settings: Application settings
            sleep: Cooldown sleep coroutine, injectable for tests
        """
        self.session_id = session_id
        self.store = store
        self.pipeline = pipeline
        self.catalog = catalog
        self.settings = settings or Settings()
        self.sleep = sleep

        self.state = SessionState.IDLE
        self.topic: str = ""
        self.option: Optional[CoachingOption] = None
        self.expert: Optional[CoachingExpert] = None
        self.buffer = ConversationBuffer(max_messages=self.settings.max_messages)
        self.transcripts: List[TranscriptSegment] = []
        self.feedback: Optional[str] = None
        self.last_error: Optional[str] = None

        self.adapter = SpeechCaptureAdapter(
            recognizer_factory=recognizer_factory,
            should_capture=self.can_capture,
            microphone=microphone,
            settings=self.settings,
        )
        self.adapter.on_partial = self._on_partial
        self.adapter.on_final = self._on_final
        self.adapter.on_fatal = self._on_fatal

        self.accountant = UsageAccountant(store, account)
        self.summary_generator = SummaryGenerator(pipeline, store)

        self.on_assistant_message: Optional[Callable[[ChatResponse], None]] = None
        self._listeners: List[StateListener] = []
        self._turn_lock = asyncio.Lock()
        self._turn_tasks: Set[asyncio.Task] = set()
        self._background_tasks: Set[asyncio.Task] = set()
        self._awaiting_model = False
        self._mic_enabled = False
        self._tearing_down = False
        self._unsupported = False
        self._needs_flush = False

    # -- state -----------------------------------------------------------------

    def add_listener(self, listener: StateListener):
        """Register a callback receiving (old_state, new_state)."""
        self._listeners.append(listener)

    def _transition(self, new_state: SessionState):
        old_state = self.state
        if old_state == new_state:
            return
        self.state = new_state
        logger.info(f"Session {self.session_id}: {old_state.value} -> {new_state.value}")
        for listener in self._listeners:
            listener(old_state, new_state)

    def can_capture(self) -> bool:
        """Whether recognition may start right now."""
        return (
            self.state == SessionState.LISTENING
            and self._mic_enabled
            and not self._tearing_down
        )

    @property
    def awaiting_model(self) -> bool:
        return self._awaiting_model

    # -- setup -----------------------------------------------------------------

    async def open(self):
        """Load the session record and hydrate any persisted conversation."""
        record = await asyncio.to_thread(self.store.get_session, self.session_id)
        if record is None:
            raise ValueError(f"Session not found: {self.session_id}")

        self.topic = record.topic
        self.option = self.catalog.get_option(record.coaching_option)
        self.expert = self.catalog.get_expert(record.expert_name)
        self.feedback = record.session_feedback
        if record.conversation:
            self.buffer.hydrate(record.conversation)

    def start_conversation(self) -> Optional[Message]:
        """Greet the user unless the conversation already has messages."""
        if len(self.buffer) > 0:
            return None

        expert_name = self.expert.name if self.expert else "your coach"
        option_name = self.option.name if self.option else "coaching"
        greeting = Message(
            role=Role.ASSISTANT,
            content=(
                f"Hello! I'm {expert_name}, your {option_name} expert on \"{self.topic}\". "
                "I'll be guiding you through this topic with interactive discussion. "
                "Feel free to ask questions or share what you already know, and we'll "
                "build on that together. What would you like to focus on first?"
            ),
        )
        self.buffer.append(greeting)
        return greeting

    # -- lifecycle requests ----------------------------------------------------

    async def connect(self) -> bool:
        """
        Acquire the microphone, initialize recognition and start listening.

        Returns:
            True once the session is listening
        """
        if self._unsupported:
            logger.warning("Connect refused: speech recognition is unsupported")
            return False
        if self.state not in (SessionState.IDLE, SessionState.ERROR, SessionState.ENDED):
            logger.warning(f"Connect ignored in state {self.state.value}")
            return False

        if self.state == SessionState.ENDED and len(self.buffer) == 0:
            await self.open()

        self.last_error = None
        self._tearing_down = False
        self._transition(SessionState.CONNECTING)

        try:
            await self.adapter.acquire_microphone()
        except MicrophonePermissionError as e:
            logger.error(f"Error requesting microphone permission: {e.reason}")
            self.last_error = e.user_message
            self._transition(SessionState.ERROR)
            return False

        if not self.adapter.initialize():
            self._unsupported = True
            self.last_error = UNSUPPORTED_MESSAGE
            await self.adapter.teardown()
            self._transition(SessionState.ERROR)
            return False

        self._mic_enabled = True
        self._transition(SessionState.LISTENING)
        await self.adapter.start()
        return True

    async def pause(self) -> bool:
        """Suspend recognition and audio capture, keeping all state."""
        if self.state not in (SessionState.LISTENING, SessionState.AWAITING_MODEL):
            logger.debug(f"Pause ignored in state {self.state.value}")
            return False
        self._transition(SessionState.PAUSED)
        await self.adapter.suspend()
        return True

    async def resume(self) -> bool:
        """Resume from pause; recognition restarts only when not awaiting a reply."""
        if self.state != SessionState.PAUSED:
            logger.debug(f"Resume ignored in state {self.state.value}")
            return False

        if self._awaiting_model:
            # The in-flight turn restarts recognition when it completes
            self._transition(SessionState.AWAITING_MODEL)
            return True

        self._transition(SessionState.LISTENING)
        if not self.adapter.active:
            await self.adapter.start()
        return True

    async def disconnect(self):
        """End the session: release capture, flush the conversation. Idempotent."""
        if self._tearing_down or self.state == SessionState.ENDED:
            return
        self._tearing_down = True
        self._mic_enabled = False

        try:
            await self.adapter.teardown()
            await self._cancel_turns()
        finally:
            if await self._persist_conversation():
                # The stored copy is authoritative from here on
                self.buffer.clear()
                logger.info("Conversation flushed on disconnect")
            self._awaiting_model = False
            self._transition(SessionState.ENDED)
            self._tearing_down = False

    async def generate_feedback(self) -> str:
        """Produce, persist and return the end-of-session feedback."""
        conversation = self.buffer.to_records()
        if not self._needs_flush:
            try:
                record = await asyncio.to_thread(self.store.get_session, self.session_id)
                if record is not None and record.conversation:
                    conversation = record.conversation
            except PersistenceError as e:
                logger.error(f"Could not reload conversation for feedback: {e}")

        self.feedback = await self.summary_generator.generate(
            topic=self.topic,
            option=self.option,
            conversation=conversation,
            session_id=self.session_id,
        )
        return self.feedback

    # -- transcript handling ---------------------------------------------------

    def _on_partial(self, segment: TranscriptSegment):
        self.transcripts = [t for t in self.transcripts if t.is_final]
        self.transcripts.append(segment)

    def _on_final(self, segment: TranscriptSegment):
        self.transcripts = [t for t in self.transcripts if t.is_final]
        self.transcripts.append(segment)

        if not segment.text.strip():
            return
        task = asyncio.get_running_loop().create_task(self.handle_final_transcript(segment.text))
        self._turn_tasks.add(task)
        task.add_done_callback(self._turn_tasks.discard)

    async def handle_final_transcript(self, text: str) -> Optional[ChatResponse]:
        """
        Run one user turn: append, request a reply, append it, resume capture.

        Returns:
            The pipeline response, or None if the turn was not taken
        """
        async with self._turn_lock:
            if not text.strip():
                return None
            if self.state != SessionState.LISTENING:
                logger.info(f"Ignoring final transcript in state {self.state.value}")
                return None

            self._awaiting_model = True
            self._transition(SessionState.AWAITING_MODEL)
            try:
                # The user message always lands before the request is issued
                if not self.buffer.append(Message(role=Role.USER, content=text)):
                    logger.info("User message already in conversation; requesting reply anyway")
                await self.adapter.suspend()

                response = await self.pipeline.respond(
                    topic=self.topic,
                    option=self.option,
                    conversation=self.buffer.materialize(),
                    timestamp=int(time.time() * 1000),
                )

                if self._tearing_down or self.state == SessionState.ENDED:
                    logger.info("Session ended while awaiting reply; dropping it")
                    return response

                self.buffer.append(response.message)
                if self.on_assistant_message:
                    self.on_assistant_message(response)
                await self._persist_conversation()
                if response.ok and not response.from_cache:
                    await self.accountant.charge(response.message.content)

                await self.sleep(self.settings.resume_cooldown_s)
            finally:
                self._awaiting_model = False

            if self.state == SessionState.AWAITING_MODEL:
                self._transition(SessionState.LISTENING)
                await self.adapter.start()
            return response

    async def wait_for_turns(self):
        """Wait until every scheduled turn has finished."""
        while self._turn_tasks:
            await asyncio.gather(*list(self._turn_tasks), return_exceptions=True)

    # -- helpers ---------------------------------------------------------------

    def visible_conversation(self) -> List[Message]:
        """Conversation without feedback-summary artifacts."""
        return [m for m in self.buffer.materialize() if not m.is_feedback_summary]

    def _on_fatal(self, message: str):
        logger.error(f"Unrecoverable capture failure: {message}")
        self.last_error = message
        self._mic_enabled = False
        self._transition(SessionState.ERROR)
        task = asyncio.get_running_loop().create_task(self.adapter.teardown())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _cancel_turns(self):
        current = asyncio.current_task()
        pending = [t for t in self._turn_tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _persist_conversation(self) -> bool:
        try:
            await asyncio.to_thread(
                self.store.update_conversation, self.session_id, self.buffer.to_records()
            )
        except PersistenceError as e:
            logger.error(f"Failed to persist conversation (will retry on disconnect): {e}")
            self._needs_flush = True
            return False
        self._needs_flush = False
        return True
