"""
core/voice_session.py
Push-to-talk voice session for the rules assistant.

The session is a state machine driven by a closed set of events. User
actions, capture-engine callbacks, answer completions and restart timers are
all serialized onto one asyncio event loop, so the session status is only
ever mutated from that loop.
"""

import asyncio
import dataclasses
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from config import get_config
from core.events import (
    AnswerCompleted,
    CaptureEnded,
    CaptureErrored,
    CaptureStarted,
    MuteToggled,
    RestartDue,
    UserPressed,
    UserReleased,
    UtteranceFinalized,
)
from core.transcript import Transcript
from rag.composer import AnswerComposer, AnswerResult
from speech.base import (
    CaptureAlreadyActiveError,
    CaptureUnavailableError,
    SpeechCapture,
    SpeechOutput,
)
from utils.error_handler import ErrorCategory, ErrorContext, ErrorHandler, ErrorSeverity, CaptureErrorKind

# Configure logging
logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    LISTENING = "listening"
    PROCESSING = "processing"
    ERROR = "error"


_CAPTURING = (SessionState.REQUESTING, SessionState.LISTENING)


@dataclass
class SessionStatus:
    """Observable state of a voice session."""
    state: SessionState = SessionState.IDLE
    is_holding: bool = False
    retry_count: int = 0
    is_hushed: bool = False
    error_message: Optional[str] = None
    capture_active: bool = False


class VoiceSession:
    """
    Coordinates speech capture, answering and spoken output for one user.

    Capture callbacks may fire on any thread; they are posted onto the
    session's event loop and handled there one at a time. Restart and retry
    timers are cancellable loop handles, voided by release or close.
    """

    def __init__(self,
                 composer: AnswerComposer,
                 capture: SpeechCapture,
                 synthesizer: Optional[SpeechOutput] = None,
                 game_id: Optional[str] = None,
                 config_manager=None,
                 error_handler: Optional[ErrorHandler] = None,
                 transcript: Optional[Transcript] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize the voice session.

        Args:
            composer: Answer pipeline for finalized utterances
            capture: Speech capture engine
            synthesizer: Optional speech output; answers are only displayed when None
            game_id: Game whose rulebook answers questions (default: configured game)
            config_manager: Optional configuration manager instance
            error_handler: Optional error handler instance
            transcript: Optional transcript to append to
            loop: Event loop to run on (default: the running loop at first use)
        """
        self.config = config_manager if config_manager else get_config()
        self.composer = composer
        self.capture = capture
        self.synthesizer = synthesizer
        self.error_handler = error_handler or ErrorHandler(self.config)
        self.transcript = transcript or Transcript()
        self.game_id = game_id or self.config.get('RAG_SETTINGS', 'DEFAULT_GAME_ID', 'catan-base')

        self.max_retries = self.config.get('SESSION_SETTINGS', 'MAX_RETRIES', 3)
        self.restart_delay = self.config.get('SESSION_SETTINGS', 'RESTART_DELAY', 0.1)
        self.retry_delay = self.config.get('SESSION_SETTINGS', 'RETRY_DELAY', 0.5)
        self.speech_rate = self.config.get('SPEECH_SETTINGS', 'SPEECH_RATE', 0.9)
        self.speech_pitch = self.config.get('SPEECH_SETTINGS', 'SPEECH_PITCH', 1.0)

        self.status = SessionStatus()
        self.cancel_token = threading.Event()

        self._loop = loop
        self._restart_handle: Optional[asyncio.TimerHandle] = None
        self._answer_task: Optional[asyncio.Task] = None
        self._listeners: List[Callable[[SessionStatus], None]] = []
        self._closed = False
        self._retry_notice: Optional[str] = None

        self._handlers = {
            UserPressed: self._on_press,
            UserReleased: self._on_release,
            MuteToggled: self._on_mute,
            CaptureStarted: self._on_capture_started,
            UtteranceFinalized: self._on_utterance,
            CaptureErrored: self._on_capture_error,
            CaptureEnded: self._on_capture_ended,
            AnswerCompleted: self._on_answer_completed,
            RestartDue: self._on_restart_due,
        }

        capture.on_start = lambda: self.post(CaptureStarted())
        capture.on_result = lambda text: self.post(UtteranceFinalized(text))
        capture.on_error = lambda code: self.post(CaptureErrored(code))
        capture.on_end = lambda: self.post(CaptureEnded())

        logger.info(f"Voice session created for game {self.game_id!r}")

    # Public API

    def press(self) -> None:
        self.dispatch(UserPressed())

    def release(self) -> None:
        self.dispatch(UserReleased())

    def toggle_mute(self) -> None:
        self.dispatch(MuteToggled())

    def on_change(self, listener: Callable[[SessionStatus], None]) -> None:
        """Register a listener called with a copy of the status after each change."""
        self._listeners.append(listener)

    async def wait_for_answer(self) -> None:
        """Wait until the answer in flight, if any, has been handled."""
        task = self._answer_task
        if task is not None:
            await asyncio.wait([task])

    def close(self) -> None:
        """
        Tear down the session.

        Pending restarts are voided and the cancel token is set, so an answer
        whose model call has not started yet skips it. An answer already in
        flight is left to finish and its result is discarded.
        """
        if self._closed:
            return
        logger.info("Closing voice session")
        before = dataclasses.replace(self.status)
        self._closed = True

        self.status.is_holding = False
        self._cancel_restart()
        self.cancel_token.set()
        if self._answer_task is not None and not self._answer_task.done():
            self._answer_task.cancel()
        self._answer_task = None

        if self.status.capture_active or self.status.state in _CAPTURING:
            self._stop_capture()
        if self.synthesizer is not None:
            try:
                self.synthesizer.cancel()
            except Exception as e:
                self.error_handler.handle_error(e, component="speech_output")

        self.status.state = SessionState.IDLE
        self._notify(before)

    # Event plumbing

    def post(self, event) -> None:
        """Queue an event from any thread onto the session loop."""
        if self._loop is None:
            raise RuntimeError("Voice session is not attached to an event loop")
        self._loop.call_soon_threadsafe(self.dispatch, event)

    def dispatch(self, event) -> None:
        """Apply one event to the session. Must run on the session loop."""
        if self._closed:
            logger.debug(f"Session closed, ignoring {type(event).__name__}")
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        before = dataclasses.replace(self.status)
        self._handlers[type(event)](event)

        if before.state != self.status.state:
            logger.debug(f"{type(event).__name__}: {before.state.value} -> {self.status.state.value}")
        self._notify(before)

    def _notify(self, before: SessionStatus) -> None:
        if before == self.status:
            return
        for listener in self._listeners:
            listener(dataclasses.replace(self.status))

    # Transitions

    def _on_press(self, event: UserPressed) -> None:
        status = self.status
        status.is_holding = True

        if not self.capture.is_available():
            self._fail(self.capture.unavailable_reason or
                       self.error_handler.message('CAPTURE_UNAVAILABLE_MESSAGE'))
            return

        status.error_message = None
        status.retry_count = 0

        if status.state == SessionState.PROCESSING:
            return
        if status.state in _CAPTURING or status.capture_active:
            return
        self._request_start()

    def _on_release(self, event: UserReleased) -> None:
        status = self.status
        status.is_holding = False
        self._cancel_restart()
        if self._retry_notice is not None and status.error_message == self._retry_notice:
            status.error_message = None
        self._retry_notice = None
        if status.capture_active or status.state in _CAPTURING:
            # The engine may still deliver a final result before it ends
            self._stop_capture()

    def _on_mute(self, event: MuteToggled) -> None:
        self.status.is_hushed = not self.status.is_hushed
        logger.info(f"Spoken answers {'muted' if self.status.is_hushed else 'unmuted'}")
        if self.status.is_hushed and self.synthesizer is not None:
            try:
                self.synthesizer.cancel()
            except Exception as e:
                self.error_handler.handle_error(e, component="speech_output")

    def _on_capture_started(self, event: CaptureStarted) -> None:
        status = self.status
        status.capture_active = True

        if status.state in (SessionState.IDLE, SessionState.REQUESTING):
            status.state = SessionState.LISTENING
            status.retry_count = 0
            status.error_message = None

        if not status.is_holding or status.state != SessionState.LISTENING:
            logger.debug("Capture confirmed after release, stopping")
            self._stop_capture()

    def _on_utterance(self, event: UtteranceFinalized) -> None:
        if self.status.state != SessionState.LISTENING:
            logger.debug(f"Ignoring utterance while {self.status.state.value}")
            return
        text = (event.text or '').strip()
        if not text:
            return

        self.transcript.add_user(text)
        self.status.state = SessionState.PROCESSING
        self._answer_task = self._loop.create_task(self._run_answer(text))

    async def _run_answer(self, question: str) -> None:
        try:
            result = await self._loop.run_in_executor(
                None, self.composer.answer, question, self.game_id, self.cancel_token
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = self.error_handler.handle_error(
                e,
                component="voice_session",
                message_key='ANSWER_FAILED_MESSAGE',
                details={'game_id': self.game_id},
            )
            result = AnswerResult(answer=message, sources=[])

        if not result.answer or not result.answer.strip():
            result = AnswerResult(
                answer=self.error_handler.message('EMPTY_ANSWER_MESSAGE'),
                sources=result.sources,
            )
        self.dispatch(AnswerCompleted(question, result))

    def _on_answer_completed(self, event: AnswerCompleted) -> None:
        status = self.status
        self._answer_task = None

        if status.error_message and not status.is_holding:
            status.state = SessionState.ERROR
        elif status.capture_active and status.is_holding:
            status.state = SessionState.LISTENING
        else:
            status.state = SessionState.IDLE
            if status.is_holding:
                self._schedule_restart(self.restart_delay)

        self.transcript.add_assistant(event.result.answer)
        if not status.is_hushed:
            self._speak(event.result.answer)

    def _on_capture_ended(self, event: CaptureEnded) -> None:
        status = self.status
        status.capture_active = False
        if status.state in _CAPTURING:
            status.state = SessionState.IDLE

        if status.is_holding and status.state == SessionState.IDLE and self._restart_handle is None:
            self._schedule_restart(self.restart_delay)

    def _on_capture_error(self, event: CaptureErrored) -> None:
        status = self.status
        status.capture_active = False
        kind = CaptureErrorKind.from_code(event.code)
        category = self.error_handler.record_capture_error(
            kind, details={'state': status.state.value, 'code': event.code}
        )

        if category == ErrorCategory.BENIGN:
            status.error_message = None
            if status.state in _CAPTURING:
                status.state = SessionState.IDLE
            return

        if category == ErrorCategory.TRANSIENT and status.is_holding:
            status.retry_count += 1
            if status.retry_count < self.max_retries:
                status.error_message = self.error_handler.retry_message(status.retry_count, self.max_retries)
                self._retry_notice = status.error_message
                if status.state in _CAPTURING:
                    status.state = SessionState.IDLE
                self._schedule_restart(self.retry_delay)
                return

        self._fail(self.error_handler.capture_message(kind))

    def _on_restart_due(self, event: RestartDue) -> None:
        self._restart_handle = None
        status = self.status
        if not status.is_holding:
            return
        if status.state != SessionState.IDLE or status.capture_active:
            logger.debug(f"Skipping restart while {status.state.value}")
            return
        self._request_start()

    # Helpers

    def _request_start(self) -> None:
        self._cancel_restart()
        self.status.state = SessionState.REQUESTING
        try:
            self.capture.start()
        except CaptureAlreadyActiveError:
            logger.debug("Capture already active, treating start as confirmed")
            self._on_capture_started(CaptureStarted())
        except PermissionError as e:
            self._record_start_failure(e)
            self._fail(self.error_handler.message('NOT_ALLOWED_MESSAGE'))
        except CaptureUnavailableError as e:
            self._record_start_failure(e)
            self._fail(self.capture.unavailable_reason or
                       self.error_handler.message('CAPTURE_UNAVAILABLE_MESSAGE'))
        except Exception as e:
            self._record_start_failure(e)
            self._fail(self.error_handler.message('START_FAILED_MESSAGE', reason=str(e)))

    def _record_start_failure(self, error: Exception) -> None:
        self.error_handler.record(ErrorContext(
            component="speech_capture",
            message=f"start failed: {error}",
            exception=error,
            severity=ErrorSeverity.ERROR,
        ))

    def _fail(self, message: str) -> None:
        """Enter the error state; the user must press again to leave it."""
        status = self.status
        status.is_holding = False
        status.retry_count = 0
        status.error_message = message
        self._cancel_restart()
        if status.state != SessionState.PROCESSING:
            status.state = SessionState.ERROR
        logger.warning(f"Voice session error: {message}")

    def _speak(self, text: str) -> None:
        if self.synthesizer is None:
            return
        try:
            self.synthesizer.speak(text, rate=self.speech_rate, pitch=self.speech_pitch)
        except Exception as e:
            self.error_handler.handle_error(e, component="speech_output")

    def _stop_capture(self) -> None:
        try:
            self.capture.stop()
        except Exception as e:
            self.error_handler.handle_error(e, component="speech_capture")

    def _schedule_restart(self, delay: float) -> None:
        self._cancel_restart()
        self._restart_handle = self._loop.call_later(delay, self.dispatch, RestartDue())

    def _cancel_restart(self) -> None:
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None
