"""
speech/base.py
Capability interfaces for speech capture and speech output.

The voice session only talks to these interfaces. Concrete engines deliver
their events through the callback attributes; the session binds them to thin
adapters that post events onto its coordinator.
"""

from typing import Callable, Optional


class CaptureUnavailableError(Exception):
    """Raised when speech capture cannot run in the current environment."""
    pass


class CaptureAlreadyActiveError(Exception):
    """Raised by start() when the capture engine is already running."""
    pass


class SpeechOutputError(Exception):
    """Raised when speech output fails."""
    pass


class SpeechCapture:
    """
    Push-to-talk speech capture capability.

    Implementations call ``on_start()`` once capture is running,
    ``on_result(text)`` for each finalized utterance, ``on_error(code)`` for
    failures (codes: no-speech, audio-capture, not-allowed, network, aborted,
    or anything else), and ``on_end()`` whenever capture stops, including
    after an error.
    """

    def __init__(self):
        self.on_start: Optional[Callable[[], None]] = None
        self.on_result: Optional[Callable[[str], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_end: Optional[Callable[[], None]] = None
        self.unavailable_reason: Optional[str] = None

    def is_available(self) -> bool:
        """Whether capture can run here; sets ``unavailable_reason`` when not."""
        return True

    def start(self) -> None:
        """
        Request capture start.

        Raises:
            CaptureAlreadyActiveError: If capture is already running
            CaptureUnavailableError: If capture cannot run
            PermissionError: If microphone access is denied
        """
        raise NotImplementedError

    def stop(self) -> None:
        """Request capture stop; a pending utterance may still be delivered."""
        raise NotImplementedError

    def _emit(self, callback: Optional[Callable], *args) -> None:
        if callback is not None:
            callback(*args)


class SpeechOutput:
    """Speech output capability."""

    def speak(self, text: str, rate: float = 1.0, pitch: float = 1.0) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        """Cancel queued and in-progress speech."""
        raise NotImplementedError

    @property
    def is_speaking(self) -> bool:
        return False
