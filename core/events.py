"""
core/events.py
Events processed by the voice session coordinator.

User actions and speech-capture callbacks are all turned into one of these
and handled one at a time on the session's event loop.
"""

from dataclasses import dataclass

from rag.composer import AnswerResult


@dataclass(frozen=True)
class UserPressed:
    """Push-to-talk control pressed."""


@dataclass(frozen=True)
class UserReleased:
    """Push-to-talk control released."""


@dataclass(frozen=True)
class MuteToggled:
    """Spoken output muted or unmuted."""


@dataclass(frozen=True)
class CaptureStarted:
    """Capture engine confirmed it is running."""


@dataclass(frozen=True)
class UtteranceFinalized:
    text: str


@dataclass(frozen=True)
class CaptureErrored:
    code: str


@dataclass(frozen=True)
class CaptureEnded:
    """Capture engine stopped, for any reason."""


@dataclass(frozen=True)
class AnswerCompleted:
    question: str
    result: AnswerResult


@dataclass(frozen=True)
class RestartDue:
    """A scheduled capture restart or retry fired."""
