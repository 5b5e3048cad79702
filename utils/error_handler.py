"""
Centralized error handling for the board game rules assistant.

This module classifies speech-capture failures into benign, transient and
fatal categories, maps every failure to its configured user-facing message,
and keeps simple error statistics for diagnostics.
"""

import time
import logging
import traceback
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Union

from config import get_config


class ErrorSeverity(Enum):
    """Enum representing the severity of an error."""
    DEBUG = 10      # Expected non-events
    INFO = 20       # Informational errors that don't require action
    WARNING = 30    # Recoverable problems
    ERROR = 40      # Problems that end the current interaction
    CRITICAL = 50   # Severe issues that prevent operation


class ErrorCategory(Enum):
    """How the voice session reacts to a capture error."""
    BENIGN = auto()     # Not an error, cleared silently
    TRANSIENT = auto()  # Retried automatically up to a bound
    FATAL = auto()      # Requires user action before capture can succeed


class CaptureErrorKind(Enum):
    """Error kinds reported by a speech-capture engine."""
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    NOT_ALLOWED = "not-allowed"
    NETWORK = "network"
    ABORTED = "aborted"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Union[str, "CaptureErrorKind", None]) -> "CaptureErrorKind":
        """Map an engine error code to a kind; unrecognized codes become UNKNOWN."""
        if isinstance(code, cls):
            return code
        if not code:
            return cls.UNKNOWN
        normalized = str(code).strip().lower().replace('_', '-')
        if normalized == 'service-not-allowed':
            return cls.NOT_ALLOWED
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


_CAPTURE_CATEGORIES = {
    CaptureErrorKind.NO_SPEECH: ErrorCategory.BENIGN,
    CaptureErrorKind.ABORTED: ErrorCategory.BENIGN,
    CaptureErrorKind.NETWORK: ErrorCategory.TRANSIENT,
    CaptureErrorKind.AUDIO_CAPTURE: ErrorCategory.FATAL,
    CaptureErrorKind.NOT_ALLOWED: ErrorCategory.FATAL,
    CaptureErrorKind.UNKNOWN: ErrorCategory.FATAL,
}

_CAPTURE_MESSAGE_KEYS = {
    CaptureErrorKind.AUDIO_CAPTURE: 'AUDIO_CAPTURE_MESSAGE',
    CaptureErrorKind.NOT_ALLOWED: 'NOT_ALLOWED_MESSAGE',
    CaptureErrorKind.NETWORK: 'NETWORK_FAILURE_MESSAGE',
    CaptureErrorKind.UNKNOWN: 'UNKNOWN_CAPTURE_MESSAGE',
}


def classify_capture_error(kind: Union[str, CaptureErrorKind]) -> ErrorCategory:
    """Return how the session should treat a capture error kind."""
    return _CAPTURE_CATEGORIES[CaptureErrorKind.from_code(kind)]


@dataclass
class ErrorContext:
    """Container for contextual information about an error."""
    component: str
    message: str
    exception: Optional[BaseException] = None
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component,
            "message": self.message,
            "exception": type(self.exception).__name__ if self.exception else None,
            "severity": self.severity.name,
            "details": self.details,
            "timestamp": self.timestamp,
        }


class ErrorHandler:
    """
    Maps failures to user-facing messages and records them for diagnostics.

    Messages come from the ERROR_HANDLING configuration section so that the
    wording can be changed without touching the session logic.
    """

    def __init__(self, config_manager=None, max_error_history: int = 100):
        """
        Initialize the error handler.

        Args:
            config_manager: Optional configuration manager instance
            max_error_history: Maximum number of errors kept in history
        """
        self.config = config_manager if config_manager else get_config()
        self.logger = logging.getLogger("error_handler")

        self.error_counts: Dict[str, int] = {}
        self.error_history: List[Dict[str, Any]] = []
        self.max_error_history = max_error_history

    def message(self, key: str, **kwargs) -> str:
        """Return a configured message, formatted with any keyword values."""
        text = self.config.get('ERROR_HANDLING', key, '')
        if kwargs:
            try:
                text = text.format(**kwargs)
            except (KeyError, IndexError, ValueError):
                self.logger.warning(f"Could not format message {key}")
        return text

    def capture_message(self, kind: Union[str, CaptureErrorKind]) -> Optional[str]:
        """
        Get the guidance message for a capture error kind.

        Returns:
            The message, or None for benign kinds that are not shown to the user
        """
        key = _CAPTURE_MESSAGE_KEYS.get(CaptureErrorKind.from_code(kind))
        return self.message(key) if key else None

    def retry_message(self, attempt: int, max_retries: int) -> str:
        return self.message('RETRY_MESSAGE', attempt=attempt, max_retries=max_retries)

    def record(self, error_context: ErrorContext) -> None:
        """Log an error and add it to the statistics."""
        self._track_error(error_context)
        self._log_error(error_context)

    def record_capture_error(self, kind: Union[str, CaptureErrorKind], details: Optional[Dict] = None) -> ErrorCategory:
        """
        Record a capture error and classify it.

        Returns:
            The category the session should act on
        """
        kind = CaptureErrorKind.from_code(kind)
        category = classify_capture_error(kind)
        severity = {
            ErrorCategory.BENIGN: ErrorSeverity.DEBUG,
            ErrorCategory.TRANSIENT: ErrorSeverity.WARNING,
            ErrorCategory.FATAL: ErrorSeverity.ERROR,
        }[category]
        self.record(ErrorContext(
            component="speech_capture",
            message=kind.value,
            severity=severity,
            details=details or {},
        ))
        return category

    def handle_error(self,
                     error: BaseException,
                     component: str = "general",
                     message_key: str = 'PROCESSING_ERROR_MESSAGE',
                     details: Optional[Dict] = None) -> str:
        """
        Handle an unexpected failure and return the message to show in its place.

        Args:
            error: The exception that occurred
            component: Name of the failing component
            message_key: ERROR_HANDLING key of the user-facing message
            details: Additional context about the error

        Returns:
            User-facing message
        """
        self.record(ErrorContext(
            component=component,
            message=str(error),
            exception=error,
            details=details or {},
        ))
        return self.message(message_key)

    def _log_error(self, error_context: ErrorContext) -> None:
        log_message = f"Error in {error_context.component}: {error_context.message}"
        if error_context.details:
            details_str = ", ".join(f"{k}={v}" for k, v in error_context.details.items())
            log_message = f"{log_message}, Details: {{{details_str}}}"

        log_level = error_context.severity.value
        if log_level >= logging.ERROR and error_context.exception is not None:
            stack_trace = "".join(
                traceback.format_exception(
                    type(error_context.exception),
                    error_context.exception,
                    error_context.exception.__traceback__
                )
            )
            log_message = f"{log_message}\nStack trace:\n{stack_trace}"

        self.logger.log(log_level, log_message)

    def _track_error(self, error_context: ErrorContext) -> None:
        key = f"{error_context.component}:{error_context.message}" \
            if error_context.exception is None else error_context.component
        self.error_counts[key] = self.error_counts.get(key, 0) + 1

        self.error_history.append(error_context.to_dict())
        if len(self.error_history) > self.max_error_history:
            self.error_history = self.error_history[-self.max_error_history:]

    def get_error_statistics(self) -> Dict[str, Any]:
        return {
            "total_errors": sum(self.error_counts.values()),
            "counts": dict(self.error_counts),
            "recent": self.error_history[-10:],
        }

    def reset_error_statistics(self) -> None:
        self.error_counts = {}
        self.error_history = []
