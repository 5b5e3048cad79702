"""
core/transcript.py
Append-only conversation transcript for a voice session.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TranscriptEntry:
    role: Role
    text: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp,
        }


class Transcript:
    """
    Ordered record of user questions and assistant answers.

    Entries are only ever appended; listeners registered with on_entry are
    called with each new entry.
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []
        self._listeners: List[Callable[[TranscriptEntry], None]] = []

    @property
    def entries(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def on_entry(self, listener: Callable[[TranscriptEntry], None]) -> None:
        self._listeners.append(listener)

    def add(self, role: Role, text: str) -> TranscriptEntry:
        """
        Append an entry and notify listeners.

        Args:
            role: Who produced the text
            text: The utterance or answer

        Returns:
            TranscriptEntry: The appended entry
        """
        entry = TranscriptEntry(role=role, text=text)
        self._entries.append(entry)
        logger.debug(f"Transcript entry {len(self._entries)}: {role.value}: {text[:50]}")
        for listener in self._listeners:
            listener(entry)
        return entry

    def add_user(self, text: str) -> TranscriptEntry:
        return self.add(Role.USER, text)

    def add_assistant(self, text: str) -> TranscriptEntry:
        return self.add(Role.ASSISTANT, text)

    def to_list(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]
