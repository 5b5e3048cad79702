"""
speech/synthesis.py
Text-to-speech output for the rules assistant using pyttsx3.
"""

import logging
import threading
from typing import Optional

import pyttsx3

from speech.base import SpeechOutput, SpeechOutputError

# Configure logging
logger = logging.getLogger(__name__)


class VoiceSynthesizer(SpeechOutput):
    """
    Speaks answers aloud using the pyttsx3 library.

    Speech runs on a background thread so the caller is never blocked;
    cancel() stops the utterance in progress.
    """

    def __init__(
        self,
        base_rate: int = 175,
        volume: float = 1.0,
        voice_id: Optional[str] = None,
    ):
        """
        Initialize the VoiceSynthesizer.

        Args:
            base_rate: Words per minute at a relative rate of 1.0 (default: 175)
            volume: Volume level from 0.0 to 1.0 (default: 1.0)
            voice_id: Specific voice identifier to use. When None, uses system default.

        Raises:
            SpeechOutputError: If the speech engine cannot be initialized
        """
        logger.info("Initializing VoiceSynthesizer")

        try:
            self.engine = pyttsx3.init()
            self.engine.setProperty('volume', volume)
            if voice_id:
                self.engine.setProperty('voice', voice_id)
        except (RuntimeError, OSError, ImportError) as e:
            logger.error(f"Error initializing speech synthesis engine: {e}", exc_info=True)
            raise SpeechOutputError(f"Speech synthesis unavailable: {e}")

        self.base_rate = base_rate
        self.volume = volume
        self.voice_id = voice_id or self.engine.getProperty('voice')
        self.pitch = 1.0

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._cancelled = threading.Event()

        logger.info(f"VoiceSynthesizer initialized with base_rate={base_rate}, volume={volume}, voice={self.voice_id}")

    @classmethod
    def from_config(cls, config_manager) -> "VoiceSynthesizer":
        return cls(base_rate=config_manager.get('SPEECH_SETTINGS', 'BASE_WORDS_PER_MINUTE', 175))

    @property
    def is_speaking(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def speak(self, text: str, rate: float = 1.0, pitch: float = 1.0) -> None:
        """
        Speak text without blocking.

        Args:
            text: The text to speak
            rate: Relative speech rate, 1.0 being the engine's base rate
            pitch: Relative pitch; pyttsx3 exposes no pitch control, so it is only recorded
        """
        if not text:
            logger.warning("Empty text provided to speak method")
            return

        # pyttsx3 runs one loop at a time; the new worker waits for the old one
        self.cancel()

        with self._lock:
            words_per_minute = int(self.base_rate * rate)
            self.pitch = pitch
            logger.info(f"Speaking: '{text[:50]}{'...' if len(text) > 50 else ''}' (rate={words_per_minute}, pitch={pitch})")

            self._cancelled = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(text, words_per_minute, self._thread, self._cancelled),
                name="voice-synthesizer",
                daemon=True,
            )
            self._thread.start()

    def _run(self, text: str, words_per_minute: int,
             previous: Optional[threading.Thread], cancelled: threading.Event) -> None:
        if previous is not None:
            previous.join()
        if cancelled.is_set():
            return
        try:
            self.engine.setProperty('rate', words_per_minute)
            self.engine.say(text)
            self.engine.runAndWait()
            logger.debug("Speech completed")
        except RuntimeError as e:
            logger.error(f"Error during speech synthesis: {e}", exc_info=True)

    def cancel(self) -> None:
        """Stop the current utterance without waiting for the worker to exit."""
        self._cancelled.set()
        if not self.is_speaking:
            return
        logger.debug("Cancelling speech")
        self.engine.stop()
