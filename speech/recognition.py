"""
speech/recognition.py
Push-to-talk speech capture for the rules assistant using the SpeechRecognition library.
"""

import logging
import threading
from typing import Optional

import speech_recognition as sr

from speech.base import SpeechCapture, CaptureAlreadyActiveError, CaptureUnavailableError

# Configure logging
logger = logging.getLogger(__name__)


class MicrophoneCapture(SpeechCapture):
    """
    Captures one utterance per start() from the default microphone.

    Listening and recognition run on a worker thread; every event is reported
    through the SpeechCapture callbacks from that thread, so callers must
    marshal them onto their own coordinator.
    """

    def __init__(
        self,
        language: str = "en-US",
        energy_threshold: int = 300,
        pause_threshold: float = 0.8,
        dynamic_energy_threshold: bool = True,
        timeout: int = 5,
        phrase_time_limit: int = 10,
        device_index: Optional[int] = None,
    ):
        """
        Initialize the capture engine.

        Args:
            language: Recognition language tag (default: en-US)
            energy_threshold: Minimum audio energy to detect (default: 300)
            pause_threshold: Seconds of non-speaking before a phrase is considered complete (default: 0.8)
            dynamic_energy_threshold: Automatically adjust energy threshold based on ambient noise (default: True)
            timeout: How long to wait for speech before reporting no-speech (default: 5 seconds)
            phrase_time_limit: Maximum length of a phrase (default: 10 seconds)
            device_index: Optional microphone device index
        """
        super().__init__()
        self.language = language
        self.timeout = timeout
        self.phrase_time_limit = phrase_time_limit
        self.device_index = device_index

        self.recognizer = sr.Recognizer()
        self.recognizer.energy_threshold = energy_threshold
        self.recognizer.pause_threshold = pause_threshold
        self.recognizer.dynamic_energy_threshold = dynamic_energy_threshold

        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._stop_requested = threading.Event()

        logger.info("Initialized MicrophoneCapture: language=%s, energy_threshold=%d, pause_threshold=%.2f",
                    language, energy_threshold, pause_threshold)

    @classmethod
    def from_config(cls, config_manager) -> "MicrophoneCapture":
        return cls(
            language=config_manager.get('SPEECH_SETTINGS', 'LANGUAGE', 'en-US'),
            energy_threshold=config_manager.get('SPEECH_SETTINGS', 'ENERGY_THRESHOLD', 300),
            pause_threshold=config_manager.get('SPEECH_SETTINGS', 'PAUSE_THRESHOLD', 0.8),
            timeout=config_manager.get('SPEECH_SETTINGS', 'LISTEN_TIMEOUT', 5),
            phrase_time_limit=config_manager.get('SPEECH_SETTINGS', 'PHRASE_TIME_LIMIT', 10),
        )

    def is_available(self) -> bool:
        """
        Check that an audio backend and at least one microphone exist.

        Returns:
            bool: True if capture can run, otherwise False with unavailable_reason set
        """
        try:
            names = sr.Microphone.list_microphone_names()
        except AttributeError as e:
            # speech_recognition raises AttributeError when PyAudio is missing
            self.unavailable_reason = f"Audio input backend not installed ({e})."
            logger.warning("Speech capture unavailable: %s", self.unavailable_reason)
            return False
        except OSError as e:
            self.unavailable_reason = f"Audio input system not accessible ({e})."
            logger.warning("Speech capture unavailable: %s", self.unavailable_reason)
            return False

        if not names:
            self.unavailable_reason = "No microphone was found on this system."
            logger.warning("Speech capture unavailable: %s", self.unavailable_reason)
            return False

        self.unavailable_reason = None
        return True

    @property
    def is_active(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_active:
                raise CaptureAlreadyActiveError("Speech capture already started")
            try:
                microphone = sr.Microphone(device_index=self.device_index)
            except AttributeError as e:
                raise CaptureUnavailableError(f"Audio input backend not installed: {e}")

            self._stop_requested.clear()
            self._worker = threading.Thread(
                target=self._run,
                args=(microphone,),
                name="microphone-capture",
                daemon=True,
            )
            self._worker.start()

    def stop(self) -> None:
        # listen() cannot be interrupted; the worker checks the flag once the phrase ends
        self._stop_requested.set()

    def _run(self, microphone: "sr.Microphone") -> None:
        try:
            with microphone as source:
                self._emit(self.on_start)
                logger.debug("Listening (timeout: %ds, phrase_time_limit: %ds)",
                             self.timeout, self.phrase_time_limit)
                audio = self.recognizer.listen(
                    source,
                    timeout=self.timeout,
                    phrase_time_limit=self.phrase_time_limit
                )
            text = self.recognizer.recognize_google(audio, language=self.language)
            logger.info("Speech recognized: '%s'", text)
            if text and text.strip():
                self._emit(self.on_result, text)
            else:
                self._emit(self.on_error, "no-speech")

        except sr.WaitTimeoutError:
            logger.info("Listening timed out after %ds. No speech detected.", self.timeout)
            self._emit(self.on_error, "aborted" if self._stop_requested.is_set() else "no-speech")

        except sr.UnknownValueError:
            logger.info("Speech detected but could not be understood")
            self._emit(self.on_error, "no-speech")

        except sr.RequestError as e:
            logger.warning("Recognition service request failed: %s", e)
            self._emit(self.on_error, "network")

        except PermissionError as e:
            logger.error("Microphone access denied: %s", e)
            self._emit(self.on_error, "not-allowed")

        except OSError as e:
            logger.error("Microphone not accessible: %s", e)
            self._emit(self.on_error, "audio-capture")

        except Exception as e:
            logger.error("Error in speech recognition: %s", str(e), exc_info=True)
            self._emit(self.on_error, "unknown")

        finally:
            self._emit(self.on_end)
