"""
main.py
Command-line entry point for the board game rules voice assistant.

    python main.py ask "How do I build a road?" [--game catan-base]
    python main.py voice [--game catan-base]
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from config import initialize_config, ConfigValidationError
from core.transcript import Role, TranscriptEntry
from core.voice_session import SessionState, SessionStatus, VoiceSession
from rag import AnswerComposer, ChunkStore, ChunkStoreError
from speech.base import SpeechOutputError
from speech.recognition import MicrophoneCapture
from speech.synthesis import VoiceSynthesizer

logger = logging.getLogger("main")


def build_composer(config) -> AnswerComposer:
    """Load the rulebook chunks and build the answer pipeline."""
    rulebook_path = config.get('RAG_SETTINGS', 'RULEBOOK_PATH')
    chunk_store = ChunkStore.from_file(rulebook_path)
    logger.info(f"Loaded {len(chunk_store)} chunks for games: {', '.join(chunk_store.game_ids())}")
    return AnswerComposer(chunk_store, config_manager=config)


def run_ask(config, question: str, game_id: str) -> int:
    composer = build_composer(config)
    result = composer.answer(question, game_id)

    print(f"\nAnswer: {result.answer}")
    if result.sources:
        print("\nSources:")
        for source in result.sources:
            print(f"  - Page {source.page}, {source.section}")
    return 0


async def run_voice(config, game_id: str) -> int:
    composer = build_composer(config)
    capture = MicrophoneCapture.from_config(config)

    synthesizer: Optional[VoiceSynthesizer]
    try:
        synthesizer = VoiceSynthesizer.from_config(config)
    except SpeechOutputError as e:
        logger.warning(f"Answers will not be spoken: {e}")
        synthesizer = None

    session = VoiceSession(
        composer,
        capture,
        synthesizer=synthesizer,
        game_id=game_id,
        config_manager=config,
        loop=asyncio.get_running_loop(),
    )

    def show_entry(entry: TranscriptEntry) -> None:
        speaker = "You" if entry.role == Role.USER else "Assistant"
        print(f"\n{speaker}: {entry.text}")

    shown = {'message': None, 'state': SessionState.IDLE}

    def show_status(status: SessionStatus) -> None:
        if status.error_message and status.error_message != shown['message']:
            print(f"\n[{status.state.value}] {status.error_message}")
        if status.state == SessionState.LISTENING and shown['state'] != SessionState.LISTENING:
            print("\n(listening...)")
        shown['message'] = status.error_message
        shown['state'] = status.state

    session.transcript.on_entry(show_entry)
    session.on_change(show_status)

    print(f"Rules assistant for {game_id}.")
    print("Press Enter to start or stop holding the talk button, 'm' + Enter to mute, 'q' + Enter to quit.")

    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            command = line.strip().lower()
            if command == 'q':
                break
            if command == 'm':
                session.toggle_mute()
                print("Muted." if session.status.is_hushed else "Unmuted.")
            elif session.status.is_holding:
                session.release()
            else:
                session.press()
    finally:
        session.close()
    return 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Board game rules assistant")
    parser.add_argument('--env-file', default='.env', help="Path to the environment file")
    parser.add_argument('--config-file', default='config.json', help="Path to the JSON config file")
    subparsers = parser.add_subparsers(dest='command', required=True)

    ask_parser = subparsers.add_parser('ask', help="Answer a single typed question")
    ask_parser.add_argument('question', help="Rules question to answer")
    ask_parser.add_argument('--game', default=None, help="Game identifier (default: configured game)")

    voice_parser = subparsers.add_parser('voice', help="Push-to-talk voice session")
    voice_parser.add_argument('--game', default=None, help="Game identifier (default: configured game)")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = initialize_config(env_file=args.env_file, config_file=args.config_file)
        config.setup_logging()
        config.validate_config()
    except ConfigValidationError as e:
        print(f"Configuration error: {e}")
        return 1

    game_id = args.game or config.get('RAG_SETTINGS', 'DEFAULT_GAME_ID')
    logger.info(f"Starting in {args.command} mode for game {game_id!r}")

    try:
        if args.command == 'ask':
            return run_ask(config, args.question, game_id)
        return asyncio.run(run_voice(config, game_id))
    except ChunkStoreError as e:
        logger.error(f"Could not load rulebook: {e}")
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 0


if __name__ == "__main__":
    sys.exit(main())
