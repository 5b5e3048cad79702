"""
Settings for the board game rules assistant.

Values are grouped in named sections (model service, rulebook retrieval,
speech, voice session timing, prompt templates, user messages, logging).
Code defaults are overridden by an optional JSON file, which is in turn
overridden by environment variables and the .env file.
"""

import os
import json
import logging
import logging.handlers
from typing import Any, Dict
from pathlib import Path
from dotenv import load_dotenv

class ConfigValidationError(Exception):
    """Exception raised for configuration validation errors."""
    pass

class ConfigManager:
    """
    Sectioned settings store shared by the answer pipeline and the voice session.

    Construction loads and validates everything; afterwards values are read
    with get(section, key, default).
    """

    # Keys that must survive merging, by section
    REQUIRED_CONFIG = {
        'API_SETTINGS': ['OPENAI_API_BASE', 'OPENAI_MODEL'],
        'RAG_SETTINGS': ['RULEBOOK_PATH', 'DEFAULT_GAME_ID', 'TOP_K'],
        'SESSION_SETTINGS': ['MAX_RETRIES', 'RESTART_DELAY', 'RETRY_DELAY'],
    }

    SECTIONS = (
        'API_SETTINGS',
        'RAG_SETTINGS',
        'SPEECH_SETTINGS',
        'SESSION_SETTINGS',
        'PROMPT_TEMPLATES',
        'ERROR_HANDLING',
        'LOGGING_SETTINGS',
        'APP_SETTINGS',
    )

    def __init__(self, env_file: str = ".env", config_file: str = "config.json"):
        """
        Initialize the configuration manager.

        Args:
            env_file: Path to environment variables file
            config_file: Path to optional JSON configuration file
        """
        self.config = {section: {} for section in self.SECTIONS}

        # Load environment variables first
        load_dotenv(env_file)

        env_config = self.load_from_env()
        file_config = self.load_from_file(config_file)

        # Environment takes precedence over file
        self._merge_configs(file_config)
        self._merge_configs(env_config)

        self._set_defaults()
        self.validate_config()

    def _merge_configs(self, config_to_merge: Dict[str, Dict[str, Any]]) -> None:
        """
        Merge another configuration into the current configuration.

        Args:
            config_to_merge: Configuration dictionary to merge
        """
        for section, values in config_to_merge.items():
            if section in self.config:
                self.config[section].update(values)
            else:
                self.config[section] = values

    def _apply_defaults(self, section: str, defaults: Dict[str, Any]) -> None:
        for key, value in defaults.items():
            if key not in self.config[section]:
                self.config[section][key] = value

    def _set_defaults(self) -> None:
        """Set default values for optional configuration settings."""
        self._apply_defaults('API_SETTINGS', {
            'OPENAI_API_BASE': 'https://api.openai.com/v1',
            'OPENAI_MODEL': 'gpt-4o-mini',
            'MAX_TOKENS': 150,
            'TEMPERATURE': 0.3,
            'MAX_RETRY_ATTEMPTS': 2,
            'RETRY_DELAY': 1.0,  # seconds
            'TIMEOUT': 30,  # seconds
        })

        self._apply_defaults('RAG_SETTINGS', {
            'RULEBOOK_PATH': './data/rulebook_chunks.json',
            'DEFAULT_GAME_ID': 'catan-base',
            'TOP_K': 5,
            'MAX_SENTENCES': 3,
            'MIN_TOKEN_LENGTH': 3,
            'SECTION_BONUS': 2,
        })

        self._apply_defaults('SPEECH_SETTINGS', {
            'LANGUAGE': 'en-US',
            'SPEECH_RATE': 0.9,
            'SPEECH_PITCH': 1.0,
            'BASE_WORDS_PER_MINUTE': 175,
            'ENERGY_THRESHOLD': 300,
            'PAUSE_THRESHOLD': 0.8,
            'LISTEN_TIMEOUT': 5,
            'PHRASE_TIME_LIMIT': 10,
        })

        self._apply_defaults('SESSION_SETTINGS', {
            'MAX_RETRIES': 3,
            'RESTART_DELAY': 0.1,  # seconds
            'RETRY_DELAY': 0.5,  # seconds
        })

        self.config['PROMPT_TEMPLATES'].setdefault('SYSTEM_PROMPT', (
            "You are a board game rules expert. You may only answer from the "
            "rulebook excerpts provided in the context. If the answer is not "
            "clearly in the context, say you are not sure and suggest checking "
            "the physical rulebook. Keep your answer under 3 short sentences. "
            "Do not invent new rules."
        ))
        self.config['PROMPT_TEMPLATES'].setdefault(
            'QUESTION_PROMPT',
            "Question: {question}\n\nContext from rulebook:\n{context}"
        )
        self.config['PROMPT_TEMPLATES'].setdefault(
            'EXCERPT_FORMAT',
            "[Page {page}, Section: {section}]\n{text}"
        )
        self.config['PROMPT_TEMPLATES'].setdefault('EXCERPT_SEPARATOR', "\n\n---\n\n")

        self._apply_defaults('ERROR_HANDLING', {
            'MISSING_QUESTION_MESSAGE': "Question is required.",
            'NO_RULEBOOK_MESSAGE': "No rulebook found for game: {game_id}",
            'NOT_FOUND_MESSAGE': (
                "I couldn't find relevant information in the rulebook excerpts for that "
                "question. Please check the physical rulebook or try rephrasing your question."
            ),
            'SERVICE_UNAVAILABLE_MESSAGE': (
                "I had trouble reaching the rules engine. "
                "Please check your connection or try again."
            ),
            'NO_ANSWER_MESSAGE': "I couldn't generate an answer. Please try again.",
            'PROCESSING_ERROR_MESSAGE': "I had trouble processing your question. Please try again.",
            'EMPTY_ANSWER_MESSAGE': "I couldn't find a matching rule in the rulebook excerpts.",
            'ANSWER_FAILED_MESSAGE': "I had trouble getting an answer. Please try again.",
            'CAPTURE_UNAVAILABLE_MESSAGE': (
                "Speech recognition is not available in this environment. "
                "Use the text question mode instead."
            ),
            'NOT_ALLOWED_MESSAGE': (
                "Microphone permission denied. Please allow microphone access "
                "in your system settings and try again."
            ),
            'AUDIO_CAPTURE_MESSAGE': (
                "Microphone not found or not accessible. "
                "Please check your microphone settings."
            ),
            'NETWORK_FAILURE_MESSAGE': (
                "Cannot connect to speech recognition service. This may be due to:\n"
                "- Firewall blocking the recognition service\n"
                "- VPN or network restrictions\n"
                "- Regional service limitations\n\n"
                "Try again later or check your network settings."
            ),
            'RETRY_MESSAGE': "Connection issue (retry {attempt}/{max_retries})...",
            'UNKNOWN_CAPTURE_MESSAGE': "Speech recognition unavailable. Please try again.",
            'START_FAILED_MESSAGE': "Could not start listening: {reason}",
        })

        self._apply_defaults('LOGGING_SETTINGS', {
            'LOG_LEVEL': 'INFO',
            'LOG_FORMAT': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'LOG_FILE': None,
            'LOG_MAX_BYTES': 10485760,  # 10MB
            'LOG_BACKUP_COUNT': 5,
        })

        self._apply_defaults('APP_SETTINGS', {
            'DEBUG_MODE': False,
        })

    def load_from_env(self) -> Dict[str, Dict[str, Any]]:
        """
        Load configuration from environment variables.

        Returns:
            Configuration dictionary with settings from environment variables
        """
        config = {section: {} for section in self.SECTIONS}

        # API settings
        if os.getenv('OPENAI_API_KEY'):
            config['API_SETTINGS']['OPENAI_API_KEY'] = os.getenv('OPENAI_API_KEY')
        if os.getenv('OPENAI_API_BASE'):
            config['API_SETTINGS']['OPENAI_API_BASE'] = os.getenv('OPENAI_API_BASE')
        if os.getenv('OPENAI_MODEL'):
            config['API_SETTINGS']['OPENAI_MODEL'] = os.getenv('OPENAI_MODEL')
        if os.getenv('MAX_TOKENS'):
            config['API_SETTINGS']['MAX_TOKENS'] = int(os.getenv('MAX_TOKENS'))
        if os.getenv('TEMPERATURE'):
            config['API_SETTINGS']['TEMPERATURE'] = float(os.getenv('TEMPERATURE'))
        if os.getenv('MAX_RETRY_ATTEMPTS'):
            config['API_SETTINGS']['MAX_RETRY_ATTEMPTS'] = int(os.getenv('MAX_RETRY_ATTEMPTS'))
        if os.getenv('OPENAI_TIMEOUT'):
            config['API_SETTINGS']['TIMEOUT'] = int(os.getenv('OPENAI_TIMEOUT'))

        # RAG settings
        if os.getenv('RULEBOOK_PATH'):
            config['RAG_SETTINGS']['RULEBOOK_PATH'] = os.getenv('RULEBOOK_PATH')
        if os.getenv('DEFAULT_GAME_ID'):
            config['RAG_SETTINGS']['DEFAULT_GAME_ID'] = os.getenv('DEFAULT_GAME_ID')
        if os.getenv('TOP_K'):
            config['RAG_SETTINGS']['TOP_K'] = int(os.getenv('TOP_K'))
        if os.getenv('MAX_SENTENCES'):
            config['RAG_SETTINGS']['MAX_SENTENCES'] = int(os.getenv('MAX_SENTENCES'))

        # Speech settings
        if os.getenv('SPEECH_LANGUAGE'):
            config['SPEECH_SETTINGS']['LANGUAGE'] = os.getenv('SPEECH_LANGUAGE')
        if os.getenv('SPEECH_RATE'):
            config['SPEECH_SETTINGS']['SPEECH_RATE'] = float(os.getenv('SPEECH_RATE'))
        if os.getenv('SPEECH_PITCH'):
            config['SPEECH_SETTINGS']['SPEECH_PITCH'] = float(os.getenv('SPEECH_PITCH'))
        if os.getenv('ENERGY_THRESHOLD'):
            config['SPEECH_SETTINGS']['ENERGY_THRESHOLD'] = int(os.getenv('ENERGY_THRESHOLD'))
        if os.getenv('PAUSE_THRESHOLD'):
            config['SPEECH_SETTINGS']['PAUSE_THRESHOLD'] = float(os.getenv('PAUSE_THRESHOLD'))

        # Session settings
        if os.getenv('MAX_RETRIES'):
            config['SESSION_SETTINGS']['MAX_RETRIES'] = int(os.getenv('MAX_RETRIES'))
        if os.getenv('RESTART_DELAY'):
            config['SESSION_SETTINGS']['RESTART_DELAY'] = float(os.getenv('RESTART_DELAY'))
        if os.getenv('RETRY_DELAY'):
            config['SESSION_SETTINGS']['RETRY_DELAY'] = float(os.getenv('RETRY_DELAY'))

        # Logging settings
        if os.getenv('LOG_LEVEL'):
            config['LOGGING_SETTINGS']['LOG_LEVEL'] = os.getenv('LOG_LEVEL')
        if os.getenv('LOG_FILE'):
            config['LOGGING_SETTINGS']['LOG_FILE'] = os.getenv('LOG_FILE')

        # App settings
        if os.getenv('DEBUG_MODE'):
            config['APP_SETTINGS']['DEBUG_MODE'] = os.getenv('DEBUG_MODE').lower() in ('true', 'yes', '1')

        return config

    def load_from_file(self, config_file: str) -> Dict[str, Dict[str, Any]]:
        """
        Load configuration from a JSON file.

        Args:
            config_file: Path to the JSON configuration file

        Returns:
            Configuration dictionary with settings from the file
        """
        config = {}

        if not config_file or not os.path.exists(config_file):
            return config

        try:
            with open(config_file, 'r') as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"Error loading configuration file: {str(e)}")

        return config

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a specific configuration value.

        Args:
            section: Configuration section name
            key: Configuration key within section
            default: Default value if key not found

        Returns:
            The configuration value or default if not found
        """
        if section in self.config and key in self.config[section]:
            return self.config[section][key]
        return default

    def get_config_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Configuration section name

        Returns:
            Dictionary of all configuration values for the section
        """
        return self.config.get(section, {})

    def update_config(self, section: str, key: str, value: Any) -> None:
        """
        Update a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key to update
            value: New value to set
        """
        if section not in self.config:
            self.config[section] = {}

        self.config[section][key] = value

    def validate_config(self) -> bool:
        """
        Validate that all required configuration is present and usable.

        A missing OPENAI_API_KEY is not an error here; the answer pipeline
        degrades to a fixed message without it.

        Returns:
            True if configuration is valid

        Raises:
            ConfigValidationError: If required configuration is missing or invalid
        """
        validation_errors = []

        for section, keys in self.REQUIRED_CONFIG.items():
            if section not in self.config:
                validation_errors.append(f"Missing configuration section: {section}")
                continue

            for key in keys:
                if key not in self.config[section]:
                    validation_errors.append(f"Missing required configuration: {section}.{key}")

        if self.get('RAG_SETTINGS', 'TOP_K', 1) < 1:
            validation_errors.append("RAG_SETTINGS.TOP_K must be at least 1")
        if self.get('RAG_SETTINGS', 'MAX_SENTENCES', 1) < 1:
            validation_errors.append("RAG_SETTINGS.MAX_SENTENCES must be at least 1")
        if self.get('SESSION_SETTINGS', 'MAX_RETRIES', 0) < 0:
            validation_errors.append("SESSION_SETTINGS.MAX_RETRIES must not be negative")
        for key in ('RESTART_DELAY', 'RETRY_DELAY'):
            if self.get('SESSION_SETTINGS', key, 0) < 0:
                validation_errors.append(f"SESSION_SETTINGS.{key} must not be negative")

        if validation_errors:
            error_message = "Configuration validation failed:\n" + "\n".join(validation_errors)
            raise ConfigValidationError(error_message)

        return True

    def setup_logging(self) -> None:
        """Configure logging based on the logging settings."""
        log_level_str = self.get('LOGGING_SETTINGS', 'LOG_LEVEL', 'INFO')
        log_format = self.get('LOGGING_SETTINGS', 'LOG_FORMAT', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        log_file = self.get('LOGGING_SETTINGS', 'LOG_FILE')

        if self.get('APP_SETTINGS', 'DEBUG_MODE', False):
            log_level_str = 'DEBUG'
        log_level = getattr(logging, str(log_level_str).upper(), logging.INFO)

        logging.basicConfig(
            level=log_level,
            format=log_format,
            handlers=[
                logging.StreamHandler(),  # Console handler
            ]
        )

        if log_file:
            log_max_bytes = self.get('LOGGING_SETTINGS', 'LOG_MAX_BYTES', 10485760)
            log_backup_count = self.get('LOGGING_SETTINGS', 'LOG_BACKUP_COUNT', 5)

            log_path = Path(log_file)
            if not log_path.parent.exists():
                log_path.parent.mkdir(parents=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=log_max_bytes,
                backupCount=log_backup_count
            )
            file_handler.setFormatter(logging.Formatter(log_format))
            logging.getLogger().addHandler(file_handler)

        logging.info("Logging configured successfully")

    def generate_sample_env(self, output_file: str = "example.env") -> None:
        """
        Generate a sample .env file with all configurable options.

        Args:
            output_file: Path to the output file
        """
        lines = [
            "# Board Game Rules Assistant - Configuration",
            "# Copy this file to .env and fill in your values",
            "",
            "# API Settings",
            "OPENAI_API_KEY=your_api_key_here",
            "OPENAI_MODEL=gpt-4o-mini",
            "OPENAI_API_BASE=https://api.openai.com/v1",
            "MAX_TOKENS=150",
            "TEMPERATURE=0.3",
            "MAX_RETRY_ATTEMPTS=2",
            "OPENAI_TIMEOUT=30",
            "",
            "# RAG Settings",
            "RULEBOOK_PATH=./data/rulebook_chunks.json",
            "DEFAULT_GAME_ID=catan-base",
            "TOP_K=5",
            "MAX_SENTENCES=3",
            "",
            "# Speech Settings",
            "SPEECH_LANGUAGE=en-US",
            "SPEECH_RATE=0.9",
            "SPEECH_PITCH=1.0",
            "ENERGY_THRESHOLD=300",
            "PAUSE_THRESHOLD=0.8",
            "",
            "# Voice Session Settings",
            "MAX_RETRIES=3",
            "RESTART_DELAY=0.1",
            "RETRY_DELAY=0.5",
            "",
            "# Logging Settings",
            "LOG_LEVEL=INFO",
            "LOG_FILE=logs/rules_assistant.log",
            "",
            "# App Settings",
            "DEBUG_MODE=False",
            "",
        ]

        with open(output_file, 'w') as f:
            f.write('\n'.join(lines))

        logging.info(f"Sample configuration written to {output_file}")
