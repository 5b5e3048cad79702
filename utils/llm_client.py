"""
Chat-completion API client for the board game rules assistant.

This module provides a client for an OpenAI-compatible chat-completion
endpoint, handling authentication, request management, retries, error
handling and response parsing.
"""

import time
import json
import logging
from typing import Dict, List, Any, Optional
import requests
from requests.exceptions import RequestException, Timeout, ConnectionError

from config import get_config

class LLMAPIError(Exception):
    """Exception raised for model service errors."""
    def __init__(self, message: str, status_code: Optional[int] = None,
                 response: Optional[Any] = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class LLMClient:
    """
    Client for an OpenAI-compatible chat-completion API.

    A missing API key does not prevent construction; every request made
    without one fails with LLMAPIError so callers can degrade gracefully.
    """

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(self, config_manager=None):
        """
        Initialize the client.

        Args:
            config_manager: Optional configuration manager instance.
                            If None, will use the global configuration.
        """
        self.config = config_manager if config_manager else get_config()

        self.api_key = self.config.get('API_SETTINGS', 'OPENAI_API_KEY')
        self.api_base = self.config.get('API_SETTINGS', 'OPENAI_API_BASE',
                                        'https://api.openai.com/v1').rstrip('/')
        self.default_model = self.config.get('API_SETTINGS', 'OPENAI_MODEL', 'gpt-4o-mini')
        self.default_max_tokens = self.config.get('API_SETTINGS', 'MAX_TOKENS', 150)
        self.default_temperature = self.config.get('API_SETTINGS', 'TEMPERATURE', 0.3)

        self.max_retries = self.config.get('API_SETTINGS', 'MAX_RETRY_ATTEMPTS', 2)
        self.retry_delay = self.config.get('API_SETTINGS', 'RETRY_DELAY', 1.0)
        self.timeout = self.config.get('API_SETTINGS', 'TIMEOUT', 30)

        if not self.api_key:
            logging.warning("OPENAI_API_KEY is not set; model requests will fail")

        logging.info(f"Initialized chat-completion client with model: {self.default_model}")

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def chat_completion(self,
                        messages: List[Dict[str, str]],
                        model: Optional[str] = None,
                        max_tokens: Optional[int] = None,
                        temperature: Optional[float] = None) -> Dict:
        """
        Get a chat completion from the model service.

        Args:
            messages: List of message objects with role and content
            model: Model to use (defaults to configuration setting)
            max_tokens: Maximum tokens to generate (defaults to configuration setting)
            temperature: Sampling temperature (defaults to configuration setting)

        Returns:
            Complete API response

        Raises:
            LLMAPIError: If the credential is missing or the request fails
        """
        if not self.api_key:
            raise LLMAPIError("Model service API key is not configured")

        endpoint = f"{self.api_base}/chat/completions"

        payload = {
            "model": model or self.default_model,
            "messages": messages,
            "max_tokens": max_tokens if max_tokens is not None else self.default_max_tokens,
            "temperature": temperature if temperature is not None else self.default_temperature
        }

        logging.debug(f"Making chat completion request with model {payload['model']}")
        return self._make_request(endpoint, payload)

    def extract_response_text(self, response: Dict) -> str:
        """
        Extract the generated text of the first completion.

        Args:
            response: API response object

        Returns:
            The generated text content

        Raises:
            LLMAPIError: If the response does not hold a completion text
        """
        try:
            choice = response['choices'][0]
            if 'message' in choice:
                content = choice['message']['content']
            else:
                content = choice['text']
        except (KeyError, IndexError, TypeError) as e:
            logging.warning(f"Unexpected response format: {response}")
            raise LLMAPIError(f"Malformed completion response: {str(e)}", response=response)

        if not isinstance(content, str):
            raise LLMAPIError("Completion content is not text", response=response)
        return content

    def _make_request(self,
                      endpoint: str,
                      payload: Dict,
                      retries: Optional[int] = None) -> Dict:
        """
        Make a request to the API with retry logic.

        Args:
            endpoint: API endpoint to call
            payload: Request payload
            retries: Number of attempts (defaults to configuration setting)

        Returns:
            API response

        Raises:
            LLMAPIError: If there is an error with the API request
        """
        max_attempts = max(retries if retries is not None else self.max_retries, 1)
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            try:
                logging.debug(f"API request attempt {attempt}/{max_attempts} to {endpoint}")

                response = requests.post(
                    endpoint,
                    headers=self.headers,
                    data=json.dumps(payload),
                    timeout=self.timeout
                )
            except (ConnectionError, Timeout) as e:
                if self._should_retry(str(e), attempt, max_attempts, retryable=True):
                    continue
                raise LLMAPIError(f"Network error: {str(e)}")
            except RequestException as e:
                raise LLMAPIError(f"Request error: {str(e)}")

            if response.status_code != 200:
                error_msg = f"API error: {response.status_code}"
                try:
                    error_data = response.json()
                    if 'error' in error_data and 'message' in error_data['error']:
                        error_msg = f"API error {response.status_code}: {error_data['error']['message']}"
                except (ValueError, TypeError):
                    pass

                retryable = response.status_code in self.RETRYABLE_STATUS_CODES
                if self._should_retry(error_msg, attempt, max_attempts, retryable=retryable):
                    continue
                raise LLMAPIError(
                    error_msg,
                    status_code=response.status_code,
                    response=response.text
                )

            try:
                return response.json()
            except ValueError as e:
                raise LLMAPIError(f"Malformed response body: {str(e)}",
                                  status_code=response.status_code,
                                  response=response.text)

        raise LLMAPIError(f"API request failed after {max_attempts} attempts")

    def _should_retry(self, error_str: str, attempt: int, max_attempts: int, retryable: bool) -> bool:
        """
        Decide whether a failed attempt should be retried, sleeping before the retry.

        Args:
            error_str: Description of the failure
            attempt: Current attempt number
            max_attempts: Maximum number of attempts
            retryable: Whether the failure kind is transient

        Returns:
            True if retry is recommended, False otherwise
        """
        logging.warning(f"API error on attempt {attempt}/{max_attempts}: {error_str}")

        if retryable and attempt < max_attempts:
            delay = self.retry_delay * (2 ** (attempt - 1))  # Exponential backoff
            logging.info(f"Retrying in {delay:.2f} seconds...")
            time.sleep(delay)
            return True

        return False
