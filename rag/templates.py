"""
Prompt template management for the rules assistant RAG pipeline.

This module provides a centralized manager for the prompt templates used to
ground model answers in rulebook excerpts: the system instruction, the question
message and the per-excerpt label format.
"""

import logging
import string
from typing import Dict, List, Sequence

from config import get_config
from .chunk_store import Chunk

class TemplateError(Exception):
    """Exception raised for template-related errors."""
    pass

class PromptTemplateManager:
    """
    Manager for the prompt templates used in the RAG pipeline.

    Templates come from the PROMPT_TEMPLATES configuration section, with
    built-in defaults registered for anything the configuration omits.
    """

    DEFAULT_TEMPLATES = {
        'SYSTEM_PROMPT': (
            "You are a board game rules expert. You may only answer from the "
            "rulebook excerpts provided in the context. If the answer is not "
            "clearly in the context, say you are not sure and suggest checking "
            "the physical rulebook. Keep your answer under 3 short sentences. "
            "Do not invent new rules."
        ),
        'QUESTION_PROMPT': "Question: {question}\n\nContext from rulebook:\n{context}",
        'EXCERPT_FORMAT': "[Page {page}, Section: {section}]\n{text}",
        'EXCERPT_SEPARATOR': "\n\n---\n\n",
    }

    def __init__(self, config_manager=None):
        """
        Initialize the prompt template manager.

        Args:
            config_manager: Optional configuration manager instance.
                            If None, will use the global configuration.
        """
        self.config = config_manager if config_manager else get_config()

        self.templates: Dict[str, str] = {}
        config_templates = self.config.get_config_section('PROMPT_TEMPLATES')
        if config_templates:
            self.templates.update(config_templates)

        for name, text in self.DEFAULT_TEMPLATES.items():
            if name not in self.templates:
                self.register_template(name, text)

        logging.debug("Initialized prompt template manager")

    def get_template(self, template_name: str) -> str:
        """
        Get a prompt template by name.

        Raises:
            TemplateError: If the template is not registered
        """
        if template_name in self.templates:
            return self.templates[template_name]
        raise TemplateError(f"Template '{template_name}' not found")

    def format_template(self, template_name: str, **kwargs) -> str:
        """
        Format a template by substituting variables.

        Args:
            template_name: Name of the template to format
            **kwargs: Variables to substitute in the template

        Returns:
            The formatted prompt with variables substituted

        Raises:
            TemplateError: If template formatting fails
        """
        template = self.get_template(template_name)
        try:
            return string.Formatter().format(template, **kwargs)
        except KeyError as e:
            raise TemplateError(f"Missing required template variable: {str(e)}")
        except (ValueError, IndexError) as e:
            raise TemplateError(f"Error formatting template '{template_name}': {str(e)}")

    def get_system_prompt(self) -> str:
        return self.get_template('SYSTEM_PROMPT')

    def format_excerpts(self, chunks: Sequence[Chunk]) -> str:
        """Render chunks as page/section labelled excerpts joined by the separator."""
        separator = self.get_template('EXCERPT_SEPARATOR')
        return separator.join(
            self.format_template('EXCERPT_FORMAT', page=chunk.page, section=chunk.section, text=chunk.text)
            for chunk in chunks
        )

    def build_messages(self, question: str, chunks: Sequence[Chunk]) -> List[Dict[str, str]]:
        """
        Build the chat messages for a grounded answer.

        Args:
            question: The user's question
            chunks: Retrieved chunks to ground the answer in

        Returns:
            System and user messages in chat-completion format
        """
        user_prompt = self.format_template(
            'QUESTION_PROMPT',
            question=question,
            context=self.format_excerpts(chunks),
        )
        return [
            {"role": "system", "content": self.get_system_prompt()},
            {"role": "user", "content": user_prompt},
        ]

    def register_template(self, template_name: str, template_text: str) -> None:
        """
        Register a new template or update an existing one.

        Args:
            template_name: Name for the template
            template_text: The template text
        """
        self.templates[template_name] = template_text
        logging.debug(f"Registered template: {template_name}")
