"""Upstream generation backends for the research pipeline."""

from .text_generator import (
    ChatCompletionsGenerator,
    PydanticAIGenerator,
    TextGenerator,
    extract_message_content,
)

__all__ = [
    "ChatCompletionsGenerator",
    "PydanticAIGenerator",
    "TextGenerator",
    "extract_message_content",
]
