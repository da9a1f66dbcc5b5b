"""
Completion backend adapters.
"""

from .openai_responses_adapter import OpenAIResponsesBackend

__all__ = [
    "OpenAIResponsesBackend",
]
