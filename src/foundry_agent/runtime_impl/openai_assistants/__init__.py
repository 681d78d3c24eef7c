"""OpenAI Assistants implementation of the run adapter."""

from .adapter import OpenAIAssistantsRunAdapter

__all__ = ["OpenAIAssistantsRunAdapter"]
