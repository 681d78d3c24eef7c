"""Collect concrete conversation runtime adapters."""

from .azure_agents import AzureAgentsRunAdapter
from .openai_assistants import OpenAIAssistantsRunAdapter

__all__ = ["AzureAgentsRunAdapter", "OpenAIAssistantsRunAdapter"]
