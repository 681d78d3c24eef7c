"""Azure AI Foundry Agents implementation of the run adapter."""

from .adapter import AzureAgentsRunAdapter

__all__ = ["AzureAgentsRunAdapter"]
