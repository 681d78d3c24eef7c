"""Definitions of the GitHub tools exposed by the GitHub Copilot MCP server."""

from typing import Dict, List, Optional, Sequence

from foundry_agent.agent_core.tools.models import ToolDefinition
from foundry_agent.agent_core.tools.registry import ToolCatalog


def _string(description: str) -> Dict[str, str]:
    return {"type": "string", "description": description}


def _object(properties: Dict[str, Dict[str, str]], required: Sequence[str]) -> Dict[str, object]:
    return {"type": "object", "properties": properties, "required": list(required)}


_OWNER = _string("Repository owner")
_REPO = _string("Repository name")
_PATH = _string("File path")

GITHUB_TOOLS: List[ToolDefinition] = [
    ToolDefinition(
        name="search_repositories",
        description=(
            "Search for GitHub repositories using GitHub search syntax in 'query' "
            "(e.g., 'language:javascript pushed:>=2026-01-01'). "
            "Do not pass sort-only strings like 'sort:updated-desc' as the query."
        ),
        parameters=_object(
            {
                "query": _string(
                    "GitHub repository search query (must include at least one keyword or qualifier, "
                    "e.g. 'azure pushed:>=2026-01-01' or 'language:javascript stars:>100')"
                )
            },
            ["query"],
        ),
    ),
    ToolDefinition(
        name="get_file_contents",
        description="Get the contents of a file from a GitHub repository",
        parameters=_object({"owner": _OWNER, "repo": _REPO, "path": _PATH}, ["owner", "repo", "path"]),
    ),
    ToolDefinition(
        name="create_or_update_file",
        description="Create or update a file in a GitHub repository",
        parameters=_object(
            {
                "owner": _OWNER,
                "repo": _REPO,
                "path": _PATH,
                "content": _string("File content"),
                "message": _string("Commit message"),
                "branch": _string("Branch name"),
            },
            ["owner", "repo", "path", "content", "message", "branch"],
        ),
    ),
    ToolDefinition(
        name="list_issues",
        description="List issues in a GitHub repository",
        parameters=_object({"owner": _OWNER, "repo": _REPO}, ["owner", "repo"]),
    ),
    ToolDefinition(
        name="create_issue",
        description="Create a new issue in a GitHub repository",
        parameters=_object(
            {"owner": _OWNER, "repo": _REPO, "title": _string("Issue title"), "body": _string("Issue body")},
            ["owner", "repo", "title"],
        ),
    ),
    ToolDefinition(
        name="create_pull_request",
        description="Create a new pull request in a GitHub repository",
        parameters=_object(
            {
                "owner": _OWNER,
                "repo": _REPO,
                "title": _string("PR title"),
                "body": _string("PR body"),
                "head": _string("Source branch"),
                "base": _string("Target branch"),
            },
            ["owner", "repo", "title", "head", "base"],
        ),
    ),
]


def github_tool_catalog(allowed: Optional[Sequence[str]] = None, enabled: bool = True) -> ToolCatalog:
    """
    Build the catalog of GitHub tools.

    Args:
        allowed: Names of the tools to enable; None or empty enables all of them.
        enabled: When False every tool is registered but disabled.

    Returns:
        The immutable catalog.
    """
    catalog = ToolCatalog(GITHUB_TOOLS)
    if not enabled:
        return catalog.disabled()
    return catalog.with_allowed(allowed)
