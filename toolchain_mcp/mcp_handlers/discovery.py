"""
Dynamic tool discovery.

discover_tools turns a natural-language task description into enabled
workflows by asking the client's own model (MCP sampling) to pick from the
catalog, then activating the validated selection.

Every exit path returns a CallToolResult with an explicit isError flag.
Expected outcomes (no sampling capability, malformed answer, empty
selection) are results, not exceptions, and nothing escapes the top level.
"""

import json
import re
from typing import Any, Dict, List, Optional, Union

from mcp.types import CallToolResult
from pydantic import BaseModel, Field, ValidationError, field_validator

from toolchain_mcp.catalog import Catalog
from toolchain_mcp.delegation import DelegationTransport, first_text
from toolchain_mcp.logging_utils import get_logger
from toolchain_mcp.registry import ActivationError, WorkflowRegistry
from .utils import error_response, text_response, truncate

logger = get_logger(__name__)

MAX_TASK_DESCRIPTION_LENGTH = 2000

# Replaced with [filtered] before the task text is embedded in the prompt
SUSPICIOUS_PATTERNS = [
    re.compile(r"ignore\s+previous\s+instructions", re.IGNORECASE),
    re.compile(r"forget\s+everything", re.IGNORECASE),
    re.compile(r"system\s*:", re.IGNORECASE),
    re.compile(r"assistant\s*:", re.IGNORECASE),
    re.compile(r"you\s+are\s+now", re.IGNORECASE),
    re.compile(r"act\s+as", re.IGNORECASE),
]

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")

SELECTION_GUIDANCE = """IMPORTANT: Select EXACTLY ONE workflow that best matches the user's task. Use this selection guide:

Primary (project-based) workflows:
- Build, test, install or run an iOS app on a simulator: choose "simulator"
- Build, test or run a macOS app: choose "macos"
- A Swift package with no Xcode project or workspace: choose "swift-package"

Secondary (task-based, no build needed):
- Boot, list or open simulators: choose "simulator-management"
- Find projects, list schemes or inspect build settings: choose "project-discovery"
- Clean build products: choose "utilities"

If the task involves building AND running on a simulator, prefer "simulator" over "simulator-management"."""

NO_SAMPLING_MESSAGE = (
    "Your client does not support the sampling feature required for dynamic tool discovery. "
    "Set TOOLCHAIN_MCP_DYNAMIC_TOOLS=false to load the standard tool set at startup, "
    "or call enable_workflows with workflow names from list_workflows."
)

NEED_MORE_DETAIL_MESSAGE = (
    "No specific development tools seem necessary for that task. "
    "Could you provide more details about what you'd like to build, test or run?"
)


class DiscoverToolsParams(BaseModel):
    """Analyze a task description and enable the most relevant workflow."""
    task_description: str = Field(
        ...,
        description=(
            "A detailed description of the development task you want to accomplish. "
            "For example: 'I need to build my iOS app and run it on the iPhone 16 simulator.' "
            "State whether you use an .xcworkspace, an .xcodeproj or a Swift package."
        ),
    )


class EnableWorkflowsParams(BaseModel):
    """Enable workflows by name without discovery."""
    workflows: List[str] = Field(..., description="Workflow names to enable (see list_workflows).")

    @field_validator("workflows", mode="before")
    @classmethod
    def _coerce_workflows(cls, value: Any) -> Any:
        # Smaller models often send "a,b" instead of ["a", "b"]
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class SelectionParseError(ValueError):
    """The delegated answer was not a JSON array."""


def sanitize_task_description(value: Any) -> str:
    """
    Normalize a task description before it is embedded in a prompt.

    Strips control characters, collapses whitespace, truncates to
    MAX_TASK_DESCRIPTION_LENGTH and neutralizes common injection phrases.

    Raises:
        ValueError: not a string, or empty after cleanup
    """
    if not isinstance(value, str) or not value:
        raise ValueError("Task description must be a non-empty string")

    sanitized = re.sub(r"\s+", " ", value)
    sanitized = _CONTROL_CHARS.sub("", sanitized).strip()
    if not sanitized:
        raise ValueError("Task description cannot be empty after sanitization")

    if len(sanitized) > MAX_TASK_DESCRIPTION_LENGTH:
        sanitized = sanitized[:MAX_TASK_DESCRIPTION_LENGTH]
        logger.warning(f"Task description truncated to {MAX_TASK_DESCRIPTION_LENGTH} characters")

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(sanitized):
            logger.warning("Potentially suspicious pattern detected in task description")
            sanitized = pattern.sub("[filtered]", sanitized)

    return sanitized


def render_workflow_descriptions(catalog: Catalog) -> str:
    return "\n".join(
        f"- **{w.slug.upper()}**: {w.description}" for w in catalog.all_workflows()
    )


def build_selection_prompt(catalog: Catalog, task_description: str) -> str:
    """Prompt asking the client model to choose workflow slugs for a task."""
    return (
        "You are an expert assistant for a development-toolchain MCP server. "
        "Your task is to select the most relevant workflow for a user's development request.\n\n"
        f'The user wants to perform the following task: "{task_description}"\n\n'
        f"{SELECTION_GUIDANCE}\n\n"
        "All available workflows:\n"
        f"{render_workflow_descriptions(catalog)}\n\n"
        "Respond with ONLY a JSON array containing the workflow name that best matches the task "
        '(e.g., ["simulator"]). Do not include any other text.'
    )


def parse_selection(text: str, valid_slugs: List[str]) -> List[str]:
    """
    Parse a delegated answer into known workflow slugs.

    Entries that are not known slugs (including non-strings) are dropped.

    Raises:
        SelectionParseError: text is not JSON, or not a JSON array
    """
    try:
        parsed = json.loads(text.strip())
    except (json.JSONDecodeError, ValueError) as e:
        raise SelectionParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise SelectionParseError(f"Response is not an array (got {type(parsed).__name__})")

    valid = set(valid_slugs)
    selected = []
    invalid = []
    for entry in parsed:
        if isinstance(entry, str) and entry in valid:
            if entry not in selected:
                selected.append(entry)
        else:
            invalid.append(entry)

    if invalid:
        logger.warning(f"Model selected unknown workflows: {invalid}")
    return selected


class DiscoveryService:
    """
    Discovery and direct-activation entry points.

    Dependencies are injected: the registry (which carries the catalog) and
    the delegation transport for the current connection.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        delegate: DelegationTransport,
        max_tokens: int = 200,
        temperature: Optional[float] = None,
    ):
        self.registry = registry
        self.catalog = registry.catalog
        self.delegate = delegate
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def discover(self, task_description: Any) -> CallToolResult:
        try:
            return await self._discover(task_description)
        except Exception as e:
            logger.error(f"Error in discover_tools: {e}", exc_info=True)
            return error_response(f"An error occurred while discovering tools: {e}")

    async def _discover(self, task_description: Any) -> CallToolResult:
        try:
            task = sanitize_task_description(task_description)
        except ValueError as e:
            logger.error(f"Task description rejected: {e}")
            return error_response(f"Invalid task description: {e}")

        logger.info(f"Discovering tools for task: {task}")

        if not self.delegate.supports_delegation():
            logger.warning("Client does not support sampling capability")
            return error_response(NO_SAMPLING_MESSAGE)

        prompt = build_selection_prompt(self.catalog, task)
        response = await self.delegate.request(prompt, self.max_tokens, self.temperature)

        raw_text = first_text(response)
        if raw_text is None:
            logger.error(f"Unusable sampling response: {response!r}")
            return error_response(
                "The client model returned an unusable response (no text content). "
                "Please try again with a more specific task description."
            )

        logger.debug(f"Model response: {raw_text}")
        try:
            selected = parse_selection(raw_text, self.catalog.workflow_slugs())
        except SelectionParseError as e:
            logger.error(f"Failed to parse model response: {e}")
            return error_response(
                "I was unable to determine the right tools for your task. "
                f'The model returned: "{truncate(raw_text)}". '
                "Could you please rephrase your request or try a more specific description?"
            )

        if not selected:
            logger.info("Model returned empty workflow selection")
            return text_response(NEED_MORE_DETAIL_MESSAGE)

        try:
            result = await self.registry.activate(selected)
        except ActivationError as e:
            return error_response(f"Failed to enable workflows {', '.join(selected)}: {e}")

        tool_count = sum(len(self.catalog.tools_of(slug)) for slug in selected)
        logger.info(
            f"Discovery enabled {', '.join(selected)} "
            f"({result.newly_registered} newly registered)"
        )
        return text_response(
            f"Enabled {tool_count} tools for: {', '.join(selected)}.\n\n"
            "Call tools/list to see all available tools for your workflow."
        )

    # ------------------------------------------------------------------
    # MCP tool handlers
    # ------------------------------------------------------------------

    async def handle_discover_tools(self, arguments: Dict[str, Any]) -> CallToolResult:
        """Analyzes a natural language task description and enables the most relevant workflow."""
        try:
            params = DiscoverToolsParams.model_validate(arguments or {})
        except ValidationError as e:
            return error_response(f"Invalid arguments provided to discover_tools: {e.errors()[0]['msg']}")
        return await self.discover(params.task_description)

    async def handle_enable_workflows(self, arguments: Dict[str, Any]) -> CallToolResult:
        """Enable one or more workflows by name."""
        try:
            params = EnableWorkflowsParams.model_validate(arguments or {})
        except ValidationError as e:
            return error_response(f"Invalid arguments provided to enable_workflows: {e.errors()[0]['msg']}")

        known = [slug for slug in params.workflows if slug in self.catalog]
        if not known:
            logger.debug(f"enable_workflows: no known workflows in {params.workflows}")
            return text_response(
                "No workflows were enabled: none of the requested names are known "
                f"({', '.join(params.workflows) or 'none given'}). "
                "Call list_workflows to see available workflow names."
            )

        try:
            result = await self.registry.activate(params.workflows)
        except ActivationError as e:
            return error_response(f"Failed to enable workflows: {e}")

        return text_response(
            f"Registered {result.newly_registered} new tools. "
            f"Enabled workflows: {', '.join(result.enabled_workflows)}."
        )

    def tool_definitions(self) -> List[Dict[str, Union[str, Dict[str, Any], Any]]]:
        return [
            {
                "name": "discover_tools",
                "description": (
                    "Analyzes a natural language task description and enables the most relevant "
                    "development workflow (simulator, macOS, Swift package, project discovery, ...)."
                ),
                "input_schema": DiscoverToolsParams.model_json_schema(),
                "handler": self.handle_discover_tools,
                # The sampling round-trip is bounded only by the transport
                "timeout": 0,
            },
            {
                "name": "enable_workflows",
                "description": "Enable workflows by name, making their tools available. See list_workflows.",
                "input_schema": EnableWorkflowsParams.model_json_schema(),
                "handler": self.handle_enable_workflows,
                "timeout": 30.0,
            },
        ]
