"""
Manifest loader for YAML workflow and tool definitions.

Layout:
    <manifests_dir>/workflows/*.yaml   one workflow per file
    <manifests_dir>/tools/*.yaml       a `tools:` list per file

Each entry is validated with pydantic before the Catalog is built; any
problem raises CatalogError naming the offending file.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from toolchain_mcp.catalog import Catalog, CatalogError, ToolDescriptor, WorkflowDescriptor
from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)

MANIFESTS_DIR = Path(__file__).parent

_SLUG_PATTERN = r"^[a-z0-9][a-z0-9_\-]*$"


class WorkflowManifest(BaseModel):
    """Schema of a workflow manifest file."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., pattern=_SLUG_PATTERN, description="Stable workflow slug")
    title: str = Field(..., min_length=1, description="Human display name")
    description: str = Field(..., min_length=1, description="Shown in docs and the selection prompt")
    platforms: List[str] = Field(default_factory=list)
    auto_include: bool = Field(default=False, description="Enabled at startup in every mode")
    default_enabled: bool = Field(default=True, description="Enabled at startup in static mode")

    def to_descriptor(self) -> WorkflowDescriptor:
        return WorkflowDescriptor(
            slug=self.id,
            name=self.title,
            description=self.description.strip(),
            platforms=frozenset(self.platforms),
            auto_include=self.auto_include,
            default_enabled=self.default_enabled,
        )


class ToolManifest(BaseModel):
    """Schema of a single tool entry."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., pattern=_SLUG_PATTERN, description="Stable tool slug")
    name: Optional[str] = Field(default=None, description="Caller-visible MCP name (defaults to id)")
    description: str = Field(..., min_length=1)
    handler: str = Field(..., description="'package.module:function' reference")
    workflow: str = Field(..., description="Owning workflow slug")
    reexported_by: List[str] = Field(default_factory=list)
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("handler")
    @classmethod
    def _check_handler(cls, value: str) -> str:
        module_path, sep, attr = value.partition(":")
        if not sep or not module_path or not attr:
            raise ValueError("handler must look like 'package.module:function'")
        return value

    @field_validator("input_schema")
    @classmethod
    def _check_schema(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if value.get("type", "object") != "object":
            raise ValueError("input_schema must describe an object")
        value.setdefault("type", "object")
        value.setdefault("properties", {})
        return value

    def to_descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            slug=self.id,
            name=self.name or self.id,
            description=self.description.strip(),
            handler=self.handler,
            owner=self.workflow,
            input_schema=self.input_schema,
            reexported_by=frozenset(self.reexported_by),
            timeout=self.timeout,
        )


class ToolManifestFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tools: List[ToolManifest]


def _read_yaml_files(directory: Path) -> List[Tuple[str, Any]]:
    """Parse every *.yaml / *.yml file in a directory (sorted by name)."""
    if not directory.is_dir():
        return []

    results = []
    files = sorted(p for p in directory.iterdir() if p.suffix in (".yaml", ".yml"))
    for path in files:
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CatalogError(f"Failed to parse YAML: {e}", path.name) from e
        if data is None:
            logger.debug(f"Skipping empty manifest {path.name}")
            continue
        results.append((path.name, data))
    return results


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)


def load_workflow_manifests(directory: Path) -> List[WorkflowDescriptor]:
    workflows = []
    for source, data in _read_yaml_files(directory):
        try:
            manifest = WorkflowManifest.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Invalid workflow manifest: {_format_validation_error(e)}", source) from e
        workflows.append(manifest.to_descriptor())
    return workflows


def load_tool_manifests(directory: Path) -> List[ToolDescriptor]:
    tools = []
    for source, data in _read_yaml_files(directory):
        try:
            manifest = ToolManifestFile.model_validate(data)
        except ValidationError as e:
            raise CatalogError(f"Invalid tool manifest: {_format_validation_error(e)}", source) from e
        tools.extend(entry.to_descriptor() for entry in manifest.tools)
    return tools


def load_catalog(manifests_dir: Optional[Union[str, Path]] = None) -> Catalog:
    """
    Load and validate every manifest under manifests_dir into a Catalog.

    Raises:
        CatalogError: unparseable YAML, schema violations, or catalog invariants.
    """
    root = Path(manifests_dir) if manifests_dir is not None else MANIFESTS_DIR
    if not root.is_dir():
        raise CatalogError(f"Manifests directory not found: {root}")

    workflows = load_workflow_manifests(root / "workflows")
    tools = load_tool_manifests(root / "tools")
    catalog = Catalog(workflows, tools, source=str(root))

    logger.info(f"Loaded {len(workflows)} workflows and {len(tools)} tools from {root}")
    return catalog
