"""Data models for tool descriptors and downstream replies.

ToolDescriptor: one tool of the catalog (schema, GraphQL document, policies)
DownstreamEnvelope: the raw GraphQL reply before any response policy runs
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"

CATALOG_DIR = Path(__file__).parent / "catalog"


# ---------------------------------------------------------------------------
# ToolDescriptor -- loaded from catalog/*.yaml
# ---------------------------------------------------------------------------


class PolicySpec(BaseModel):
    """Selects an input or response primitive by name and parameterizes it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Registered primitive name, e.g. 'require_list'")
    options: dict[str, Any] = Field(default_factory=dict)


class ToolDescriptor(BaseModel):
    """A tool exposed to MCP callers and the GraphQL query behind it.

    The input schema is the outward-facing contract. Its declared defaults
    are the only fallback for missing arguments.

    Serializable to/from YAML; the ``{{account_id}}`` placeholder inside the
    schema is replaced with the configured account at load time.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Unique snake_case tool name")
    description: str = Field(description="Text shown to the caller in tools/list")
    input_schema: dict[str, Any] = Field(description="JSON Schema of the tool arguments")
    query: str = Field(description="GraphQL document sent downstream")
    input_policy: list[PolicySpec] = Field(default_factory=list)
    response_policy: PolicySpec | None = None

    @model_validator(mode="before")
    @classmethod
    def _complete_schema(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("input_schema"), dict):
            return data
        schema = {
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": False,
            "$schema": JSON_SCHEMA_DRAFT,
        }
        schema.update(data["input_schema"])
        return {**data, "input_schema": schema}

    @property
    def properties(self) -> dict[str, Any]:
        return self.input_schema.get("properties", {})

    def defaults(self) -> dict[str, Any]:
        """Declared default of every property that has one (deep-copied)."""
        return {
            name: copy.deepcopy(prop["default"])
            for name, prop in self.properties.items()
            if isinstance(prop, dict) and "default" in prop
        }

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        return yaml.dump(
            self.model_dump(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    @classmethod
    def from_yaml(cls, yaml_str: str, account_id: str = "") -> ToolDescriptor:
        """Deserialize from YAML string, substituting the account placeholder."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(apply_substitutions(data, {"account_id": account_id}))

    @classmethod
    def from_yaml_file(cls, path: str | Path, account_id: str = "") -> ToolDescriptor:
        """Load from a YAML file."""
        path = Path(path)
        return cls.from_yaml(path.read_text(encoding="utf-8"), account_id=account_id)


def apply_substitutions(obj: Any, values: dict[str, str]) -> Any:
    """Recursively replace {{placeholder}} values inside strings."""
    if isinstance(obj, str):
        for key, value in values.items():
            obj = obj.replace("{{" + key + "}}", value)
        return obj
    elif isinstance(obj, dict):
        return {k: apply_substitutions(v, values) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [apply_substitutions(item, values) for item in obj]
    return obj


def load_tool_descriptors(
    account_id: str, directory: str | Path | None = None
) -> list[ToolDescriptor]:
    """Load every descriptor YAML file of a catalog directory, sorted by file name.

    Args:
        account_id: Default account injected into each schema
        directory: Catalog directory (default: the packaged catalog)

    Returns:
        List of ToolDescriptor objects
    """
    from .errors import CatalogError

    directory = Path(directory) if directory is not None else CATALOG_DIR
    if not directory.is_dir():
        raise CatalogError(f"Catalog directory not found: {directory}")

    descriptors = []
    for path in sorted(directory.iterdir()):
        if path.suffix in (".yaml", ".yml") and path.is_file():
            try:
                descriptors.append(ToolDescriptor.from_yaml_file(path, account_id=account_id))
            except Exception as e:
                raise CatalogError(f"Failed to load {path.name}: {e}") from e

    return descriptors


# ---------------------------------------------------------------------------
# DownstreamEnvelope -- raw GraphQL reply
# ---------------------------------------------------------------------------


class DownstreamEnvelope(BaseModel):
    """GraphQL response body: a data mapping and an optional errors list."""

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] | None = None
    errors: list[dict[str, Any]] | None = None

    def is_usable(self) -> bool:
        """False when data is absent, empty, or every top-level value is null."""
        if not self.data:
            return False
        return any(value is not None for value in self.data.values())

    def error_messages(self) -> list[str]:
        return [str(error.get("message", "")) for error in self.errors or []]

    def to_dict(self) -> dict[str, Any]:
        """The reply as received, for tools that pass it through unchanged."""
        result: dict[str, Any] = {"data": self.data}
        if self.errors is not None:
            result["errors"] = self.errors
        result.update(self.model_extra or {})
        return result
