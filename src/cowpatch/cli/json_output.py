"""JSON output utilities for CLI commands with machine-parseable output."""

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from cowpatch.cli.output import machine_output


class AppliedPatchJson(BaseModel):
    """One applied patch as reported by `cowpatch list --json`."""

    model_config = ConfigDict(strict=True)

    name: str
    version: str | None
    commit: str
    original_commit: str
    mod_base: str
    current_base: str
    base_changed: bool
    latest_version: str | None


class PatchListingJson(BaseModel):
    model_config = ConfigDict(strict=True)

    branch: str
    base_branch: str
    base_remote: str | None
    base_tip: str | None
    commits_behind_base: int
    patches: list[AppliedPatchJson]


def _serialize_for_json(obj: Any) -> Any:
    """Recursively serialize special types for JSON.

    Handles Path, Enum and dataclass instances that appear in plain dict
    structures (not Pydantic models).
    """
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return _serialize_for_json(asdict(obj))
    if isinstance(obj, dict):
        return {key: _serialize_for_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(item) for item in obj]
    return obj


def emit_json(data: dict[str, Any] | list[Any]) -> None:
    """Output JSON data to stdout for machine consumption.

    For Pydantic models, call model.model_dump(mode="json") before passing
    the result here.
    """
    machine_output(json.dumps(_serialize_for_json(data), indent=2))
