"""
schemas/__init__.py

JSON Schema for the stored workspace layout and record-level validation
helpers used when reconstructing a workspace.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
WORKSPACE_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "workspace_schema.json")

# Cached schema and per-definition validators
_workspace_schema: Optional[Dict] = None
_validators: Dict[str, Draft202012Validator] = {}


def get_workspace_schema() -> Dict:
    """Load and return the workspace layout schema."""
    global _workspace_schema
    if _workspace_schema is None:
        with open(WORKSPACE_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _workspace_schema = json.load(f)
    return _workspace_schema


def _validator_for(definition: str) -> Draft202012Validator:
    """Validator for one ``$defs`` entry, with the other definitions resolvable."""
    validator = _validators.get(definition)
    if validator is None:
        schema = get_workspace_schema()
        sub_schema = {
            "$schema": schema.get("$schema"),
            "$defs": schema.get("$defs", {}),
            "$ref": f"#/$defs/{definition}",
        }
        validator = Draft202012Validator(sub_schema)
        _validators[definition] = validator
    return validator


def _format_errors(validator: Draft202012Validator, data: Any) -> List[str]:
    messages = []
    for error in validator.iter_errors(data):
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        messages.append(f"{path}: {error.message}")
    return messages


def validate_layout(data: Any) -> Tuple[bool, List[str]]:
    """
    Validate a whole layout document.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = _format_errors(Draft202012Validator(get_workspace_schema()), data)
    return not errors, errors


def validate_block(record: Any) -> Tuple[bool, List[str]]:
    """Validate a single block record."""
    errors = _format_errors(_validator_for("block"), record)
    return not errors, errors


def validate_edge(record: Any) -> Tuple[bool, List[str]]:
    """Validate a single connection record."""
    errors = _format_errors(_validator_for("edge"), record)
    return not errors, errors
