"""Shared configuration for the submission checker.

This module centralizes environment variable access and default values
to prevent drift between modules, and loads optional per-checker
overrides from a YAML file.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigValidationError

logger = logging.getLogger(__name__)

# Directory holding bundled JSON metadata (auth_rules.json, tooth_codes.json, ...)
METADATA_DIR = os.getenv("METADATA_DIR", "./data/metadata")

# Optional YAML file with per-checker overrides
CHECKER_CONFIG_PATH = os.getenv("CHECKER_CONFIG_PATH", "./config/checkers.yaml")

# Upload limits
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class SheetOverride(BaseModel):
    """Override of the sheet selection / header row for one uploaded file kind."""

    sheet_names: list[str] | None = None
    sheet_index: int | None = None
    header_row: int | None = None
    header_column: str | None = None


class CheckerOverride(BaseModel):
    """Per-checker settings that may be changed without touching code."""

    precision: int | None = Field(default=None, ge=0, le=6)
    percentage_basis: str | None = None
    sheets: dict[str, SheetOverride] = Field(default_factory=dict)
    disabled_rules: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("percentage_basis")
    @classmethod
    def validate_basis(cls, v: str | None) -> str | None:
        if v is not None and v not in ("activities", "claims"):
            raise ValueError("percentage_basis must be 'activities' or 'claims'")
        return v

    @field_validator("options")
    @classmethod
    def validate_options(cls, v: dict[str, Any]) -> dict[str, Any]:
        claim_type = v.get("claim_type")
        if claim_type is not None and str(claim_type).upper() not in ("DENTAL", "MEDICAL"):
            raise ValueError("claim_type must be 'DENTAL' or 'MEDICAL'")
        plan = v.get("plan")
        if plan is not None and str(plan).upper() not in ("THIQA", "DAMAN"):
            raise ValueError("plan must be 'THIQA' or 'DAMAN'")
        cutoff = v.get("endo_cutoff")
        if cutoff is not None:
            try:
                datetime.strptime(str(cutoff), "%Y-%m-%d")
            except ValueError:
                raise ValueError("endo_cutoff must be a YYYY-MM-DD date") from None
        return v


class CheckerConfigFile(BaseModel):
    checkers: dict[str, CheckerOverride] = Field(default_factory=dict)


def load_checker_overrides(path: str | Path | None = None) -> dict[str, CheckerOverride]:
    """Load per-checker overrides from YAML.

    A missing file is not an error: every checker then runs with its
    built-in defaults.

    Raises:
        ConfigValidationError: If the file exists but is malformed.
    """
    config_path = Path(path or CHECKER_CONFIG_PATH)
    if not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML in {config_path}: {e}") from e

    try:
        parsed = CheckerConfigFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Invalid checker configuration in {config_path}",
            errors=[dict(err) for err in e.errors()],
        ) from e

    logger.info(f"Loaded overrides for {len(parsed.checkers)} checker(s) from {config_path}")
    return parsed.checkers


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
