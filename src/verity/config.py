from __future__ import annotations

from pathlib import Path

import yaml
from expandvars import expandvars
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RunConfig(BaseModel):
    """Contents of a ``verity.yaml`` file."""

    model_config = ConfigDict(extra="forbid")

    suites: list[str]
    paths: list[str] = ["."]
    output_dir: str = "runs"
    parallel: int = Field(default=1, ge=1, le=100)
    repeat: int = Field(default=1, ge=1, le=100)

    @field_validator("suites")
    @classmethod
    def suites_must_be_references(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("suites must not be empty")
        bad = [ref for ref in v if ref.count(":") != 1 or ref.startswith(":") or ref.endswith(":")]
        if bad:
            raise ValueError(
                f"suite references must look like 'module:attribute', got: {', '.join(bad)}"
            )
        return v

    @model_validator(mode="after")
    def expand_environment(self) -> "RunConfig":
        """Expand ``${VAR}`` references in paths.

        Raises ValueError listing every unset variable without a default so
        they can all be fixed at once.
        """
        missing: list[str] = []

        def _expand(value: str) -> str:
            try:
                return expandvars(value, nounset=True)
            except Exception:
                # Variable is missing and has no default
                missing.append(f"  {value}")
                return value

        self.output_dir = _expand(self.output_dir)
        self.paths = [_expand(p) for p in self.paths]

        if missing:
            details = "\n".join(missing)
            raise ValueError(f"config has missing environment variables:\n{details}")
        return self


def load_config(path: Path) -> RunConfig:
    """Load and validate a run config from a YAML file."""
    config_dir = path.parent.resolve()

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")

    config = RunConfig(**raw)

    # Resolve relative paths relative to config file location
    config.paths = [
        str(p if p.is_absolute() else (config_dir / p).resolve())
        for p in (Path(raw_path) for raw_path in config.paths)
    ]
    output_dir = Path(config.output_dir)
    if not output_dir.is_absolute():
        config.output_dir = str((config_dir / output_dir).resolve())

    return config
