"""Generate JSON Schema and docs for the verity.yaml format."""

from __future__ import annotations

import json
from pathlib import Path

from verity.config import RunConfig


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def generate_json_schema() -> dict:
    return RunConfig.model_json_schema()


def write_json_schema(path: Path) -> None:
    _ensure_parent(path)
    schema = generate_json_schema()
    path.write_text(json.dumps(schema, indent=2) + "\n")


def _describe(name: str, prop: dict, required: set[str]) -> str:
    kind = prop.get("type", "any")
    if kind == "array":
        kind = f"array of {prop.get('items', {}).get('type', 'any')}"
    parts = [f"- `{name}`: {kind}", "(required)" if name in required else "(optional)"]
    if "default" in prop:
        parts.append(f"- default `{json.dumps(prop['default'])}`")
    bounds = [
        f"{label} {prop[key]}"
        for key, label in (("minimum", ">="), ("maximum", "<="))
        if key in prop
    ]
    if bounds:
        parts.append(f"[{', '.join(bounds)}]")
    return " ".join(parts)


def generate_schema_doc() -> str:
    schema = generate_json_schema()
    required = set(schema.get("required", []))

    lines: list[str] = []
    lines.append("# verity YAML Schema")
    lines.append("")
    lines.append("This doc is generated from the Pydantic models.")
    lines.append("")
    lines.append("## Top-level keys")
    for name, prop in schema.get("properties", {}).items():
        lines.append(_describe(name, prop, required))
    lines.append("")
    lines.append("Suite references look like `package.module:attribute`.")
    lines.append("`paths` and `output_dir` may use `${VAR}` / `${VAR:-default}`.")
    lines.append("")
    return "\n".join(lines)


def write_schema_doc(path: Path) -> None:
    _ensure_parent(path)
    path.write_text(generate_schema_doc())
