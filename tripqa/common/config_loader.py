"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tripqa.common.errors import ConfigError
from tripqa.common.fs import read_yaml
from tripqa.common.schema import validate_pipeline_config, validate_quality_rules_config


@dataclass(frozen=True)
class ConfigBundle:
    pipeline: dict
    quality_rules: dict


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def overlay_for(name: str) -> Path | None:
        return (overlay_config_dir / name) if overlay_config_dir is not None else None

    pipeline = validate_pipeline_config(
        _load_yaml_with_overlay(config_dir / "pipeline.yml", overlay_for("pipeline.yml")),
        allow_unknown=allow_unknown,
    )
    quality_rules = validate_quality_rules_config(
        _load_yaml_with_overlay(config_dir / "quality_rules.yml", overlay_for("quality_rules.yml")),
        allow_unknown=allow_unknown,
    )
    return ConfigBundle(pipeline=pipeline, quality_rules=quality_rules)


def apply_cli_overrides(bundle: ConfigBundle, *, chunk_size: int | None = None) -> ConfigBundle:
    if chunk_size is None:
        return bundle
    pipeline = _deep_merge(bundle.pipeline, {"ingest": {"chunk_size": chunk_size}})
    return ConfigBundle(
        pipeline=validate_pipeline_config(pipeline, allow_unknown=True),
        quality_rules=bundle.quality_rules,
    )
