from pathlib import Path

import pytest

from tripqa.common.config_loader import apply_cli_overrides, load_all_configs
from tripqa.common.errors import ConfigError
from tripqa.pipeline.anomalies import QualityRules


def test_load_all_configs_from_repo_config_dir(config_dir: Path):
    bundle = load_all_configs(config_dir)
    assert bundle.pipeline["ingest"]["chunk_size"] == 1000
    assert bundle.pipeline["zones"]["geometry_epsg"] == 2263
    assert bundle.quality_rules["thresholds"]["max_speed_mph"] == 80

    rules = QualityRules.from_config(bundle.quality_rules)
    assert rules.thresholds.max_tip_fraction == 0.5
    assert rules.time_buckets.morning_rush == (7, 9)


def _copy_repo_config(config_dir: Path, target: Path) -> Path:
    target.mkdir()
    for name in ("pipeline.yml", "quality_rules.yml"):
        (target / name).write_text((config_dir / name).read_text(encoding="utf-8"), encoding="utf-8")
    return target


def test_load_all_configs_applies_overlay_values(tmp_path: Path, config_dir: Path):
    base = _copy_repo_config(config_dir, tmp_path / "base")
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "quality_rules.yml").write_text(
        """thresholds:
  max_speed_mph: 65
time_buckets:
  evening_rush: [15, 19]
""",
        encoding="utf-8",
    )

    bundle = load_all_configs(base, overlay_config_dir=overlay)

    assert bundle.quality_rules["thresholds"]["max_speed_mph"] == 65
    assert bundle.quality_rules["thresholds"]["min_speed_mph"] == 1
    assert bundle.quality_rules["time_buckets"]["evening_rush"] == [15, 19]
    assert bundle.quality_rules["time_buckets"]["morning_rush"] == [7, 9]
    assert bundle.pipeline["ingest"]["chunk_size"] == 1000


def test_load_all_configs_ignores_empty_overlay_file(tmp_path: Path, config_dir: Path):
    base = _copy_repo_config(config_dir, tmp_path / "base")
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "pipeline.yml").write_text("", encoding="utf-8")

    bundle = load_all_configs(base, overlay_config_dir=overlay)
    assert bundle.pipeline["ranking"]["max_k"] == 100


def test_load_all_configs_rejects_non_mapping_overlay(tmp_path: Path, config_dir: Path):
    base = _copy_repo_config(config_dir, tmp_path / "base")
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "pipeline.yml").write_text("- not\n- a\n- mapping\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_all_configs(base, overlay_config_dir=overlay)


def test_missing_config_file_is_a_config_error(tmp_path: Path, config_dir: Path):
    base = _copy_repo_config(config_dir, tmp_path / "base")
    (base / "quality_rules.yml").unlink()

    with pytest.raises(ConfigError, match="quality_rules.yml"):
        load_all_configs(base)


def test_cli_chunk_size_override(config_dir: Path):
    bundle = load_all_configs(config_dir)

    assert apply_cli_overrides(bundle) is bundle
    overridden = apply_cli_overrides(bundle, chunk_size=25)
    assert overridden.pipeline["ingest"]["chunk_size"] == 25
    assert bundle.pipeline["ingest"]["chunk_size"] == 1000

    with pytest.raises(ConfigError):
        apply_cli_overrides(bundle, chunk_size=0)


def test_extra_threshold_keys_are_ignored_when_unknown_keys_allowed(tmp_path: Path, config_dir: Path):
    base = _copy_repo_config(config_dir, tmp_path / "base")
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "quality_rules.yml").write_text(
        """thresholds:
  max_speed_mph: 70
  max_idle_minutes: 30
""",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError):
        load_all_configs(base, overlay_config_dir=overlay)

    bundle = load_all_configs(base, allow_unknown=True, overlay_config_dir=overlay)
    rules = QualityRules.from_config(bundle.quality_rules)

    assert bundle.quality_rules["thresholds"]["max_idle_minutes"] == 30
    assert rules.thresholds.max_speed_mph == 70.0
    assert not hasattr(rules.thresholds, "max_idle_minutes")
