"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from tripqa.common.errors import ConfigError

THRESHOLD_KEYS = {
    "max_speed_mph",
    "min_speed_mph",
    "speed_min_distance_miles",
    "max_fare_per_mile",
    "min_fare_per_mile",
    "max_tip_fraction",
    "conflict_max_duration_min",
    "conflict_min_distance_miles",
}
TIME_BUCKET_KEYS = {"morning_rush", "evening_rush"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_int(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be a positive integer, got {value!r}")


def _assert_number(value, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx} must be a number, got {value!r}")


def _assert_hour_range(value, ctx: str) -> None:
    if (
        not isinstance(value, list)
        or len(value) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 23 for v in value)
        or value[0] > value[1]
    ):
        raise ConfigError(f"{ctx} must be [start_hour, end_hour] within 0-23")


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"sources", "ingest", "zones", "ranking"}
    _assert_required_keys(cfg, top_required, "pipeline config")
    _assert_no_unknown_keys(cfg, top_required, "pipeline config", allow_unknown)

    _assert_required_keys(cfg["sources"], {"zone_lookup", "zone_geometry", "trip_globs"}, "sources")
    if not isinstance(cfg["sources"]["trip_globs"], list) or not cfg["sources"]["trip_globs"]:
        raise ConfigError("sources.trip_globs must be a non-empty list")

    _assert_required_keys(cfg["ingest"], {"chunk_size", "flush_max_attempts"}, "ingest")
    _assert_no_unknown_keys(cfg["ingest"], {"chunk_size", "flush_max_attempts"}, "ingest", allow_unknown)
    _assert_positive_int(cfg["ingest"]["chunk_size"], "ingest.chunk_size")
    _assert_positive_int(cfg["ingest"]["flush_max_attempts"], "ingest.flush_max_attempts")

    _assert_required_keys(cfg["zones"], {"geometry_epsg"}, "zones")
    _assert_positive_int(cfg["zones"]["geometry_epsg"], "zones.geometry_epsg")

    _assert_required_keys(cfg["ranking"], {"default_k", "max_k"}, "ranking")
    _assert_positive_int(cfg["ranking"]["default_k"], "ranking.default_k")
    _assert_positive_int(cfg["ranking"]["max_k"], "ranking.max_k")
    if cfg["ranking"]["default_k"] > cfg["ranking"]["max_k"]:
        raise ConfigError("ranking.default_k must not exceed ranking.max_k")

    return cfg


def validate_quality_rules_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"thresholds", "time_buckets"}, "quality_rules")
    _assert_no_unknown_keys(cfg, {"thresholds", "time_buckets"}, "quality_rules", allow_unknown)

    thresholds = cfg["thresholds"]
    _assert_required_keys(thresholds, THRESHOLD_KEYS, "quality_rules.thresholds")
    _assert_no_unknown_keys(thresholds, THRESHOLD_KEYS, "quality_rules.thresholds", allow_unknown)
    for key in sorted(THRESHOLD_KEYS):
        _assert_number(thresholds[key], f"quality_rules.thresholds.{key}")

    if thresholds["min_speed_mph"] > thresholds["max_speed_mph"]:
        raise ConfigError("min_speed_mph must not exceed max_speed_mph")
    if thresholds["min_fare_per_mile"] > thresholds["max_fare_per_mile"]:
        raise ConfigError("min_fare_per_mile must not exceed max_fare_per_mile")

    buckets = cfg["time_buckets"]
    _assert_required_keys(buckets, TIME_BUCKET_KEYS, "quality_rules.time_buckets")
    for key in sorted(TIME_BUCKET_KEYS):
        _assert_hour_range(buckets[key], f"quality_rules.time_buckets.{key}")

    return cfg
