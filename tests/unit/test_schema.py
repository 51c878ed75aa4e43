import copy

import pytest

from tripqa.common.errors import ConfigError
from tripqa.common.schema import validate_pipeline_config, validate_quality_rules_config


BASE_PIPELINE = {
    "sources": {"zone_lookup": "a.csv", "zone_geometry": "b.dbf", "trip_globs": ["*.csv"]},
    "ingest": {"chunk_size": 100, "flush_max_attempts": 3},
    "zones": {"geometry_epsg": 2263},
    "ranking": {"default_k": 5, "max_k": 10},
}

BASE_RULES = {
    "thresholds": {
        "max_speed_mph": 80,
        "min_speed_mph": 1,
        "speed_min_distance_miles": 0.5,
        "max_fare_per_mile": 50,
        "min_fare_per_mile": 1,
        "max_tip_fraction": 0.5,
        "conflict_max_duration_min": 1,
        "conflict_min_distance_miles": 2,
    },
    "time_buckets": {"morning_rush": [7, 9], "evening_rush": [16, 18]},
}


def test_validate_pipeline_config_accepts_valid_shape():
    validated = validate_pipeline_config(copy.deepcopy(BASE_PIPELINE))
    assert validated["ingest"]["chunk_size"] == 100


def test_validate_pipeline_config_rejects_unknown_key_by_default():
    bad = copy.deepcopy(BASE_PIPELINE)
    bad["unexpected"] = True
    with pytest.raises(ConfigError):
        validate_pipeline_config(bad)


def test_validate_pipeline_config_allows_unknown_when_enabled():
    okay = copy.deepcopy(BASE_PIPELINE)
    okay["extra"] = 1
    validate_pipeline_config(okay, allow_unknown=True)


@pytest.mark.parametrize("chunk_size", [0, -5, "100", 1.5, True])
def test_chunk_size_must_be_positive_integer(chunk_size):
    bad = copy.deepcopy(BASE_PIPELINE)
    bad["ingest"]["chunk_size"] = chunk_size
    with pytest.raises(ConfigError, match="chunk_size"):
        validate_pipeline_config(bad)


def test_default_k_cannot_exceed_max_k():
    bad = copy.deepcopy(BASE_PIPELINE)
    bad["ranking"]["default_k"] = 11
    with pytest.raises(ConfigError):
        validate_pipeline_config(bad)


def test_trip_globs_must_be_non_empty():
    bad = copy.deepcopy(BASE_PIPELINE)
    bad["sources"]["trip_globs"] = []
    with pytest.raises(ConfigError):
        validate_pipeline_config(bad)


def test_validate_quality_rules_accepts_valid_shape():
    assert validate_quality_rules_config(copy.deepcopy(BASE_RULES))["thresholds"]["max_speed_mph"] == 80


def test_quality_rules_missing_threshold():
    bad = copy.deepcopy(BASE_RULES)
    del bad["thresholds"]["max_tip_fraction"]
    with pytest.raises(ConfigError, match="max_tip_fraction"):
        validate_quality_rules_config(bad)


def test_quality_rules_reject_inverted_speed_range():
    bad = copy.deepcopy(BASE_RULES)
    bad["thresholds"]["min_speed_mph"] = 90
    with pytest.raises(ConfigError):
        validate_quality_rules_config(bad)


@pytest.mark.parametrize("hours", [[9, 7], [7], [7, 24], "7-9"])
def test_time_bucket_hours_are_checked(hours):
    bad = copy.deepcopy(BASE_RULES)
    bad["time_buckets"]["morning_rush"] = hours
    with pytest.raises(ConfigError):
        validate_quality_rules_config(bad)
