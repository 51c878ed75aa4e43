import pytest

from tripqa.cli import parse_args, run_command
from tripqa.common.constants import EXIT_HARD_FAIL


def test_parse_args_defaults():
    args = parse_args(["ingest"])
    assert args.command == "ingest"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.chunk_size is None
    assert args.metric == "revenue_per_minute"
    assert args.k is None


def test_parse_args_accepts_overlay_config_dir():
    args = parse_args(["all", "--overlay-config-dir", "config/live"])
    assert args.overlay_config_dir == "config/live"


def test_parse_args_accepts_ranking_options():
    args = parse_args(["top-zones", "--metric", "tip_percentage", "--k", "3"])
    assert args.metric == "tip_percentage"
    assert args.k == 3


@pytest.mark.parametrize("argv", [["ingest", "--chunk-size", "0"], ["top-zones", "--metric", "vibes"], ["export"]])
def test_parse_args_rejects_bad_values(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)


def test_missing_config_dir_is_hard_failure(tmp_path):
    args = parse_args(
        [
            "ingest",
            "--config-dir",
            str(tmp_path / "nope"),
            "--data-dir",
            str(tmp_path / "data"),
            "--run-id",
            "run-config-fail",
        ]
    )
    assert run_command(args) == EXIT_HARD_FAIL
