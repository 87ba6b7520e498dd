"""Tests for the standalone janitor script's argument parsing."""

from scripts.run_janitor import parse_args


class TestParseArgs:
    """Command-line options for scripts/run_janitor.py."""

    def test_defaults_to_loop_with_configured_interval(self):
        args = parse_args([])
        assert args.once is False
        assert args.interval is None

    def test_once_and_interval(self):
        args = parse_args(["--once", "--interval", "30"])
        assert args.once is True
        assert args.interval == 30.0
