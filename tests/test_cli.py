"""Tests for configuration and the command line."""

import pytest
from click.testing import CliRunner

from ethmetrics.cli import cli
from ethmetrics.config import Config, ConfigError


class TestConfig:
    def test_defaults(self):
        config = Config(pools=["pool.txt"])

        config.validate()

        assert config.api_port == 8080
        assert config.metrics_port == 9090
        assert config.debug_mode is False

    def test_debug_mode(self):
        assert Config(pools=["pool.txt"], epoch_debug=10).debug_mode

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"pools": []}, "At least one pool"),
            ({"beacon_api_url": ""}, "beacon API URL"),
            ({"network": "holesky"}, "Network not supported"),
            ({"backfill_epochs": -1}, "backfill_epochs"),
            ({"epoch_debug": 0}, "epoch_debug"),
            ({"state_timeout": 0}, "state_timeout"),
            ({"poll_interval": -1.0}, "poll_interval"),
            ({"query_timeout": 0}, "query_timeout"),
        ],
    )
    def test_invalid(self, overrides, message):
        fields = {"pools": ["pool.txt"]}
        fields.update(overrides)

        with pytest.raises(ConfigError, match=message):
            Config(**fields).validate()


class TestCli:
    def test_help(self):
        result = CliRunner().invoke(cli, ["run", "--help"])

        assert result.exit_code == 0
        assert "--backfill-epochs" in result.output
        assert "--epoch-debug" in result.output
        assert "--query-timeout" in result.output

    def test_pool_required(self):
        result = CliRunner().invoke(cli, ["run"])

        assert result.exit_code != 0
        assert "--pool" in result.output

    def test_negative_backfill_rejected(self, tmp_path):
        result = CliRunner().invoke(
            cli, ["run", "--pool", str(tmp_path / "p.txt"), "--backfill-epochs", "-1"]
        )

        assert result.exit_code == 2

    def test_missing_pool_file_is_fatal(self, tmp_path):
        result = CliRunner().invoke(
            cli,
            [
                "run",
                "--pool", str(tmp_path / "missing.txt"),
                "--database-path", str(tmp_path / "db.sqlite"),
            ],
        )

        assert result.exit_code == 1
