"""Tests for configuration loading and validation."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import (
    Config,
    DatabaseConfig,
    LoggingConfig,
    PathsConfig,
    PipelineConfig,
    config,
    load_config,
    setup_logging,
)


class TestLoadedConfig:
    """The module-level config picks up the environment."""

    def test_reads_environment(self):
        assert isinstance(config, Config)
        assert config.pipeline.table_name == "movies"
        assert config.pipeline.staging_table_name == "new_movies"
        assert config.pipeline.parse_failure_policy == "coerce"
        assert config.logging.console_output is False

    def test_directories_created(self):
        for directory in (config.paths.data_dir, config.paths.raw_data_dir,
                          config.paths.reports_dir, config.paths.logs_dir):
            assert Path(directory).is_dir()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MOVIES_TABLE", "films")
        monkeypatch.setenv("PARSE_FAILURE_POLICY", "REJECT")
        monkeypatch.setenv("BATCH_SIZE", "50")

        loaded = load_config()

        assert loaded.pipeline.table_name == "films"
        assert loaded.pipeline.parse_failure_policy == "reject"
        assert loaded.pipeline.batch_size == 50

    def test_invalid_environment_exits(self, monkeypatch):
        monkeypatch.setenv("TOP_N_GENRES", "0")

        with pytest.raises(SystemExit):
            load_config()


class TestPipelineConfig:
    """Table names and parse failure policy."""

    def test_same_table_names(self):
        with pytest.raises(ValidationError):
            PipelineConfig(table_name="movies", staging_table_name="Movies")

    @pytest.mark.parametrize("name", ["movies; DROP TABLE x", "1movies", ""])
    def test_unsafe_table_name(self, name):
        with pytest.raises(ValidationError):
            PipelineConfig(table_name=name)

    def test_unknown_policy(self):
        with pytest.raises(ValidationError):
            PipelineConfig(parse_failure_policy="drop")


class TestDatabaseConfig:

    def test_sqlite_path(self):
        db = DatabaseConfig(database_url="sqlite:///data/movies.sqlite")

        assert db.is_sqlite
        assert db.database_path == Path("data/movies.sqlite")

    def test_memory_database_has_no_path(self):
        assert DatabaseConfig(database_url="sqlite:///:memory:").database_path is None


class TestLogging:

    def test_paths_config_creates_dirs(self, tmp_path):
        PathsConfig(
            data_dir=tmp_path / "d",
            raw_data_dir=tmp_path / "d" / "raw",
            reports_dir=tmp_path / "d" / "reports",
            logs_dir=tmp_path / "d" / "logs",
        )

        assert (tmp_path / "d" / "reports").is_dir()

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging(LoggingConfig(log_file=log_file, console_output=False, log_level="debug"))

        logging.getLogger("scripts.test").debug("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello from the test" in log_file.read_text(encoding="utf-8")
        setup_logging(config.logging)

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(log_level="LOUD")


class TestModelSettings:

    @pytest.mark.parametrize("model", [DatabaseConfig, PathsConfig, PipelineConfig, LoggingConfig, Config])
    def test_unknown_keys_ignored(self, model):
        assert model.model_config["extra"] == "ignore"

    def test_extra_field_is_dropped(self):
        pipeline = PipelineConfig(table_name="films", colour="red")

        assert not hasattr(pipeline, "colour")
