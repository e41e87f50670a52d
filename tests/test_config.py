"""Tests for the configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from delivery_orchestrator.config import Config, _apply_env_overrides, _apply_toml, _validate, load_config


def test_config_defaults():
	"""Config should have sensible defaults."""
	config = Config()
	assert config.config_dir.is_absolute()
	assert config.data_dir.is_absolute()
	assert config.db_path == config.data_dir / "orchestrator.db"
	assert config.log_dir == config.data_dir / "logs"
	assert config.retry_attempts == 3
	assert config.retry_delay_ms == 1000
	assert config.failed_dependency_policy == "resolve"
	assert config.mode_models["standard"]


def test_config_env_overrides():
	"""Environment variables should override defaults."""
	config = Config()
	with patch.dict(os.environ, {
		"DELIVERY_ORCHESTRATOR_DATA_DIR": "/tmp/test-data",
		"DELIVERY_ORCHESTRATOR_RETRY_ATTEMPTS": "5",
		"DELIVERY_ORCHESTRATOR_FAILED_DEPENDENCY_POLICY": "block",
		"DELIVERY_ORCHESTRATOR_WORKER_CONCURRENCY": '{"QA": 4}',
	}):
		config = _apply_env_overrides(config)
		assert config.data_dir == Path("/tmp/test-data")
		# Derived paths should be recomputed
		assert config.db_path == Path("/tmp/test-data/orchestrator.db")
		assert config.retry_attempts == 5
		assert config.failed_dependency_policy == "block"
		assert config.concurrency_for("QA") == 4


def test_config_toml_overrides(tmp_path: Path):
	"""config.toml values should be applied."""
	config = Config(config_dir=tmp_path, data_dir=tmp_path / "data")
	(tmp_path / "config.toml").write_text(
		'retry_delay_ms = 250\n'
		'default_concurrency = 3\n'
		'adaptive_followups = false\n'
	)
	config = _apply_toml(config)
	assert config.retry_delay_ms == 250
	assert config.default_concurrency == 3
	assert config.adaptive_followups is False


def test_concurrency_for_falls_back_to_default():
	"""Roles without an entry use the default pool size."""
	config = Config(default_concurrency=3, worker_concurrency={"QA": 1})
	assert config.concurrency_for("QA") == 1
	assert config.concurrency_for("FullStack") == 3


def test_validate_rejects_unknown_policy():
	"""Only resolve and block are valid dependency policies."""
	config = Config(failed_dependency_policy="ignore")
	with pytest.raises(ValueError):
		_validate(config)


def test_validate_rejects_zero_attempts():
	"""At least one oracle attempt is required."""
	with pytest.raises(ValueError):
		_validate(Config(retry_attempts=0))


def test_load_config_creates_dirs(tmp_path: Path):
	"""load_config should create directories."""
	with patch.dict(os.environ, {
		"DELIVERY_ORCHESTRATOR_DATA_DIR": str(tmp_path / "data"),
		"DELIVERY_ORCHESTRATOR_CONFIG_DIR": str(tmp_path / "config"),
	}):
		config = load_config()
		assert config.data_dir.exists()
		assert config.config_dir.exists()
		assert config.log_dir.exists()
