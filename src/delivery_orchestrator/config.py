"""Configuration system using platformdirs for cross-platform paths."""

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs

APP_NAME = "delivery-orchestrator"
APP_AUTHOR = "delivery-orchestrator"
ENV_PREFIX = "DELIVERY_ORCHESTRATOR_"

FAILED_DEPENDENCY_POLICIES = ("resolve", "block")


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	log_level: str = "INFO"

	# Oracle (language model) settings
	oracle_command: str = "claude"
	oracle_timeout: float = 300.0
	default_mode: str = "standard"
	mode_models: dict[str, str] = field(default_factory=lambda: {
		"standard": "sonnet",
		"guardian": "opus",
		"fast": "haiku",
	})

	# Retry wrapper for every oracle call
	retry_attempts: int = 3
	retry_delay_ms: int = 1000

	# Scheduling
	failed_dependency_policy: str = "resolve"  # resolve | block

	# Worker pools
	default_concurrency: int = 2
	worker_concurrency: dict[str, int] = field(default_factory=dict)

	# Discovery
	adaptive_followups: bool = True

	def __post_init__(self) -> None:
		self.db_path = self.data_dir / "orchestrator.db"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def concurrency_for(self, role: str) -> int:
		"""Pool size for an agent role, falling back to the default."""
		return max(1, int(self.worker_concurrency.get(role, self.default_concurrency)))


def _apply_env_overrides(config: Config) -> Config:
	"""Apply DELIVERY_ORCHESTRATOR_* environment variable overrides."""
	path_map = {
		f"{ENV_PREFIX}CONFIG_DIR": "config_dir",
		f"{ENV_PREFIX}DATA_DIR": "data_dir",
	}
	for env_key, attr in path_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	scalar_map = {
		f"{ENV_PREFIX}LOG_LEVEL": ("log_level", str),
		f"{ENV_PREFIX}ORACLE_COMMAND": ("oracle_command", str),
		f"{ENV_PREFIX}ORACLE_TIMEOUT": ("oracle_timeout", float),
		f"{ENV_PREFIX}RETRY_ATTEMPTS": ("retry_attempts", int),
		f"{ENV_PREFIX}RETRY_DELAY_MS": ("retry_delay_ms", int),
		f"{ENV_PREFIX}FAILED_DEPENDENCY_POLICY": ("failed_dependency_policy", str),
		f"{ENV_PREFIX}DEFAULT_CONCURRENCY": ("default_concurrency", int),
	}
	for env_key, (attr, cast) in scalar_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, cast(val))

	# JSON object, e.g. {"QA": 4, "FullStack": 3}
	concurrency = os.getenv(f"{ENV_PREFIX}WORKER_CONCURRENCY")
	if concurrency:
		config.worker_concurrency.update(json.loads(concurrency))

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	path_fields = {"config_dir", "data_dir"}
	for key, val in data.items():
		if hasattr(config, key):
			if key in path_fields:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def _validate(config: Config) -> Config:
	if config.failed_dependency_policy not in FAILED_DEPENDENCY_POLICIES:
		raise ValueError(
			f"failed_dependency_policy must be one of {FAILED_DEPENDENCY_POLICIES}, "
			f"got {config.failed_dependency_policy!r}"
		)
	if config.retry_attempts < 1:
		raise ValueError("retry_attempts must be at least 1")
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config = _validate(config)
	config.ensure_dirs()
	return config
