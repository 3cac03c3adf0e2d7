"""Configuration management for sortbox."""

from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import asdict, dataclass, field
from pathlib import Path

from .errors import ConfigError, ErrorCode, validate_confidence
from .models import ClassificationResult, Rule

logger = logging.getLogger("sortbox.config")


def get_config_dir() -> Path:
    """Get the sortbox config directory ($SORTBOX_HOME or ~/.sortbox)."""
    env_dir = os.environ.get("SORTBOX_HOME")
    config_dir = Path(env_dir).expanduser() if env_dir else Path.home() / ".sortbox"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the path to config.json."""
    return get_config_dir() / "config.json"


def get_db_path() -> Path:
    """Get the path to the SQLite database."""
    return get_config_dir() / "sortbox.db"


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    json_format: bool = False
    log_to_file: bool = False


@dataclass
class Config:
    """Main configuration for sortbox."""

    rules_file: str | None = None  # JSON list of custom rules replacing the defaults
    buckets: list[str] = field(default_factory=list)  # Default candidate folders
    auto_move_confidence: float = 0.80
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def save(self) -> None:
        """Save configuration to disk with owner-only permissions."""
        config_path = get_config_path()
        with open(config_path, "w") as f:
            json.dump(self._to_dict(), f, indent=2)
        config_path.chmod(stat.S_IRUSR | stat.S_IWUSR)

    def _to_dict(self) -> dict:
        """Convert config to dictionary for JSON serialization."""
        return {
            "rules_file": self.rules_file,
            "buckets": list(self.buckets),
            "auto_move_confidence": self.auto_move_confidence,
            "logging": asdict(self.logging),
        }

    @classmethod
    def load(cls) -> Config:
        """Load configuration from disk."""
        config_path = get_config_path()
        if not config_path.exists():
            return cls()

        try:
            with open(config_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                code=ErrorCode.CONFIG_INVALID,
                message="Config file is not valid JSON",
                details={"path": str(config_path)},
                cause=e,
            ) from e

        config = cls()
        config.rules_file = data.get("rules_file")
        config.buckets = [str(b) for b in data.get("buckets", [])]

        try:
            config.auto_move_confidence = validate_confidence(
                float(data.get("auto_move_confidence", 0.80)), "auto_move_confidence"
            )
        except (TypeError, ValueError):
            logger.warning(
                "Invalid auto_move_confidence %r, using default",
                data.get("auto_move_confidence"),
            )

        if "logging" in data:
            try:
                config.logging = LoggingConfig(**data["logging"])
            except TypeError as e:
                logger.warning("Invalid logging config, using defaults: %s", e)

        return config

    def load_custom_rules(self) -> list[Rule] | None:
        """
        Load the custom rule set named by rules_file.

        Returns None when no rules file is configured, so the defaults apply.

        Raises:
            ConfigError: If the file is missing or malformed.
        """
        if not self.rules_file:
            return None

        path = Path(self.rules_file).expanduser()
        if not path.exists():
            raise ConfigError(
                code=ErrorCode.CONFIG_MISSING,
                message="Rules file not found",
                details={"path": str(path)},
            )

        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                code=ErrorCode.CONFIG_INVALID,
                message="Rules file is not valid JSON",
                details={"path": str(path)},
                cause=e,
            ) from e

        if isinstance(data, dict):
            data = data.get("rules", [])
        if not isinstance(data, list):
            raise ConfigError(
                code=ErrorCode.CONFIG_INVALID,
                message="Rules file must contain a list of rules",
                details={"path": str(path)},
            )

        rules = []
        for index, entry in enumerate(data):
            try:
                rules.append(Rule.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(
                    code=ErrorCode.CONFIG_INVALID,
                    message="Invalid rule in rules file",
                    details={"path": str(path), "index": index},
                    cause=e,
                ) from e
        return rules

    def should_auto_move(self, result: ClassificationResult) -> bool:
        """Check if a caller should move the item without asking."""
        if result.is_fallback:
            return False
        return result.confidence >= self.auto_move_confidence
