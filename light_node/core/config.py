#!/usr/bin/env python3
"""
Configuration Management Module

Responsibilities:
- Load environment variables exactly ONCE (optional .env file)
- Apply CLI overrides on top of the environment
- Validate required values (genesis, boot node, engine command)
- Provide structured config access

Create ONCE in main.py and pass to the supervisor.
"""
import logging
import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_ENV_PATH = Path(__file__).resolve().parents[2] / "config_env" / "light_node.env"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class Config:
    """
    Central configuration object.

    Precedence: explicit overrides (CLI) > process environment > .env file > defaults.
    Overrides set to None are ignored so argparse defaults can be passed through.
    """

    def __init__(self, env_path: Optional[Path] = None, **overrides: Any):
        self.env_path: Optional[Path] = env_path
        self._overrides: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
        self._load_env()
        self._load_values()
        self._validate()

    # ------------------------------------------------------------------
    # ENV LOADING
    # ------------------------------------------------------------------

    def _load_env(self) -> None:
        """Load environment file (explicit path must exist, default is optional)."""
        if self.env_path is None:
            if DEFAULT_ENV_PATH.exists():
                self.env_path = DEFAULT_ENV_PATH
            else:
                logger.debug("No .env file, using process environment only")
                return

        if not self.env_path.exists():
            raise FileNotFoundError(f".env file not found: {self.env_path}")

        if os.name != 'nt':
            mode = self.env_path.stat().st_mode
            if mode & 0o004:
                logger.warning(
                    "⚠️ SECURITY: Environment file is world-readable. "
                    "Run: chmod 600 %s", self.env_path
                )

        load_dotenv(self.env_path)
        logger.info("Environment configuration loaded successfully")

    # ------------------------------------------------------------------
    # VALUE LOADING
    # ------------------------------------------------------------------

    def _raw(self, key: str, default: str = "") -> str:
        if key in self._overrides:
            return str(self._overrides[key])
        return self._strip_comment(os.getenv(key, default))

    def _load_values(self) -> None:
        """Load configuration values from overrides and environment."""

        # === Chain ===
        self.genesis_path: Optional[str] = self._raw("GENESIS_PATH") or None
        self.boot_node: Optional[str] = self._raw("BOOT_NODE") or None

        # === Session engine ===
        self.session_command: Optional[str] = self._raw("SESSION_COMMAND") or None
        self.session_startup_grace: float = self._parse_float(
            self._raw("SESSION_STARTUP_GRACE", "0.5"), "SESSION_STARTUP_GRACE", 0, 30
        )

        # === Supervisor timing ===
        self.poll_interval: float = self._parse_float(
            self._raw("POLL_INTERVAL", "1"), "POLL_INTERVAL", 0, 3600
        )
        self.reconnect_delay: float = self._parse_float(
            self._raw("RECONNECT_DELAY", "5"), "RECONNECT_DELAY", 0, 3600
        )

        # === Logging ===
        self.log_dir: str = self._raw("LOG_DIR", "logs") or "logs"
        self.log_level: str = (self._raw("LOG_LEVEL", "INFO") or "INFO").upper()

        # === Metrics ===
        self.metrics_port: int = self._parse_port(self._raw("METRICS_PORT", "0"))

    # ------------------------------------------------------------------
    # PARSING HELPERS
    # ------------------------------------------------------------------

    def _strip_comment(self, value: str) -> str:
        """Strip comments from config values (everything after #)."""
        if '#' in value:
            return value.split('#')[0].strip()
        return value.strip()

    def _parse_port(self, value: str) -> int:
        """Parse port; 0 means disabled."""
        try:
            port = int(self._strip_comment(value))
            if port != 0 and not (1024 <= port <= 65535):
                raise ValueError(f"Port must be 0 or between 1024-65535, got: {port}")
            return port
        except ValueError as e:
            raise ConfigValidationError(f"Invalid METRICS_PORT value '{value}': {e}")

    def _parse_float(
        self,
        value: str,
        name: str,
        min_val: Optional[float] = None,
        max_val: Optional[float] = None
    ) -> float:
        """Parse and validate float with optional bounds, stripping comments."""
        try:
            num = float(self._strip_comment(value))
            if min_val is not None and num < min_val:
                raise ValueError(f"{name} must be >= {min_val}, got: {num}")
            if max_val is not None and num > max_val:
                raise ValueError(f"{name} must be <= {max_val}, got: {num}")
            return num
        except ValueError as e:
            raise ConfigValidationError(f"Invalid {name} value '{value}': {e}")

    # ------------------------------------------------------------------
    # VALIDATION
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        required = {
            "GENESIS_PATH": self.genesis_path,
            "BOOT_NODE": self.boot_node,
            "SESSION_COMMAND": self.session_command,
        }
        missing = [k for k, v in required.items() if not v]
        if missing:
            raise ConfigValidationError(f"Missing required config values: {missing}")

        if not Path(self.genesis_path).is_file():
            raise ConfigValidationError(f"GENESIS_PATH is not a readable file: {self.genesis_path}")

        if not self.boot_node.startswith("/"):
            raise ConfigValidationError(
                f"BOOT_NODE must be a multiaddr (e.g. /ip4/1.2.3.4/tcp/30333), got: {self.boot_node}"
            )

        try:
            argv = shlex.split(self.session_command)
        except ValueError as e:
            raise ConfigValidationError(f"Invalid SESSION_COMMAND: {e}")
        if not argv:
            raise ConfigValidationError("SESSION_COMMAND cannot be empty/whitespace")

        if self.poll_interval <= 0:
            raise ConfigValidationError("POLL_INTERVAL must be > 0")
        if self.reconnect_delay <= 0:
            raise ConfigValidationError("RECONNECT_DELAY must be > 0")

        if self.log_level not in LOG_LEVELS:
            raise ConfigValidationError(f"LOG_LEVEL must be one of {LOG_LEVELS}, got: {self.log_level}")

        logger.info("✅ Configuration validated successfully")

    # ------------------------------------------------------------------
    # ACCESSORS
    # ------------------------------------------------------------------

    def get_session_argv(self) -> List[str]:
        return shlex.split(self.session_command)

    def get_supervisor_config(self) -> Dict[str, float]:
        return {
            "poll_interval": self.poll_interval,
            "retry_delay": self.reconnect_delay,
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Configuration summary for diagnostics (safe to log)."""
        return {
            "chain": {
                "genesis_path": self.genesis_path,
                "boot_node": self.boot_node,
            },
            "session": {
                "command": self.session_command,
                "startup_grace": self.session_startup_grace,
            },
            "supervisor": self.get_supervisor_config(),
            "logging": {
                "log_dir": self.log_dir,
                "log_level": self.log_level,
            },
            "metrics_port": self.metrics_port,
        }
