"""Runtime settings read from the environment."""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from errors import ConfigError

MB = 1024 * 1024


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Server configuration."""
    host: str = "127.0.0.1"
    port: int = 8080
    max_upload_mb: int = 10
    upload_dir: str = field(default_factory=lambda: os.path.join(tempfile.gettempdir(), "recon_uploads"))
    session_ttl_seconds: int = 3600
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ConfigError: If a numeric variable is not a non-negative integer
        """
        env = os.environ if env is None else env
        defaults = cls()
        origins = [o.strip() for o in env.get("RECON_ALLOWED_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            host=env.get("RECON_HOST", defaults.host),
            port=_env_int(env, "PORT", defaults.port),
            max_upload_mb=_env_int(env, "RECON_MAX_UPLOAD_MB", defaults.max_upload_mb),
            upload_dir=env.get("RECON_UPLOAD_DIR") or defaults.upload_dir,
            session_ttl_seconds=_env_int(env, "RECON_SESSION_TTL", defaults.session_ttl_seconds),
            allowed_origins=origins or ["*"],
            log_level=env.get("RECON_LOG_LEVEL", defaults.log_level),
            debug=_env_bool(env, "RECON_DEBUG"),
        )

    def to_flask_config(self) -> Dict[str, object]:
        return {
            "MAX_CONTENT_LENGTH": self.max_upload_mb * MB,
            "UPLOAD_FOLDER": self.upload_dir,
            "ALLOWED_ORIGINS": list(self.allowed_origins),
            "DEBUG": self.debug,
        }
