from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    snapshot_timeout: float = 5.0
    decrement_timeout: float = 2.0
    allow_partial: bool = False
    database_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        settings = cls(
            host=env.get("TECHSHOP_HOST", defaults.host),
            port=int(env.get("TECHSHOP_PORT", defaults.port)),
            log_level=env.get("TECHSHOP_LOG_LEVEL", defaults.log_level).upper(),
            snapshot_timeout=float(
                env.get("TECHSHOP_SNAPSHOT_TIMEOUT", defaults.snapshot_timeout)
            ),
            decrement_timeout=float(
                env.get("TECHSHOP_DECREMENT_TIMEOUT", defaults.decrement_timeout)
            ),
            allow_partial=_parse_bool(
                "TECHSHOP_ALLOW_PARTIAL", env.get("TECHSHOP_ALLOW_PARTIAL", "")
            ),
            database_url=env.get("DATABASE_URL") or None,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"TECHSHOP_PORT out of range: {self.port}")
        if self.snapshot_timeout <= 0:
            raise ValueError("TECHSHOP_SNAPSHOT_TIMEOUT must be > 0")
        if self.decrement_timeout <= 0:
            raise ValueError("TECHSHOP_DECREMENT_TIMEOUT must be > 0")
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown TECHSHOP_LOG_LEVEL: {self.log_level}")


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")
