"""
Configuration management.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    # Record store (Supabase REST); in-memory store when unset
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", "").rstrip("/"))
    supabase_key: str = field(default_factory=lambda: os.getenv("SUPABASE_KEY", ""))
    # No timeout unless configured
    store_timeout: Optional[float] = field(default_factory=lambda: _optional_float("STORE_TIMEOUT"))

    # Wizard sessions
    session_secret: str = field(default_factory=lambda: os.getenv("SESSION_SECRET", ""))
    session_idle_minutes: int = field(
        default_factory=lambda: int(os.getenv("SESSION_IDLE_MINUTES", "120"))
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url)

    def to_dict(self) -> dict:
        """Convert config to dictionary. Secrets are masked."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
            "supabase_url": self.supabase_url,
            "supabase_key": "***" if self.supabase_key else "",
            "store_timeout": self.store_timeout,
            "session_secret": "***" if self.session_secret else "",
            "session_idle_minutes": self.session_idle_minutes,
        }


def configure_logging(config: Optional[Config] = None) -> None:
    """Configure root logging once at process start."""
    config = config or Config.load()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
