"""Environment-backed service settings.

Values are read from the process environment, after loading a local
``.env`` file if one exists.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _float_env(name: str, default: float) -> float:
    """Parse a float env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return float(raw)


def _int_env(name: str, default: int) -> int:
    """Parse an integer env var with a fallback."""
    raw = os.getenv(name, "")
    if raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Service configuration parsed from environment.

    Attributes:
        loop_interval_s: Real seconds the simulation loop sleeps between ticks.
        log_level: Root logging level name.
        broadcast_history: Number of published messages kept in memory.
    """

    loop_interval_s: float = 0.001
    log_level: str = "INFO"
    broadcast_history: int = 100

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            loop_interval_s=_float_env("SIM_LOOP_INTERVAL_S", cls.loop_interval_s),
            log_level=os.getenv("SIM_LOG_LEVEL", cls.log_level).upper(),
            broadcast_history=_int_env("SIM_BROADCAST_HISTORY", cls.broadcast_history),
        )


def load_settings() -> Settings:
    """Load .env (without overriding the real environment) and build Settings."""
    load_dotenv()
    return Settings.from_env()
