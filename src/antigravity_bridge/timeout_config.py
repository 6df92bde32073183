# src/antigravity_bridge/timeout_config.py
"""
HTTP timeouts for backend calls.

Environment overrides (seconds):
    TIMEOUT_CONNECT - connection establishment (default: 30)
    TIMEOUT_WRITE - request body send (default: 30)
    TIMEOUT_POOL - connection pool acquisition (default: 60)
    TIMEOUT_READ_STREAMING - gap allowed between stream chunks (default: 180)
    TIMEOUT_READ_WARMUP - wait for the signature warmup reply (default: 60)
"""

import os
import logging
import httpx

lib_logger = logging.getLogger("antigravity_bridge")


class TimeoutConfig:
    """Builds httpx.Timeout objects from defaults and environment overrides."""

    _DEFAULTS = {
        "TIMEOUT_CONNECT": 30.0,
        "TIMEOUT_WRITE": 30.0,
        "TIMEOUT_POOL": 60.0,
        "TIMEOUT_READ_STREAMING": 180.0,
        "TIMEOUT_READ_WARMUP": 60.0,
    }

    @classmethod
    def seconds(cls, key: str) -> float:
        default = cls._DEFAULTS[key]
        value = os.environ.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            lib_logger.warning(f"Invalid value for {key}: {value}. Using default: {default}")
            return default

    @classmethod
    def _build(cls, read_key: str) -> httpx.Timeout:
        return httpx.Timeout(
            connect=cls.seconds("TIMEOUT_CONNECT"),
            read=cls.seconds(read_key),
            write=cls.seconds("TIMEOUT_WRITE"),
            pool=cls.seconds("TIMEOUT_POOL"),
        )

    @classmethod
    def streaming(cls) -> httpx.Timeout:
        """Chat turns: a stalled stream is one with no chunk for the read window."""
        return cls._build("TIMEOUT_READ_STREAMING")

    @classmethod
    def warmup(cls) -> httpx.Timeout:
        return cls._build("TIMEOUT_READ_WARMUP")
