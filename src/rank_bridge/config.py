# src/rank_bridge/config.py

import logging
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from .tier_table import DEFAULT_MAX_MANAGED_RANK, DEFAULT_TIERS, Tier, tiers_from_env

lib_logger = logging.getLogger("rank_bridge")

DEFAULT_GROUPS_API_BASE = "https://groups.roblox.com"
DEFAULT_CLOUD_API_BASE = "https://apis.roblox.com"


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = str(environ.get(name, "")).strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        lib_logger.warning(f"Invalid {name} '{value}'. Falling back to {default}.")
        return default


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    value = str(environ.get(name, "")).strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        lib_logger.warning(f"Invalid {name} '{value}'. Falling back to {default}.")
        return default


@dataclass
class BridgeSettings:
    """Runtime configuration, read once at startup."""

    group_id: str = ""
    api_key: str = ""
    shared_secret: str = ""
    port: int = 3000
    max_managed_rank: Optional[int] = DEFAULT_MAX_MANAGED_RANK
    retry_max_attempts: int = 4
    retry_base_delay: float = 0.25
    http_timeout: float = 30.0
    tiers: Tuple[Tier, ...] = field(default_factory=lambda: DEFAULT_TIERS)
    groups_api_base: str = DEFAULT_GROUPS_API_BASE
    cloud_api_base: str = DEFAULT_CLOUD_API_BASE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BridgeSettings":
        environ = os.environ if environ is None else environ

        max_rank_raw = str(environ.get("MAX_MANAGED_RANK", "")).strip()
        if max_rank_raw.lower() == "none":
            max_managed_rank = None
        else:
            max_managed_rank = _read_int(
                environ, "MAX_MANAGED_RANK", DEFAULT_MAX_MANAGED_RANK
            )

        retry_max_attempts = _read_int(environ, "RETRY_MAX_ATTEMPTS", 4)
        if retry_max_attempts < 1:
            lib_logger.warning(
                f"Invalid RETRY_MAX_ATTEMPTS value: {retry_max_attempts}. Must be >= 1. Using 1."
            )
            retry_max_attempts = 1

        retry_base_delay = _read_float(environ, "RETRY_BASE_DELAY", 0.25)
        if retry_base_delay < 0:
            lib_logger.warning(
                f"Invalid RETRY_BASE_DELAY value: {retry_base_delay}. Must be >= 0. Using 0.25."
            )
            retry_base_delay = 0.25

        return cls(
            group_id=str(environ.get("GROUP_ID", "")).strip(),
            api_key=str(environ.get("ROBLOX_API_KEY", "")).strip(),
            shared_secret=str(environ.get("SHARED_SECRET", "")).strip(),
            port=_read_int(environ, "PORT", 3000),
            max_managed_rank=max_managed_rank,
            retry_max_attempts=retry_max_attempts,
            retry_base_delay=retry_base_delay,
            http_timeout=_read_float(environ, "HTTP_TIMEOUT", 30.0),
            tiers=tuple(tiers_from_env(environ.get("XP_TIERS"))),
            groups_api_base=str(
                environ.get("ROBLOX_GROUPS_API_BASE") or DEFAULT_GROUPS_API_BASE
            ).rstrip("/"),
            cloud_api_base=str(
                environ.get("ROBLOX_CLOUD_API_BASE") or DEFAULT_CLOUD_API_BASE
            ).rstrip("/"),
        )

    def missing_required(self) -> List[str]:
        missing = []
        if not self.group_id:
            missing.append("GROUP_ID")
        if not self.api_key:
            missing.append("ROBLOX_API_KEY")
        if not self.shared_secret:
            missing.append("SHARED_SECRET")
        return missing

    def warn_missing(self) -> None:
        """Missing values are not fatal; the first request that needs them fails instead."""
        for name in self.missing_required():
            lib_logger.warning(f"[ENV] Missing {name}")
