"""
Share Configuration

Environment-based configuration for uploads, expiry, passwords, rate
limiting, sweeping and the storage locations. Nothing in the core logic is
hardcoded; every threshold comes from here.
"""

import os
from dataclasses import dataclass, field
from typing import List, Tuple

from ..domain.rate_limiting import RateLimit

ONE_GIB = 1024 * 1024 * 1024

DEFAULT_ALLOWED_MIME_PREFIXES = (
    "image/",
    "video/",
    "audio/",
    "application/pdf",
    "application/zip",
    "application/x-rar-compressed",
    "text/",
    "application/json",
    "application/msword",
    "application/vnd.openxmlformats-officedocument",
)

DEFAULT_BLOCKED_EXTENSIONS = (".exe", ".bat", ".cmd", ".scr")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ShareConfig:
    """
    Application settings loaded from environment variables.

    Invalid numeric values raise ValueError when the configuration is
    loaded, so a misconfigured deployment fails at startup.
    """

    max_file_size: int = ONE_GIB
    default_ttl_minutes: int = 5
    min_ttl_minutes: int = 1
    max_ttl_minutes: int = 120
    allowed_mime_prefixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_PREFIXES)
    )
    blocked_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_BLOCKED_EXTENSIONS)
    )
    password_min_length: int = 4
    password_hash_rounds: int = 10

    rate_limit_enabled: bool = True
    upload_rate_limit: RateLimit = field(
        default_factory=lambda: RateLimit(20, 60_000, "upload")
    )
    default_rate_limit: RateLimit = field(
        default_factory=lambda: RateLimit(50, 60_000, "default")
    )
    rate_limit_reaper_minutes: int = 5
    rate_limit_grace_seconds: int = 60

    sweep_enabled: bool = True
    sweep_interval_minutes: int = 1

    share_base_url: str = "http://localhost:8000"
    public_base_url: str = "http://localhost:8000"
    fallback_data_dir: str = ""
    blob_dir: str = "/tmp/sharelink/blobs"
    primary_retry_cooldown_seconds: int = 30

    def __post_init__(self):
        if self.max_file_size <= 0:
            raise ValueError(f"MAX_FILE_SIZE must be positive, got {self.max_file_size}")
        if self.min_ttl_minutes <= 0:
            raise ValueError(f"MIN_TTL_MINUTES must be positive, got {self.min_ttl_minutes}")
        if self.max_ttl_minutes < self.min_ttl_minutes:
            raise ValueError("MAX_TTL_MINUTES must not be below MIN_TTL_MINUTES")
        if not self.min_ttl_minutes <= self.default_ttl_minutes <= self.max_ttl_minutes:
            raise ValueError("DEFAULT_TTL_MINUTES must lie within the TTL range")
        if self.password_min_length < 1:
            raise ValueError("PASSWORD_MIN_LENGTH must be at least 1")
        if self.rate_limit_reaper_minutes <= 0 or self.sweep_interval_minutes <= 0:
            raise ValueError("Scheduler intervals must be positive")
        self.blocked_extensions = [ext.lower() for ext in self.blocked_extensions]

    @classmethod
    def from_env(cls) -> "ShareConfig":
        """
        Load configuration from environment variables.

        Returns:
            ShareConfig instance with loaded configuration

        Raises:
            ValueError: If a numeric or rate-limit value is malformed
        """
        public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
        return cls(
            max_file_size=_env_int("MAX_FILE_SIZE", ONE_GIB),
            default_ttl_minutes=_env_int("DEFAULT_TTL_MINUTES", 5),
            min_ttl_minutes=_env_int("MIN_TTL_MINUTES", 1),
            max_ttl_minutes=_env_int("MAX_TTL_MINUTES", 120),
            allowed_mime_prefixes=_env_list(
                "ALLOWED_MIME_PREFIXES", DEFAULT_ALLOWED_MIME_PREFIXES
            ),
            blocked_extensions=_env_list("BLOCKED_EXTENSIONS", DEFAULT_BLOCKED_EXTENSIONS),
            password_min_length=_env_int("PASSWORD_MIN_LENGTH", 4),
            password_hash_rounds=_env_int("PASSWORD_HASH_ROUNDS", 10),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            upload_rate_limit=RateLimit.parse(
                os.getenv("RATE_LIMIT_UPLOAD", "20/60000"), "upload"
            ),
            default_rate_limit=RateLimit.parse(
                os.getenv("RATE_LIMIT_DEFAULT", "50/60000"), "default"
            ),
            rate_limit_reaper_minutes=_env_int("RATE_LIMIT_REAPER_MINUTES", 5),
            rate_limit_grace_seconds=_env_int("RATE_LIMIT_GRACE_SECONDS", 60),
            sweep_enabled=_env_bool("SWEEP_ENABLED", True),
            sweep_interval_minutes=_env_int("SWEEP_INTERVAL_MINUTES", 1),
            share_base_url=os.getenv("SHARE_BASE_URL", public_base_url),
            public_base_url=public_base_url,
            fallback_data_dir=os.getenv("FALLBACK_DATA_DIR", ""),
            blob_dir=os.getenv("BLOB_DIR", "/tmp/sharelink/blobs"),
            primary_retry_cooldown_seconds=_env_int("PRIMARY_RETRY_COOLDOWN_SECONDS", 30),
        )

    def share_url(self, file_id: str) -> str:
        return f"{self.share_base_url.rstrip('/')}/share/{file_id}"
