"""
Configuration schema -- the frozen settings object the kernel is built from.

Responsibility:
    Declares every tunable of the ledger kernel with its default.  Instances
    are immutable; a running store never observes configuration changes.
"""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class LedgerSettings:
    """
    Runtime settings for one ledger deployment.

    Fields:
        database_url: SQLAlchemy URL; file-backed SQLite or PostgreSQL.
        pool_size / max_overflow / pool_timeout: connection pool bounds.
        lock_timeout_seconds: longest a unit waits for a holding lock.
        max_conflict_retries: orchestrator retries after a ConflictError.
        retry_backoff_seconds: first retry delay, doubled per attempt.
        default_page_size / max_page_size: transaction history paging.
        log_level: level passed to configure_logging().
    """

    database_url: str = "sqlite:///ledger.db"
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    lock_timeout_seconds: float = 5.0
    max_conflict_retries: int = 3
    retry_backoff_seconds: float = 0.05
    default_page_size: int = 20
    max_page_size: int = 100
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        for name in ("pool_size", "default_page_size", "max_page_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        for name in ("max_overflow", "pool_timeout", "max_conflict_retries"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be > 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")

    @classmethod
    def field_types(cls) -> dict[str, type]:
        """Expected Python type per field name."""
        kinds = {"str": str, "int": int, "float": float}
        return {f.name: kinds[f.type] for f in fields(cls)}
