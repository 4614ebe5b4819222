"""Per-item outcome reporting for batch operations.

Batch loops never abort on a single failing item. Each unit of work yields an
``ItemResult`` and the loop aggregates them into a ``BatchReport`` so callers
can branch on the error kind instead of catching exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    NETWORK_TIMEOUT = "network_timeout"
    NETWORK_FAILURE = "network_failure"
    UPSTREAM_RATE_LIMIT = "upstream_rate_limit"
    UPSTREAM_ERROR = "upstream_error"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    DUPLICATE_KEY = "duplicate_key"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


@dataclass
class ItemResult:
    """Outcome of one unit of work: either a value or an error kind."""

    key: str
    value: Any = None
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, key: str, value: Any = None) -> "ItemResult":
        return cls(key=key, value=value)

    @classmethod
    def failure(cls, key: str, kind: ErrorKind, message: str = "") -> "ItemResult":
        return cls(key=key, kind=kind, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
        }


@dataclass
class BatchReport:
    """Successes, skips and failures of a batch, kept side by side."""

    succeeded: List[ItemResult] = field(default_factory=list)
    skipped: List[ItemResult] = field(default_factory=list)
    failed: List[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult) -> None:
        if result.ok:
            self.succeeded.append(result)
        elif result.kind is ErrorKind.DUPLICATE_KEY:
            # Duplicates are a normal outcome, reported apart from failures.
            self.skipped.append(result)
        else:
            self.failed.append(result)

    @property
    def values(self) -> List[Any]:
        return [result.value for result in self.succeeded]

    def summary(self) -> Dict[str, int]:
        return {
            "processed": len(self.succeeded),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }

    def message(self, noun: str = "items") -> str:
        counts = self.summary()
        text = f"{counts['processed']} {noun} processed, {counts['skipped']} skipped"
        if counts["failed"]:
            text += f", {counts['failed']} failed"
        return text


class RateLimitError(RuntimeError):
    """Raised by upstream clients when the provider answers HTTP 429."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
