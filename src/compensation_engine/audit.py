"""Audit side channel.

Business operations never write audit rows themselves. They return an
AuditedResult carrying the entries describing what they did (or raise a
PersistenceError carrying FAILURE entries), and the AuditDispatcher writes
those entries after the fact. A failing audit sink is logged and ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, TypeVar

from sqlalchemy import insert

from compensation_engine.models import AuditLog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("compensation_engine.audit")

T = TypeVar("T")

SUCCESS = "SUCCESS"
FAILURE = "FAILURE"


@dataclass(frozen=True)
class Actor:
    """Already-authenticated identity attributed in audit entries."""

    id: str | None
    role: str | None = None

    @classmethod
    def system(cls) -> Actor:
        return cls(id="system", role="system")


def to_state(value: Any) -> Any:
    """Convert values to a JSON-compatible form for before/after states."""
    if isinstance(value, dict):
        return {k: to_state(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_state(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def model_state(row: Any, fields: Iterable[str] | None = None) -> dict[str, Any]:
    """Snapshot an ORM row as a JSON-compatible dict."""
    data = row.to_dict()
    if fields is not None:
        data = {name: data.get(name) for name in fields}
    return to_state(data)


@dataclass(frozen=True)
class AuditEntry:
    """One audit record; created once per operation attempt."""

    actor: Actor
    action_type: str
    target_table: str
    target_id: Any = None
    before_state: dict[str, Any] | None = None
    after_state: dict[str, Any] | None = None
    status: str = SUCCESS
    error_message: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def changes(self) -> dict[str, dict[str, Any]]:
        """Field-level diff between before and after states."""
        before = self.before_state or {}
        after = self.after_state or {}
        return {
            key: {"before": before.get(key), "after": value}
            for key, value in after.items()
            if before.get(key) != value
        }

    def as_failure(self, error_message: str) -> AuditEntry:
        return replace(self, status=FAILURE, error_message=error_message)

    def to_row(self) -> dict[str, Any]:
        return {
            "actor_id": self.actor.id,
            "actor_role": self.actor.role,
            "action_type": self.action_type,
            "target_table": self.target_table,
            "target_id": None if self.target_id is None else str(self.target_id),
            "before_state": self.before_state,
            "after_state": self.after_state,
            "status": self.status,
            "error_message": self.error_message,
        }

    @property
    def message(self) -> str:
        return (
            f"{self.action_type} on {self.target_table}#{self.target_id} "
            f"by user {self.actor.id}"
        )


@dataclass
class AuditedResult(Generic[T]):
    """Result of a mutating operation plus the audit entries to emit."""

    value: T
    entries: list[AuditEntry] = field(default_factory=list)

    def as_failures(self, error_message: str) -> list[AuditEntry]:
        return [entry.as_failure(error_message) for entry in self.entries]


AuditHandler = Callable[[AuditEntry], None]


class AuditDispatcher:
    """Writes audit entries to the audit_logs table and the audit logger.

    Entries from one call are written with a single multi-row insert on a
    session of their own. Handlers are isolated: a failing handler or sink
    is logged and does not propagate.

    Usage:
        dispatcher = AuditDispatcher(database.session_factory)
        dispatcher.on(lambda entry: metrics.count(entry.action_type))
        await dispatcher.dispatch(result.entries)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None,
        enabled: bool = True,
    ):
        self._session_factory = session_factory
        self._enabled = enabled
        self._handlers: list[AuditHandler] = []

    def on(self, handler: AuditHandler) -> None:
        """Register a handler called for every dispatched entry."""
        self._handlers.append(handler)

    def off(self, handler: AuditHandler) -> None:
        """Unregister a handler."""
        self._handlers = [h for h in self._handlers if h != handler]

    async def dispatch(self, entries: Iterable[AuditEntry]) -> int:
        """Emit entries; returns the number of rows persisted."""
        entries = list(entries)
        if not entries or not self._enabled:
            return 0

        for entry in entries:
            level = logging.INFO if entry.status == SUCCESS else logging.ERROR
            audit_logger.log(
                level,
                entry.message,
                extra={
                    "audit": {
                        **entry.to_row(),
                        "change": entry.changes(),
                        "timestamp": entry.occurred_at.isoformat(),
                    }
                },
            )
            for handler in self._handlers:
                try:
                    handler(entry)
                except Exception:
                    logger.exception("Audit handler %s failed for %s", handler, entry.action_type)

        return await self._persist(entries)

    async def _persist(self, entries: list[AuditEntry]) -> int:
        if self._session_factory is None:
            return 0
        try:
            async with self._session_factory() as session:
                await session.execute(insert(AuditLog), [e.to_row() for e in entries])
                await session.commit()
        except Exception:
            logger.exception("Failed to persist %d audit entries", len(entries))
            return 0
        return len(entries)
