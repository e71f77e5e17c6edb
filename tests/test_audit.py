"""Tests for the audit side channel."""

import logging
from decimal import Decimal

import pytest
from sqlalchemy import select

from compensation_engine.audit import Actor, AuditDispatcher, AuditEntry, to_state
from compensation_engine.models import AuditLog
from compensation_engine.services.compensation_service import CompensationService


def _entry(**overrides) -> AuditEntry:
    values = {
        "actor": Actor(id="hr-7", role="HR"),
        "action_type": "SET_BASIC_SALARY",
        "target_table": "salaries",
        "target_id": 12,
        "before_state": {"basic_salary": "800.00"},
        "after_state": {"basic_salary": "1000.00", "employee_id": 3},
    }
    values.update(overrides)
    return AuditEntry(**values)


class _BrokenFactory:
    """Session factory whose sessions cannot be opened."""

    def __call__(self):
        raise RuntimeError("audit store is down")


class TestAuditEntry:
    """Test entry helpers."""

    def test_changes_lists_only_differing_fields(self):
        """Test the diff covers changed and added fields."""
        changes = _entry().changes()

        assert changes == {
            "basic_salary": {"before": "800.00", "after": "1000.00"},
            "employee_id": {"before": None, "after": 3},
        }

    def test_as_failure_keeps_context(self):
        """Test a failure copy keeps the target and records the error."""
        failed = _entry().as_failure("disk full")

        assert failed.status == "FAILURE"
        assert failed.error_message == "disk full"
        assert failed.target_id == 12

    def test_to_state_is_json_safe(self):
        """Test decimals become strings."""
        assert to_state({"amount": Decimal("1.50"), "items": [Decimal("2")]}) == {
            "amount": "1.50",
            "items": ["2"],
        }


class TestAuditDispatcher:
    """Test dispatch to the store, logger and handlers."""

    @pytest.mark.asyncio
    async def test_persists_entries(self, database, session):
        """Test entries are written to audit_logs."""
        dispatcher = AuditDispatcher(database.session_factory)

        written = await dispatcher.dispatch([_entry(), _entry(target_id=13)])

        assert written == 2
        rows = (await session.execute(select(AuditLog).order_by(AuditLog.id))).scalars().all()
        assert [row.target_id for row in rows] == ["12", "13"]
        assert rows[0].actor_id == "hr-7"
        assert rows[0].after_state["basic_salary"] == "1000.00"
        assert rows[0].status == "SUCCESS"

    @pytest.mark.asyncio
    async def test_sink_failure_is_swallowed(self, caplog):
        """Test a failing audit store never propagates."""
        dispatcher = AuditDispatcher(_BrokenFactory())

        with caplog.at_level(logging.ERROR):
            written = await dispatcher.dispatch([_entry()])

        assert written == 0
        assert "Failed to persist 1 audit entries" in caplog.text

    @pytest.mark.asyncio
    async def test_handler_failure_isolated(self, database):
        """Test one failing handler does not stop the others."""
        seen = []

        def broken(entry):
            raise ValueError("boom")

        dispatcher = AuditDispatcher(database.session_factory)
        dispatcher.on(broken)
        dispatcher.on(seen.append)

        written = await dispatcher.dispatch([_entry()])

        assert written == 1
        assert [e.action_type for e in seen] == ["SET_BASIC_SALARY"]

    @pytest.mark.asyncio
    async def test_off_unregisters(self):
        """Test removed handlers are no longer called."""
        seen = []
        dispatcher = AuditDispatcher(None)
        dispatcher.on(seen.append)
        dispatcher.off(seen.append)

        await dispatcher.dispatch([_entry()])

        assert seen == []

    @pytest.mark.asyncio
    async def test_logs_to_audit_logger(self, caplog):
        """Test every entry is logged on the audit logger."""
        dispatcher = AuditDispatcher(None)

        with caplog.at_level(logging.INFO, logger="compensation_engine.audit"):
            await dispatcher.dispatch([_entry(), _entry().as_failure("nope")])

        records = [r for r in caplog.records if r.name == "compensation_engine.audit"]
        assert [r.levelno for r in records] == [logging.INFO, logging.ERROR]
        assert records[0].getMessage() == "SET_BASIC_SALARY on salaries#12 by user hr-7"

    @pytest.mark.asyncio
    async def test_disabled_dispatcher_writes_nothing(self, database, session):
        """Test a disabled dispatcher is a no-op."""
        dispatcher = AuditDispatcher(database.session_factory, enabled=False)

        assert await dispatcher.dispatch([_entry()]) == 0
        assert (await session.execute(select(AuditLog))).scalars().all() == []


class TestOperationsReturnEntries:
    """Test services describe their writes instead of auditing inline."""

    @pytest.mark.asyncio
    async def test_set_basic_salary_entry(self, session, staff, actor):
        """Test the entry carries the previous salary and writes no audit row."""
        outcome = await CompensationService(session).set_basic_salary(
            actor, staff.bob.id, "4200"
        )

        entry = outcome.entries[0]
        assert entry.action_type == "SET_BASIC_SALARY"
        assert entry.target_id == outcome.value.id
        assert Decimal(entry.before_state["basic_salary"]) == Decimal("4000")
        assert entry.after_state["basic_salary"] == "4200"
        assert (await session.execute(select(AuditLog))).scalars().all() == []
