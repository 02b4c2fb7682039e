import logging
from datetime import date, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from trustee_portal.core.exceptions import ForbiddenException, ValidationException
from trustee_portal.models.audit_entry import AuditAction, AuditEntry, ResourceType
from trustee_portal.models.role import Role
from trustee_portal.repositories.audit_repository import AuditFilters, AuditRepository
from trustee_portal.services.audit_service import AuditService

TENANT_ID = 42


@pytest.fixture
def audit(db_session, clock):
    return AuditService(db_session, clock=clock)


def _seed(audit, clock, count, action=AuditAction.INVITATION_CANCEL, principal_id=7, tenant_id=TENANT_ID):
    entries = []
    for i in range(count):
        entries.append(
            audit.record(
                action,
                ResourceType.INVITATION,
                tenant_id=tenant_id,
                principal_id=principal_id,
                resource_id=100 + i,
            )
        )
        clock.advance(minutes=1)
    return entries


class TestRecord:
    def test_best_effort_entry_is_committed(self, db_session, audit):
        entry = audit.record(
            AuditAction.ACCESS_DENIED, ResourceType.TENANT, tenant_id=TENANT_ID, principal_id=3, resource_id=TENANT_ID
        )
        db_session.rollback()
        assert db_session.get(AuditEntry, entry.id) is not None

    def test_synchronous_entry_joins_caller_transaction(self, db_session, audit):
        entry = audit.record(
            AuditAction.MEMBER_ROLE_CHANGE, ResourceType.MEMBERSHIP, tenant_id=TENANT_ID, principal_id=3, resource_id=5
        )
        entry_id = entry.id
        db_session.rollback()
        assert db_session.get(AuditEntry, entry_id) is None

    def test_best_effort_failure_is_logged_not_raised(self, audit, monkeypatch, caplog):
        def broken_add(self, entry):
            raise OperationalError("INSERT INTO audit_entries", {}, Exception("database is locked"))

        monkeypatch.setattr(AuditRepository, "add", broken_add)
        with caplog.at_level(logging.ERROR):
            result = audit.record(AuditAction.INVITATION_RESEND, ResourceType.INVITATION, tenant_id=TENANT_ID)

        assert result is None
        assert "Best-effort audit write failed" in caplog.text

    def test_synchronous_failure_propagates(self, audit, monkeypatch):
        def broken_add(self, entry):
            raise OperationalError("INSERT INTO audit_entries", {}, Exception("database is locked"))

        monkeypatch.setattr(AuditRepository, "add", broken_add)
        with pytest.raises(OperationalError):
            audit.record(AuditAction.INVITATION_ISSUE, ResourceType.INVITATION, tenant_id=TENANT_ID)

    def test_details_are_stored_as_json(self, db_session, audit):
        entry = audit.record(
            AuditAction.MEMBER_REACTIVATE,
            ResourceType.MEMBERSHIP,
            tenant_id=TENANT_ID,
            resource_id=9,
            details={"role": Role.TRUSTEE, "termStart": date(2026, 4, 1)},
        )
        db_session.expire_all()
        stored = db_session.get(AuditEntry, entry.id)
        assert stored.details == {"role": "trustee", "termStart": "2026-04-01"}
        assert stored.resource_id == "9"


class TestQuery:
    def test_newest_first(self, audit, clock):
        seeded = _seed(audit, clock, 3)
        page = audit.query(TENANT_ID)
        assert [e.id for e in page.entries] == [e.id for e in reversed(seeded)]

    def test_pagination(self, audit, clock):
        _seed(audit, clock, 5)
        first = audit.query(TENANT_ID, page=1, page_size=2)
        last = audit.query(TENANT_ID, page=3, page_size=2)
        assert first.total == 5
        assert len(first.entries) == 2
        assert len(last.entries) == 1
        assert {e.id for e in first.entries}.isdisjoint(e.id for e in last.entries)

    def test_page_size_is_capped(self, audit, clock):
        _seed(audit, clock, 1)
        assert audit.query(TENANT_ID, page_size=10_000).page_size == 100

    @pytest.mark.parametrize("page,page_size", [(0, 10), (-1, 10), (1, -5)])
    def test_non_positive_paging_rejected(self, audit, page, page_size):
        with pytest.raises(ValidationException):
            audit.query(TENANT_ID, page=page, page_size=page_size)

    def test_scoped_to_tenant(self, audit, clock):
        _seed(audit, clock, 2)
        _seed(audit, clock, 3, tenant_id=TENANT_ID + 1)
        assert audit.query(TENANT_ID).total == 2

    def test_filters(self, audit, clock):
        start = clock.now
        _seed(audit, clock, 2, principal_id=7)
        middle = clock.now
        _seed(audit, clock, 3, principal_id=8, action=AuditAction.INVITATION_RESEND)

        assert audit.query(TENANT_ID, AuditFilters(principal_id=8)).total == 3
        assert audit.query(TENANT_ID, AuditFilters(action=AuditAction.INVITATION_CANCEL.value)).total == 2
        assert audit.query(TENANT_ID, AuditFilters(since=middle)).total == 3
        assert audit.query(TENANT_ID, AuditFilters(since=start, until=middle - timedelta(seconds=1))).total == 2
        assert audit.query(TENANT_ID, AuditFilters(resource_type=ResourceType.MEMBERSHIP.value)).total == 0

    def test_time_filters_compare_instants_across_offsets(self, audit, clock):
        start = clock.now
        _seed(audit, clock, 2)
        middle = clock.now
        _seed(audit, clock, 3)

        cest = timezone(timedelta(hours=2))
        eastern = timezone(timedelta(hours=-5))
        assert audit.query(TENANT_ID, AuditFilters(since=middle.astimezone(cest))).total == 3
        assert audit.query(TENANT_ID, AuditFilters(until=(middle - timedelta(seconds=1)).astimezone(eastern))).total == 2
        assert audit.query(TENANT_ID, AuditFilters(since=start.astimezone(eastern), until=middle.astimezone(cest))).total == 3
        # Naive bounds are read as UTC
        assert audit.query(TENANT_ID, AuditFilters(since=middle.replace(tzinfo=None))).total == 3


class TestHistoryAndActivity:
    def test_resource_history(self, audit, clock):
        for action in (AuditAction.INVITATION_ISSUE, AuditAction.INVITATION_RESEND, AuditAction.INVITATION_CANCEL):
            audit.record(action, ResourceType.INVITATION, tenant_id=TENANT_ID, principal_id=1, resource_id=55)
            clock.advance(seconds=5)
        audit.db.commit()
        audit.record(AuditAction.INVITATION_CANCEL, ResourceType.INVITATION, tenant_id=TENANT_ID, resource_id=56)

        history = audit.resource_history(ResourceType.INVITATION, 55)
        assert [e.action for e in history] == ["invitation.cancel", "invitation.resend", "invitation.issue"]
        assert audit.resource_history(ResourceType.INVITATION, 55, tenant_id=TENANT_ID + 1) == []

    def test_principal_activity(self, audit, clock):
        _seed(audit, clock, 3, principal_id=7)
        _seed(audit, clock, 2, principal_id=8)
        activity = audit.principal_activity(7, limit=2)
        assert len(activity) == 2
        assert all(e.principal_id == 7 for e in activity)


class TestPurge:
    def test_requires_super_admin(self, audit):
        with pytest.raises(ForbiddenException):
            audit.purge_older_than(30, caller_id=1, caller_is_super_admin=False)

    def test_negative_retention_rejected(self, audit):
        with pytest.raises(ValidationException):
            audit.purge_older_than(-1, caller_id=1, caller_is_super_admin=True)

    def test_deletes_old_entries_and_records_sweep(self, db_session, audit, clock):
        _seed(audit, clock, 2)
        clock.advance(days=40)
        recent = _seed(audit, clock, 1)

        deleted = audit.purge_older_than(30, caller_id=1, caller_is_super_admin=True)

        assert deleted == 2
        remaining = db_session.query(AuditEntry).all()
        assert {e.action for e in remaining} == {"invitation.cancel", "audit.purge"}
        assert recent[0].id in {e.id for e in remaining}
        sweep = next(e for e in remaining if e.action == "audit.purge")
        assert sweep.details["deleted"] == 2
        assert sweep.tenant_id is None
