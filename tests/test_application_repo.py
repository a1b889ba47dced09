"""Record store: creation, lookups, owner/admin listings, compare-and-swap."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import ApplicationStatus
from core.exceptions import ConflictError, NotFoundError, StorageError
from database import session_dependency
from repositories import ApplicationRepository
from schemas.application import ApplicationFilter, ApplicationRecord

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def _record(app_id: str, owner_id: str, minutes: int = 0, business_name: str = "Juan's Bakery") -> ApplicationRecord:
    at = BASE_TIME + timedelta(minutes=minutes)
    return ApplicationRecord(
        id=app_id,
        owner_id=owner_id,
        owner_name="Juan",
        business_name=business_name,
        business_type="Sole Proprietorship",
        address="123 Main St",
        status=ApplicationStatus.PENDING,
        created_at=at,
        updated_at=at,
    )


async def test_create_then_get_returns_pending_record(repo, citizen):
    created = await repo.create(_record("app-0001", citizen.id))

    fetched = await repo.get_by_id("app-0001")
    assert fetched == created
    assert fetched.status is ApplicationStatus.PENDING
    assert fetched.created_at == fetched.updated_at == BASE_TIME
    assert fetched.attachments == {}


async def test_create_forces_pending_status(repo, citizen):
    record = _record("app-0002", citizen.id).model_copy(update={"status": ApplicationStatus.APPROVED})
    await repo.create(record)
    assert (await repo.get_by_id("app-0002")).status is ApplicationStatus.PENDING


async def test_duplicate_id_is_a_conflict(repo, citizen):
    await repo.create(_record("app-0003", citizen.id))
    with pytest.raises(ConflictError):
        await repo.create(_record("app-0003", citizen.id, minutes=5))
    # Original untouched
    assert (await repo.get_by_id("app-0003")).created_at == BASE_TIME


async def test_missing_record_is_not_found(repo):
    with pytest.raises(NotFoundError):
        await repo.get_by_id("nope")


async def test_list_by_owner_only_returns_that_owners_records_newest_first(repo, citizen, other_citizen):
    await repo.create(_record("a-1", citizen.id, minutes=1))
    await repo.create(_record("b-1", other_citizen.id, minutes=2))
    await repo.create(_record("a-2", citizen.id, minutes=3))
    await repo.create(_record("a-3", citizen.id, minutes=4))

    mine = await repo.list_by_owner(citizen.id)
    assert [r.id for r in mine] == ["a-3", "a-2", "a-1"]
    assert all(r.owner_id == citizen.id for r in mine)
    assert await repo.list_by_owner("nobody") == []


async def test_list_all_paginates_with_cursor(repo, citizen, other_citizen):
    for i in range(5):
        owner_id = citizen.id if i % 2 else other_citizen.id
        await repo.create(_record(f"app-{i}", owner_id, minutes=i))

    first = await repo.list_all(limit=2)
    assert [r.id for r in first.items] == ["app-4", "app-3"]
    assert first.next_cursor

    second = await repo.list_all(cursor=first.next_cursor, limit=2)
    assert [r.id for r in second.items] == ["app-2", "app-1"]

    last = await repo.list_all(cursor=second.next_cursor, limit=2)
    assert [r.id for r in last.items] == ["app-0"]
    assert last.next_cursor is None


async def test_list_all_breaks_created_at_ties_by_id(repo, citizen):
    for app_id in ("app-b", "app-a", "app-c"):
        await repo.create(_record(app_id, citizen.id))

    first = await repo.list_all(limit=2)
    rest = await repo.list_all(cursor=first.next_cursor, limit=2)
    assert [r.id for r in first.items + rest.items] == ["app-c", "app-b", "app-a"]


async def test_list_all_filters_by_status_and_business_name(repo, citizen):
    await repo.create(_record("app-1", citizen.id, minutes=1, business_name="Juan's Bakery"))
    await repo.create(_record("app-2", citizen.id, minutes=2, business_name="Sari-Sari Store"))
    await repo.create(_record("app-3", citizen.id, minutes=3, business_name="BAKERY 100%"))
    await repo.compare_and_swap_status("app-3", ApplicationStatus.PENDING, ApplicationStatus.APPROVED, BASE_TIME)

    bakeries = await repo.list_all(ApplicationFilter(business_name="bakery"))
    assert [r.id for r in bakeries.items] == ["app-3", "app-1"]

    pending_bakeries = await repo.list_all(
        ApplicationFilter(status=ApplicationStatus.PENDING, business_name="bakery")
    )
    assert [r.id for r in pending_bakeries.items] == ["app-1"]

    # LIKE wildcards in the search term are literal
    percent = await repo.list_all(ApplicationFilter(business_name="100%"))
    assert [r.id for r in percent.items] == ["app-3"]


async def test_compare_and_swap_applies_only_when_expected_matches(repo, citizen):
    await repo.create(_record("app-1", citizen.id))
    later = BASE_TIME + timedelta(hours=1)

    assert await repo.compare_and_swap_status("app-1", ApplicationStatus.PENDING, ApplicationStatus.APPROVED, later)
    assert not await repo.compare_and_swap_status(
        "app-1", ApplicationStatus.PENDING, ApplicationStatus.REJECTED, later + timedelta(minutes=1)
    )

    record = await repo.get_by_id("app-1")
    assert record.status is ApplicationStatus.APPROVED
    assert record.updated_at == later


async def test_update_fields_only_while_pending(repo, citizen):
    await repo.create(_record("app-1", citizen.id))
    assert await repo.update_fields_if_pending("app-1", {"address": "456 Rizal Ave"})
    assert (await repo.get_by_id("app-1")).address == "456 Rizal Ave"

    await repo.compare_and_swap_status("app-1", ApplicationStatus.PENDING, ApplicationStatus.REJECTED, BASE_TIME)
    assert not await repo.update_fields_if_pending("app-1", {"address": "789 Mabini St"})
    assert (await repo.get_by_id("app-1")).address == "456 Rizal Ave"


async def test_update_fields_rejects_immutable_columns(repo, citizen):
    await repo.create(_record("app-1", citizen.id))
    with pytest.raises(ValueError):
        await repo.update_fields_if_pending("app-1", {"owner_id": "someone-else"})


async def test_add_attachment_is_write_once(repo, citizen):
    await repo.create(_record("app-1", citizen.id))
    await repo.add_attachment("app-1", "idDocument", "s3://permits/id-1.pdf", BASE_TIME)

    with pytest.raises(ConflictError):
        await repo.add_attachment("app-1", "idDocument", "s3://permits/id-2.pdf", BASE_TIME)


async def test_attachments_show_up_on_the_record(repo, citizen):
    await repo.create(_record("app-1", citizen.id))
    await repo.add_attachment("app-1", "leaseDocument", "s3://permits/lease.pdf", BASE_TIME)

    assert (await repo.get_by_id("app-1")).attachments == {"leaseDocument": "s3://permits/lease.pdf"}
    assert await repo.get_attachment("app-1", "leaseDocument") == "s3://permits/lease.pdf"
    assert await repo.get_attachment("app-1", "idDocument") is None


async def test_count_by_status(repo, citizen):
    for i in range(3):
        await repo.create(_record(f"app-{i}", citizen.id, minutes=i))
    await repo.compare_and_swap_status("app-0", ApplicationStatus.PENDING, ApplicationStatus.APPROVED, BASE_TIME)

    assert await repo.count_by_status() == {"Pending": 2, "Approved": 1, "Rejected": 0}


async def test_transient_read_failure_is_retried(test_db, citizen, monkeypatch):
    repo = ApplicationRepository(test_db)
    await repo.create(_record("app-1", citizen.id))
    await test_db.commit()
    test_db.info.clear()

    real_execute = test_db.execute
    failures = []

    async def flaky_execute(*args, **kwargs):
        if not failures:
            failures.append(1)
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return await real_execute(*args, **kwargs)

    monkeypatch.setattr(test_db, "execute", flaky_execute)

    record = await repo.get_by_id("app-1")
    assert record.id == "app-1"
    assert failures == [1]


async def test_write_failure_is_storage_error_and_not_retried(test_db, citizen, monkeypatch):
    repo = ApplicationRepository(test_db)
    await repo.create(_record("app-1", citizen.id))
    calls = []

    async def broken_execute(*args, **kwargs):
        calls.append(1)
        raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

    monkeypatch.setattr(test_db, "execute", broken_execute)

    with pytest.raises(StorageError) as exc:
        await repo.compare_and_swap_status("app-1", ApplicationStatus.PENDING, ApplicationStatus.APPROVED, BASE_TIME)
    assert len(calls) == 1
    assert "disk" not in exc.value.message


async def test_failed_request_commit_becomes_storage_error(session_factory, citizen, monkeypatch):
    get_session = session_dependency(session_factory)()
    session = await get_session.__anext__()
    await ApplicationRepository(session).create(_record("app-1", citizen.id))

    async def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)
    with pytest.raises(StorageError) as exc:
        await get_session.__anext__()
    assert "locked" not in exc.value.message

    monkeypatch.undo()
    async with session_factory() as fresh:
        with pytest.raises(NotFoundError):
            await ApplicationRepository(fresh).get_by_id("app-1")
