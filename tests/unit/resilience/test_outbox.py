"""Unit tests for the write outbox"""
import pytest
from unittest.mock import AsyncMock, patch

from soulpet.db.gateway import InMemoryGateway
from soulpet.exceptions import PersistenceError
from soulpet.models.pet import CompanionProgress, CompanionType
from soulpet.resilience.outbox import WriteOutbox


def _companion(xp=0):
    return CompanionProgress(user_id="user-123", companion_type=CompanionType.DOG, xp=xp)


def _enqueue(outbox, record):
    outbox.enqueue(
        record.key, "upsert_companion_progress",
        record.user_id, record.companion_type, record,
    )


@pytest.fixture
def no_sleep():
    with patch("soulpet.resilience.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


# ============================================================================
# Queue Semantics
# ============================================================================

def test_enqueue_keeps_one_write_per_key():
    """Test that a newer write replaces the queued one for the same record"""
    outbox = WriteOutbox()

    _enqueue(outbox, _companion(xp=10))
    _enqueue(outbox, _companion(xp=25))

    assert len(outbox) == 1
    write = outbox.get(("user-123", "dog"))
    assert write.args[2].xp == 25


def test_enqueue_keeps_attempt_count():
    """Test that replacing a write does not reset its attempts"""
    outbox = WriteOutbox()
    _enqueue(outbox, _companion(xp=10))
    outbox.get(("user-123", "dog")).attempts = 2

    _enqueue(outbox, _companion(xp=20))

    assert outbox.get(("user-123", "dog")).attempts == 2


def test_discard():
    """Test discarding queued and unknown keys"""
    outbox = WriteOutbox()
    _enqueue(outbox, _companion())

    assert outbox.discard(("user-123", "dog")) is not None
    assert outbox.discard(("user-123", "dog")) is None
    assert ("user-123", "dog") not in outbox
    assert outbox.keys() == []


# ============================================================================
# Flush
# ============================================================================

@pytest.mark.asyncio
async def test_flush_persists_writes(no_sleep):
    """Test that flush writes every pending record"""
    outbox = WriteOutbox()
    gateway = InMemoryGateway()
    _enqueue(outbox, _companion(xp=40))

    persisted = await outbox.flush(gateway)

    assert persisted == 1
    assert len(outbox) == 0
    assert gateway.companions[("user-123", "dog")].xp == 40


@pytest.mark.asyncio
async def test_flush_keeps_transient_failures(no_sleep):
    """Test that writes failing transiently stay queued"""
    outbox = WriteOutbox(max_retries=2)
    gateway = AsyncMock()
    gateway.upsert_companion_progress.side_effect = PersistenceError("offline")
    _enqueue(outbox, _companion(xp=40))

    persisted = await outbox.flush(gateway)

    assert persisted == 0
    assert len(outbox) == 1
    assert outbox.get(("user-123", "dog")).attempts == 1
    assert gateway.upsert_companion_progress.await_count == 3


@pytest.mark.asyncio
async def test_flush_drops_permanent_failures(no_sleep):
    """Test that writes failing permanently are dropped"""
    outbox = WriteOutbox()
    gateway = AsyncMock()
    gateway.upsert_companion_progress.side_effect = PersistenceError("bad row", transient=False)
    _enqueue(outbox, _companion(xp=40))

    persisted = await outbox.flush(gateway)

    assert persisted == 0
    assert len(outbox) == 0
    assert gateway.upsert_companion_progress.await_count == 1


@pytest.mark.asyncio
async def test_flush_keeps_write_queued_during_flush(no_sleep):
    """Test that a write queued while flushing is not lost"""
    outbox = WriteOutbox()
    gateway = InMemoryGateway()
    original = gateway.upsert_companion_progress

    async def upsert_and_requeue(user_id, companion_type, record):
        await original(user_id, companion_type, record)
        if record.xp == 40:
            _enqueue(outbox, _companion(xp=55))

    gateway.upsert_companion_progress = upsert_and_requeue
    _enqueue(outbox, _companion(xp=40))

    await outbox.flush(gateway)

    assert len(outbox) == 1
    assert outbox.get(("user-123", "dog")).args[2].xp == 55


@pytest.mark.asyncio
async def test_flush_write_skips_discarded_key(no_sleep):
    """Test a key discarded after listing is not sent"""
    outbox = WriteOutbox()
    gateway = InMemoryGateway()
    _enqueue(outbox, _companion(xp=40))
    keys = outbox.keys()

    outbox.discard(keys[0])

    assert await outbox.flush_write(keys[0], gateway) is False
    assert gateway.write_count == 0


@pytest.mark.asyncio
async def test_flush_write_sends_latest_queued_record(no_sleep):
    """Test the write sent for a key is the one queued at send time"""
    outbox = WriteOutbox()
    gateway = InMemoryGateway()
    _enqueue(outbox, _companion(xp=40))
    keys = outbox.keys()
    _enqueue(outbox, _companion(xp=70))

    assert await outbox.flush_write(keys[0], gateway) is True
    assert gateway.companions[("user-123", "dog")].xp == 70
    assert len(outbox) == 0
