"""Unit tests for the AI agent room lock."""
import pytest

from callbridge.services.locks.in_memory import InMemoryRoomLockStore
from callbridge.services.locks.service import RoomLockService


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lock_service(clock):
    return RoomLockService(InMemoryRoomLockStore(), ttl_ms=30_000, clock=clock)


class TestRoomLockService:
    """Test lock acquisition, heartbeat and expiry."""

    @pytest.mark.asyncio
    async def test_acquire_free_room(self, lock_service):
        """Test the first requester gets the lock."""
        result = await lock_service.acquire("room-1", "u1", "Alice")

        assert result.acquired is True
        status = await lock_service.status("room-1")
        assert status.locked is True
        assert status.holder.userId == "u1"
        assert status.holder.userName == "Alice"

    @pytest.mark.asyncio
    async def test_acquire_conflict_reports_holder(self, lock_service):
        """Test a second user is rejected and told who holds the lock."""
        await lock_service.acquire("room-1", "u1", "Alice")

        result = await lock_service.acquire("room-1", "u2", "Bob")

        assert result.acquired is False
        assert result.holder.userId == "u1"

    @pytest.mark.asyncio
    async def test_same_holder_reacquire_refreshes(self, lock_service, clock):
        """Test re-acquiring by the holder succeeds and pushes expiry out."""
        await lock_service.acquire("room-1", "u1", "Alice")
        clock.now += 20_000

        result = await lock_service.acquire("room-1", "u1", "Alice")
        clock.now += 20_000

        assert result.acquired is True
        assert (await lock_service.status("room-1")).locked is True

    @pytest.mark.asyncio
    async def test_expired_lock_can_be_taken(self, lock_service, clock):
        """Test a lock without heartbeat for longer than the TTL is free."""
        await lock_service.acquire("room-1", "u1", "Alice")
        clock.now += 30_001

        assert (await lock_service.status("room-1")).locked is False
        result = await lock_service.acquire("room-1", "u2", "Bob")
        assert result.acquired is True

    @pytest.mark.asyncio
    async def test_heartbeat_only_for_holder(self, lock_service, clock):
        """Test heartbeats keep the holder's lock alive and are ignored for others."""
        await lock_service.acquire("room-1", "u1", "Alice")

        clock.now += 25_000
        assert await lock_service.heartbeat("room-1", "u1") is True
        assert await lock_service.heartbeat("room-1", "u2") is False

        clock.now += 25_000
        status = await lock_service.status("room-1")
        assert status.locked is True
        assert status.holder.userId == "u1"

    @pytest.mark.asyncio
    async def test_release_by_non_holder_is_ignored(self, lock_service):
        """Test release only removes the caller's own lock."""
        await lock_service.acquire("room-1", "u1", "Alice")

        await lock_service.release("room-1", "u2")
        assert (await lock_service.status("room-1")).locked is True

        await lock_service.release("room-1", "u1")
        assert (await lock_service.status("room-1")).locked is False


class TestRoomLockAPI:
    """Test POST /api/ai-agent-lock."""

    def test_acquire_and_conflict(self, test_client):
        """Test acquire succeeds, then a second user gets 409 with the holder."""
        first = test_client.post(
            "/api/ai-agent-lock",
            json={"action": "acquire", "roomId": "r1", "userId": "u1", "userName": "Alice"},
        )
        assert first.status_code == 200
        assert first.json()["acquired"] is True

        second = test_client.post(
            "/api/ai-agent-lock",
            json={"action": "acquire", "roomId": "r1", "userId": "u2", "userName": "Bob"},
        )
        assert second.status_code == 409
        body = second.json()
        assert body["success"] is False
        assert body["acquired"] is False
        assert body["holder"] == {"userId": "u1", "userName": "Alice"}

    def test_status_heartbeat_release(self, test_client):
        """Test the remaining actions on a held lock."""
        test_client.post(
            "/api/ai-agent-lock",
            json={"action": "acquire", "roomId": "r1", "userId": "u1", "userName": "Alice"},
        )

        status = test_client.post("/api/ai-agent-lock", json={"action": "status", "roomId": "r1"})
        assert status.json()["locked"] is True

        heartbeat = test_client.post(
            "/api/ai-agent-lock", json={"action": "heartbeat", "roomId": "r1", "userId": "u1"}
        )
        assert heartbeat.json()["alive"] is True

        release = test_client.post(
            "/api/ai-agent-lock", json={"action": "release", "roomId": "r1", "userId": "u1"}
        )
        assert release.status_code == 200

        status = test_client.post("/api/ai-agent-lock", json={"action": "status", "roomId": "r1"})
        assert status.json()["locked"] is False

    def test_heartbeat_from_non_holder(self, test_client):
        """Test a heartbeat for a lock held by someone else is reported as unsuccessful."""
        test_client.post(
            "/api/ai-agent-lock",
            json={"action": "acquire", "roomId": "r1", "userId": "u1", "userName": "Alice"},
        )

        response = test_client.post(
            "/api/ai-agent-lock", json={"action": "heartbeat", "roomId": "r1", "userId": "u2"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": False, "alive": False}

    @pytest.mark.parametrize(
        "payload",
        [
            {"roomId": "r1"},
            {"action": "status"},
            {"action": "acquire", "roomId": "r1", "userId": "u1"},
            {"action": "release", "roomId": "r1"},
            {"action": "heartbeat", "roomId": "r1"},
            {"action": "steal", "roomId": "r1", "userId": "u1"},
        ],
    )
    def test_invalid_requests(self, test_client, payload):
        """Test missing fields and unknown actions are rejected with 400."""
        response = test_client.post("/api/ai-agent-lock", json=payload)

        assert response.status_code == 400
        assert response.json()["success"] is False
