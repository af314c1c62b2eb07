import asyncio
import json
import os
import re
import tempfile

# Keep failures.log out of the working tree while tests run
os.environ.setdefault("BRIDGE_LOG_DIR", tempfile.mkdtemp(prefix="rank-bridge-logs-"))

import httpx
import pytest

from rank_bridge.config import BridgeSettings
from rank_bridge.context import BridgeContext

GROUP_ID = "4242"
API_KEY = "test-roblox-api-key-abcdef"
SECRET = "s3cret"
OWNER_ID = 1

ROLE_RANKS = (0, 1, 2, 3, 4, 5, 7, 8, 9, 10, 255)


def role_id_for(rank: int) -> int:
    return 1000 + rank


class FakeRoblox:
    """In-memory stand-in for the Roblox groups and Open Cloud APIs."""

    def __init__(self):
        self.owner_user_id = OWNER_ID
        # When set, returned verbatim as the group "owner" field
        self.owner_payload = None
        self.roles = [
            {"id": role_id_for(rank), "name": f"Rank {rank}", "rank": rank}
            for rank in ROLE_RANKS
        ]
        self.user_roles = {}
        self.write_responses = []
        self.failing_reads = {}
        self.calls = []
        self.patches = []

    def queue_writes(self, *responses):
        """Queue (status, body) pairs for upcoming PATCH calls; afterwards 200."""
        self.write_responses.extend(responses)

    def calls_to(self, kind: str) -> int:
        return sum(1 for call in self.calls if call == kind)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        # Yield once so concurrent requests can interleave like real I/O
        await asyncio.sleep(0)
        path = request.url.path

        if request.method == "PATCH":
            match = re.fullmatch(r"/cloud/v2/groups/(\d+)/memberships/(\d+)", path)
            assert match, path
            self.calls.append("write")
            user_id = int(match.group(2))
            payload = json.loads(request.content)
            self.patches.append((user_id, payload, dict(request.headers)))
            status, body = self.write_responses.pop(0) if self.write_responses else (200, "{}")
            if 200 <= status < 300:
                self.user_roles[user_id] = int(payload["role"].rsplit("/", 1)[1])
            return httpx.Response(status, text=body)

        if re.fullmatch(r"/v1/groups/\d+", path):
            kind = "group"
        elif re.fullmatch(r"/v1/groups/\d+/roles", path):
            kind = "roles"
        elif re.fullmatch(r"/v2/users/\d+/groups/roles", path):
            kind = "user_roles"
        else:
            return httpx.Response(404, text="Not found")

        self.calls.append(kind)
        if kind in self.failing_reads:
            return httpx.Response(self.failing_reads[kind], text=f"{kind} unavailable")

        if kind == "group":
            owner = {"userId": self.owner_user_id} if self.owner_user_id else None
            if self.owner_payload is not None:
                owner = self.owner_payload
            return httpx.Response(200, json={"id": int(GROUP_ID), "owner": owner})
        if kind == "roles":
            return httpx.Response(200, json={"groupId": int(GROUP_ID), "roles": self.roles})

        user_id = int(path.split("/")[3])
        data = [{"group": {"id": 999}, "role": {"id": 1, "rank": 1}}]
        if user_id in self.user_roles:
            data.append({"group": {"id": int(GROUP_ID)}, "role": {"id": self.user_roles[user_id]}})
        return httpx.Response(200, json={"data": data})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSleep:
    """Replaces asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def fake_roblox():
    return FakeRoblox()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def settings():
    return BridgeSettings(
        group_id=GROUP_ID,
        api_key=API_KEY,
        shared_secret=SECRET,
        retry_max_attempts=4,
        retry_base_delay=0.25,
    )


@pytest.fixture
def http_client(fake_roblox):
    return httpx.AsyncClient(transport=fake_roblox.transport)


@pytest.fixture
def context(settings, http_client, recording_sleep):
    return BridgeContext.from_settings(settings, http_client, sleep=recording_sleep)
