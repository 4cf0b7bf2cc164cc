"""
Pytest configuration and fixtures for the case tracker test suite
"""

import json
import os

# Settings are read at import time
os.environ["ENABLE_AUTH"] = "false"
os.environ["CACHE_BACKEND"] = "json"
os.environ["LOCAL_USER_ID"] = "local-user"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app import create_app  # noqa: E402
from database.cache_store import JsonFileCacheStore  # noqa: E402
from models.case import CaseCreateRequest, DefendantInput  # noqa: E402
from models.report import ReportCreateRequest  # noqa: E402
from services.backup_service import SupabaseBackupClient  # noqa: E402
from services.workspace import Workspace  # noqa: E402
from utils import dates  # noqa: E402

BACKUP_URL = "https://backup.test"


class FakeBackupServer:
    """In-memory stand-in for the user_backups REST table"""

    def __init__(self):
        self.rows = {}
        self.requests = []
        self.fail_with = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            if isinstance(self.fail_with, Exception):
                raise self.fail_with
            return httpx.Response(self.fail_with, json={"message": "failure"})

        if request.method == "POST":
            body = json.loads(request.content)
            self.rows[body["user_id"]] = body["data"]
            return httpx.Response(201)

        user_filter = request.url.params.get("user_id", "")
        user_id = user_filter[len("eq."):]
        if user_id in self.rows:
            return httpx.Response(200, json=[{"data": self.rows[user_id]}])
        return httpx.Response(200, json=[])


def build_workspace(data_path: str, server: FakeBackupServer, store=None) -> Workspace:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
    backup_client = SupabaseBackupClient(BACKUP_URL, "anon-key", client=client)
    return Workspace(store or JsonFileCacheStore(data_path), backup_client, autosave_debounce=0.01)


def case_form(**overrides) -> CaseCreateRequest:
    data = {
        "name": "Vụ trộm cắp tại chợ",
        "charges": "Điều 173",
        "investigation_deadline": dates.add_days(dates.today(), 60),
        "prosecutor": "Nguyễn Văn A",
    }
    data.update(overrides)
    return CaseCreateRequest(**data)


def detained(name: str = "Trần Văn B", days: int = 40) -> DefendantInput:
    return DefendantInput(
        name=name,
        charges="Điều 173",
        preventive_measure="Tạm giam",
        detention_deadline=dates.add_days(dates.today(), days),
    )


def report_form(**overrides) -> ReportCreateRequest:
    data = {
        "name": "A",
        "charges": "Điều 1",
        "resolution_deadline": dates.add_days(dates.today(), 30),
        "prosecutor": "X",
    }
    data.update(overrides)
    return ReportCreateRequest(**data)


@pytest.fixture
def backup_server():
    return FakeBackupServer()


@pytest.fixture
def data_path(tmp_path):
    return str(tmp_path / "store.json")


@pytest_asyncio.fixture
async def workspace(data_path, backup_server):
    ws = build_workspace(data_path, backup_server)
    await ws.start()
    yield ws
    await ws.stop()


@pytest.fixture
def client(data_path, backup_server):
    app = create_app(workspace=build_workspace(data_path, backup_server))
    with TestClient(app) as test_client:
        yield test_client
