import json
from pathlib import Path
from typing import Dict, List, Tuple

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from pinjected_google_auth.collaborators import AuthCollaborators, CommandResult
from pinjected_google_auth.messages import ADVISORIES

METADATA = "http://metadata.google.internal"
INSTANCE_URL = f"{METADATA}/computeMetadata/v1/instance"
SERVICE_ACCOUNTS_URL = f"{METADATA}/computeMetadata/v1/instance/service-accounts/"
TOKEN_URL = f"{METADATA}/computeMetadata/v1/instance/service-accounts/default/token"
PROJECT_ID_URL = f"{METADATA}/computeMetadata/v1/project/project-id"
CLUSTER_NAME_URL = f"{METADATA}/computeMetadata/v1/instance/attributes/cluster-name"
OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"

FIXED_PROJECT_ID = "my-awesome-project"
NOW_MILLIS = 1_700_000_000_000


def create_jwt_json() -> dict:
    return {
        "private_key_id": "key123",
        "private_key": "privatekey",
        "client_email": "hello@youarecool.com",
        "client_id": "client123",
        "type": "service_account",
    }


def create_refresh_json() -> dict:
    return {
        "client_id": "client123",
        "client_secret": "secret123",
        "refresh_token": "refreshtoken123",
        "type": "authorized_user",
    }


class MockServer:
    """Routes requests by (method, host, path) to queued responses or errors."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str, str], List] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, url: str, *responses):
        parsed = httpx.URL(url)
        self.routes.setdefault((method, parsed.host, parsed.path), []).extend(responses)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self.routes.get((request.method, request.url.host, request.url.path))
        if not queue:
            raise AssertionError(f"unexpected request: {request.method} {request.url}")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def calls_to(self, url: str) -> List[httpx.Request]:
        parsed = httpx.URL(url)
        return [
            c for c in self.calls if c.url.host == parsed.host and c.url.path == parsed.path
        ]

    def assert_all_consumed(self):
        leftover = {k: v for k, v in self.routes.items() if v}
        assert not leftover, f"responses never requested: {leftover}"

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def not_found_error() -> httpx.ConnectError:
    return httpx.ConnectError("[Errno -2] Name or service not known")


class FakeClock:
    def __init__(self, now_millis: int = NOW_MILLIS):
        self.now = now_millis

    def now_millis(self) -> int:
        return self.now


class FakeCommandRunner:
    def __init__(self, result: CommandResult = None):
        self.result = result
        self.calls = []

    async def __call__(self, *args: str) -> CommandResult:
        self.calls.append(args)
        if self.result is None:
            raise FileNotFoundError(f"{args[0]} not found on PATH")
        return self.result


@pytest.fixture(autouse=True)
def advisory_isolation():
    """Give each test a fresh view of the process-wide advisory registry."""
    original = set(ADVISORIES.emitted)
    ADVISORIES.emitted.clear()
    try:
        yield
    finally:
        ADVISORIES.emitted.clear()
        ADVISORIES.emitted.update(original)


@pytest.fixture
def server() -> MockServer:
    return MockServer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def environ() -> dict:
    return {}


@pytest.fixture
def collaborators(server, clock, runner, environ) -> AuthCollaborators:
    return AuthCollaborators(
        http_client=server.client(),
        command_runner=runner,
        clock=clock,
        environ=environ,
        platform="linux",
    )


@pytest.fixture(scope="session")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(private_key) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def private_json_path(tmp_path) -> Path:
    path = tmp_path / "private.json"
    path.write_text(json.dumps(create_jwt_json()))
    return path


@pytest.fixture
def refresh_json_path(tmp_path) -> Path:
    path = tmp_path / "refresh.json"
    path.write_text(json.dumps(create_refresh_json()))
    return path
