import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from mergeguard.auth import TokenCache
from mergeguard.client import GateClient
from mergeguard.errors import UpstreamError
from mergeguard.github.model import (
    App,
    BranchRef,
    CheckRun,
    PullRequest,
    TokenResponse,
)

CLIENT_ID = "test-client-id"
NOW = datetime(2026, 2, 16, 10, 0, tzinfo=timezone.utc)


class FakeGateway:
    """Records calls in order and answers from canned data."""

    def __init__(
        self,
        check_runs: Optional[List[CheckRun]] = None,
        head_sha: str = "abc123",
        token_lifetime: timedelta = timedelta(hours=1),
        fail: Optional[str] = None,
    ):
        self.calls = []
        self.check_runs = check_runs or []
        self.head_sha = head_sha
        self.token_lifetime = token_lifetime
        self.fail = fail
        self.created: List[CheckRun] = []
        self.updated: List[CheckRun] = []
        self.minted = 0

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.fail == name:
            raise UpstreamError(f"{name} failed", status_code=502)

    async def mint_installation_token(self, jwt, installation_id):
        self._call("mint_installation_token")
        self.minted += 1
        return TokenResponse(
            token=f"token-{installation_id}-{self.minted}",
            expires_at=NOW + self.token_lifetime,
        )

    async def list_check_runs(self, token, repo, commit):
        self._call("list_check_runs")
        return [cr.model_copy(deep=True) for cr in self.check_runs]

    async def create_check_run(self, token, repo, check_run):
        self._call("create_check_run")
        self.created.append(check_run.model_copy(deep=True))
        return check_run.model_copy(update={"id": 1000 + len(self.created)})

    async def update_check_run(self, token, repo, check_run):
        self._call("update_check_run")
        self.updated.append(check_run.model_copy(deep=True))
        return check_run

    async def get_pull_request(self, token, repo, number):
        self._call("get_pull_request")
        return PullRequest(
            number=number, head=BranchRef(ref="feature-branch", sha=self.head_sha)
        )


def make_check_run(
    name: str,
    status: str = "completed",
    conclusion: Optional[str] = "success",
    client_id: str = "other-app",
    id: int = 1,
    head_sha: str = "abc123",
) -> CheckRun:
    return CheckRun(
        id=id,
        name=name,
        head_sha=head_sha,
        status=status,
        conclusion=conclusion,
        app=App(id=42, client_id=client_id, slug="ci", name="CI"),
    )


@pytest.fixture(scope="session")
def private_key() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def gateway():
    return FakeGateway()


def make_client(gateway: FakeGateway, private_key: str) -> GateClient:
    tokens = TokenCache(gateway, CLIENT_ID, private_key, clock=lambda: NOW)
    return GateClient(gateway, tokens, CLIENT_ID)


def sign(secret: str, body: Union[str, bytes]) -> str:
    if isinstance(body, str):
        body = body.encode()
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
