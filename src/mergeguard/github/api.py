import asyncio
from typing import List

import aiohttp
import pydantic
import gidgethub
from gidgethub.abc import GitHubAPI
from sanic.log import logger

from mergeguard.errors import UpstreamError
from mergeguard.github.model import CheckRun, PullRequest, TokenResponse
from mergeguard.metric import api_call_count

UPSTREAM_FAILURES = (
    gidgethub.GitHubException,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    pydantic.ValidationError,
)


class GitHubGateway:
    """
    Thin wrapper around the handful of GitHub REST endpoints the gate needs.
    Every failure, transport or HTTP status, surfaces as ``UpstreamError``.
    """

    gh: GitHubAPI

    def __init__(self, gh: GitHubAPI):
        self.gh = gh

    def _record(self, endpoint: str) -> None:
        api_call_count.labels(endpoint=endpoint).inc()

    async def mint_installation_token(
        self, jwt: str, installation_id: int
    ) -> TokenResponse:
        self._record("installation_token")
        url = f"/app/installations/{installation_id}/access_tokens"
        logger.info("Fetching installation token from '%s'", url)
        try:
            data = await self.gh.post(url, data=b"", jwt=jwt)
            return TokenResponse.model_validate(data)
        except UPSTREAM_FAILURES as e:
            raise _upstream_error("mint_installation_token", url, e) from e

    async def list_check_runs(
        self, token: str, repo: str, commit: str
    ) -> List[CheckRun]:
        self._record("check_runs")
        url = f"/repos/{repo}/commits/{commit}/check-runs"
        logger.info("Fetching check runs from '%s'", url)
        try:
            return [
                CheckRun.model_validate(item)
                async for item in self.gh.getiter(
                    url, iterable_key="check_runs", oauth_token=token
                )
            ]
        except UPSTREAM_FAILURES as e:
            raise _upstream_error("list_check_runs", url, e) from e

    async def create_check_run(
        self, token: str, repo: str, check_run: CheckRun
    ) -> CheckRun:
        self._record("check_run_create")
        url = f"/repos/{repo}/check-runs"
        logger.info("Creating check-run for '%s' at '%s'", check_run.head_sha, url)
        try:
            data = await self.gh.post(
                url, data=check_run.to_payload(), oauth_token=token
            )
            created = CheckRun.model_validate(data)
        except UPSTREAM_FAILURES as e:
            raise _upstream_error("create_check_run", url, e) from e

        logger.info(
            "Created check-run '%d' for commit '%s'", created.id, created.head_sha
        )
        return created

    async def update_check_run(
        self, token: str, repo: str, check_run: CheckRun
    ) -> CheckRun:
        self._record("check_run_update")
        url = f"/repos/{repo}/check-runs/{check_run.id}"
        logger.info("Updating check-run for '%s' at '%s'", check_run.head_sha, url)
        try:
            data = await self.gh.patch(
                url, data=check_run.to_payload(), oauth_token=token
            )
            updated = CheckRun.model_validate(data)
        except UPSTREAM_FAILURES as e:
            raise _upstream_error("update_check_run", url, e) from e

        logger.info(
            "Updated check-run '%d' for commit '%s'", updated.id, updated.head_sha
        )
        return updated

    async def get_pull_request(
        self, token: str, repo: str, number: int
    ) -> PullRequest:
        self._record("pulls")
        url = f"/repos/{repo}/pulls/{number}"
        logger.info("Fetching pull request from '%s'", url)
        try:
            data = await self.gh.getitem(url, oauth_token=token)
            return PullRequest.model_validate(data)
        except UPSTREAM_FAILURES as e:
            raise _upstream_error("get_pull_request", url, e) from e


def _upstream_error(operation: str, url: str, exc: Exception) -> UpstreamError:
    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, pydantic.ValidationError):
        message = f"Failed to parse response from '{url}' ({operation}): {exc}"
    elif status_code is not None:
        message = f"Request to '{url}' failed with status: {int(status_code)}"
    else:
        message = f"Failed to send request to '{url}': {exc}"
    logger.debug("%s failed: %r", operation, exc)
    return UpstreamError(
        message, status_code=int(status_code) if status_code is not None else None
    )
