import logging

from mergeguard.auth import TokenCache
from mergeguard.gate import AggregationResult, GateAction, aggregate, decide_update
from mergeguard.github.model import CheckRun
from mergeguard.metric import check_run_post
from mergeguard.queue import Job

logger = logging.getLogger("mergeguard")


class GateClient:
    """
    Runs the gate workflows against the GitHub API: create a pending gate,
    fetch and aggregate sibling check runs, and create or update the gate.
    """

    def __init__(self, gateway, tokens: TokenCache, client_id: str):
        self.gateway = gateway
        self.tokens = tokens
        self.client_id = client_id

    async def create_check_run(
        self, installation_id: int, repo: str, commit: str
    ) -> CheckRun:
        token = await self.tokens.get_token(installation_id)
        check_run_post.labels(action=GateAction.create.value).inc()
        return await self.gateway.create_check_run(
            token, repo, CheckRun.new_gate(commit)
        )

    async def get_check_run_status(
        self, installation_id: int, repo: str, commit: str
    ) -> AggregationResult:
        token = await self.tokens.get_token(installation_id)
        check_runs = await self.gateway.list_check_runs(token, repo, commit)
        logger.debug(
            "Found %d check runs for commit '%s' in repository '%s'",
            len(check_runs),
            commit,
            repo,
        )
        return aggregate(check_runs, self.client_id)

    async def update_check_run(
        self,
        installation_id: int,
        repo: str,
        commit: str,
        status: AggregationResult,
    ) -> GateAction:
        decision = decide_update(status.uncompleted, status.own_check_run, commit)
        check_run_post.labels(action=decision.action.value).inc()

        if decision.action == GateAction.noop:
            logger.debug("No changes to check run status, skipping update")
            return decision.action

        token = await self.tokens.get_token(installation_id)

        if decision.action == GateAction.create:
            logger.warning("No check run found to update, creating a new one")
            await self.gateway.create_check_run(token, repo, decision.check_run)
        else:
            await self.gateway.update_check_run(token, repo, decision.check_run)

        return decision.action

    async def refresh_check_run_status(
        self, installation_id: int, repo: str, commit: str
    ) -> GateAction:
        status = await self.get_check_run_status(installation_id, repo, commit)
        return await self.update_check_run(installation_id, repo, commit, status)

    async def refresh_job(self, job: Job) -> None:
        logger.info("Processing %s", job)
        await self.refresh_check_run_status(job.installation_id, job.repo, job.commit)

    async def get_pull_request_head_commit(
        self, installation_id: int, repo: str, number: int
    ) -> str:
        token = await self.tokens.get_token(installation_id)
        pr = await self.gateway.get_pull_request(token, repo, number)
        return pr.head.sha
