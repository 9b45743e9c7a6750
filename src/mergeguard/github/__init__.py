from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import TYPE_CHECKING, Optional, Type, TypeVar

import pydantic
from gidgethub.routing import Router
from gidgethub.sansio import Event

from mergeguard.errors import PayloadError
from mergeguard.github.model import (
    CheckRunEvent,
    Installation,
    IssueCommentEvent,
    PullRequestEvent,
)
from mergeguard.metric import webhook_skipped_counter
from mergeguard.queue import Job, JobQueue

if TYPE_CHECKING:
    from mergeguard.client import GateClient

logger = logging.getLogger("mergeguard")

REFRESH_COMMAND = "/mergeguard refresh"

PULL_REQUEST_ACTIONS = frozenset({"opened", "synchronize"})


class EventKind(Enum):
    pull_request = "pull_request"
    check_run = "check_run"
    issue_comment = "issue_comment"
    unrecognized = "unrecognized"

    @classmethod
    def parse(cls, name: Optional[str]) -> "EventKind":
        if name is None:
            return cls.unrecognized
        try:
            kind = cls(name)
        except ValueError:
            return cls.unrecognized
        return kind


@dataclass
class GateContext:
    client: GateClient
    # jobs are queued for the periodic refresher when set
    queue: Optional[JobQueue] = None

    @property
    def queued(self) -> bool:
        return self.queue is not None


P = TypeVar("P", bound=pydantic.BaseModel)


def parse_payload(model: Type[P], event: Event) -> P:
    try:
        return model.model_validate(event.data)
    except pydantic.ValidationError as e:
        raise PayloadError(f"Failed to parse {event.event} event: {e}") from e


def installation_id(installation: Optional[Installation], event: Event) -> int:
    if installation is None:
        raise PayloadError(f"Missing installation in {event.event} event")
    return installation.id


def create_router() -> Router:
    router = Router()

    @router.register(EventKind.pull_request.value)
    async def on_pull_request(event: Event, ctx: GateContext):
        payload = parse_payload(PullRequestEvent, event)
        logger.debug(
            "Received pull_request event on PR #%d, action: %s",
            payload.number,
            payload.action,
        )

        if payload.action not in PULL_REQUEST_ACTIONS:
            webhook_skipped_counter.labels(
                event=event.event, reason="action"
            ).inc()
            return

        installation = installation_id(payload.installation, event)
        await ctx.client.create_check_run(
            installation,
            payload.repository.full_name,
            payload.pull_request.head.sha,
        )

    @router.register(EventKind.check_run.value)
    async def on_check_run(event: Event, ctx: GateContext):
        payload = parse_payload(CheckRunEvent, event)
        check_run = payload.check_run

        if check_run.is_owned_by(ctx.client.client_id):
            logger.debug("Check run from us, skip handling")
            webhook_skipped_counter.labels(event=event.event, reason="own").inc()
            return

        installation = installation_id(payload.installation, event)
        repo = payload.repository.full_name

        if ctx.queued:
            logger.debug(
                "Check run %s triggers queueing %s@%s",
                check_run.name,
                repo,
                check_run.head_sha,
            )
            await ctx.queue.enqueue(Job(installation, repo, check_run.head_sha))
            return

        await ctx.client.refresh_check_run_status(
            installation, repo, check_run.head_sha
        )

    @router.register(EventKind.issue_comment.value)
    async def on_issue_comment(event: Event, ctx: GateContext):
        payload = parse_payload(IssueCommentEvent, event)

        if payload.action != "created" or REFRESH_COMMAND not in payload.comment.body:
            logger.debug("Comment %d is not a command, ignoring", payload.comment.id)
            webhook_skipped_counter.labels(event=event.event, reason="comment").inc()
            return

        installation = installation_id(payload.installation, event)
        repo = payload.repository.full_name

        logger.info(
            "Refresh requested by comment on %s#%d", repo, payload.issue.number
        )
        commit = await ctx.client.get_pull_request_head_commit(
            installation, repo, payload.issue.number
        )
        await ctx.client.refresh_check_run_status(installation, repo, commit)

    return router
