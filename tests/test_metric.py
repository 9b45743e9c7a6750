import json

import pytest

from mergeguard.github import GateContext, create_router
from mergeguard.metric import (
    check_run_post,
    webhook_counter,
    webhook_skipped_counter,
)
from mergeguard.web import process_webhook

from conftest import CLIENT_ID, FakeGateway, make_client


@pytest.mark.asyncio
async def test_webhook_metrics_track_event_and_skip_reason(private_key):
    ctx = GateContext(client=make_client(FakeGateway(), private_key))
    payload = {
        "action": "completed",
        "installation": {"id": 1},
        "repository": {"id": 1, "name": "repo", "full_name": "org/repo"},
        "check_run": {
            "id": 5,
            "name": "mergeguard",
            "head_sha": "abc123",
            "status": "queued",
            "app": {"id": 1, "client_id": CLIENT_ID},
        },
    }

    received = webhook_counter.labels(event="check_run")
    skipped = webhook_skipped_counter.labels(event="check_run", reason="own")
    received_before = received._value.get()
    skipped_before = skipped._value.get()

    await process_webhook(
        {"X-GitHub-Event": "check_run"},
        json.dumps(payload),
        ctx,
        create_router(),
    )

    assert received._value.get() == received_before + 1
    assert skipped._value.get() == skipped_before + 1


@pytest.mark.asyncio
async def test_gate_decisions_are_counted(private_key):
    client = make_client(FakeGateway(), private_key)
    created = check_run_post.labels(action="create")
    before = created._value.get()

    await client.create_check_run(1, "org/repo", "abc123")

    assert created._value.get() == before + 1
