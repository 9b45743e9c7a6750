from dataclasses import dataclass
from enum import Enum
import logging
from typing import Iterable, Optional, Tuple

from mergeguard.github.model import (
    CHECK_RUN_COMPLETED_STATUS,
    CHECK_RUN_COMPLETED_TITLE,
    CHECK_RUN_CONCLUSION,
    CHECK_RUN_INITIAL_STATUS,
    CHECK_RUN_PENDING_TITLE,
    CHECK_RUN_SUMMARY,
    CheckRun,
    CheckRunOutput,
)

logger = logging.getLogger("mergeguard")


@dataclass(frozen=True)
class AggregationResult:
    uncompleted: int
    own_check_run: Optional[CheckRun] = None


class GateAction(Enum):
    create = "create"
    update = "update"
    noop = "noop"


@dataclass
class GateDecision:
    action: GateAction
    check_run: CheckRun


def aggregate(check_runs: Iterable[CheckRun], client_id: str) -> AggregationResult:
    """
    Count the check runs that are not (completed, success|skipped) and pick
    out the gate check run created by the app with ``client_id``. If the app
    owns several runs on the commit, the first one wins.
    """
    check_runs = list(check_runs)
    if len(check_runs) == 0:
        logger.warning("Received empty check-runs list")
        return AggregationResult(uncompleted=0)

    uncompleted = 0
    own_check_run: Optional[CheckRun] = None

    for run in check_runs:
        if run.is_owned_by(client_id):
            if own_check_run is None:
                own_check_run = run
                logger.debug("Found own check run: %d", run.id)
            else:
                logger.warning(
                    "Found multiple check runs created by this app: '%s' and '%s', commit: '%s'",
                    own_check_run.name,
                    run.name,
                    run.head_sha,
                )
            continue

        if run.is_successful:
            logger.debug("Check run '%s' is completed successfully", run.name)
        elif run.status == "completed":
            logger.debug(
                "Check run '%s' is completed not successful: '%s'",
                run.name,
                run.conclusion or "unknown",
            )
            uncompleted += 1
        else:
            logger.debug(
                "Check run '%s' is not completed, status: %s", run.name, run.status
            )
            uncompleted += 1

    return AggregationResult(uncompleted=uncompleted, own_check_run=own_check_run)


def desired_state(uncompleted: int) -> Tuple[str, Optional[str], str]:
    if uncompleted == 0:
        return (
            CHECK_RUN_COMPLETED_STATUS,
            CHECK_RUN_CONCLUSION,
            CHECK_RUN_COMPLETED_TITLE,
        )
    return (
        CHECK_RUN_INITIAL_STATUS,
        None,
        CHECK_RUN_PENDING_TITLE.format(count=uncompleted),
    )


def apply_status(check_run: CheckRun, uncompleted: int) -> bool:
    """
    Bring ``check_run`` in line with the number of uncompleted sibling runs.
    Mutates the run in place and returns whether anything changed.
    """
    status, conclusion, title = desired_state(uncompleted)

    changed = False

    if check_run.status != status:
        changed = True
        check_run.status = status
    if check_run.conclusion != conclusion:
        changed = True
        check_run.conclusion = conclusion

    if check_run.output is None:
        changed = True
        check_run.output = CheckRunOutput(title=title, summary=CHECK_RUN_SUMMARY)
    elif check_run.output.title != title:
        changed = True
        check_run.output.title = title

    return changed


def decide_update(
    uncompleted: int, existing: Optional[CheckRun], commit: str = ""
) -> GateDecision:
    if existing is None:
        check_run = CheckRun.new_gate(commit)
        apply_status(check_run, uncompleted)
        return GateDecision(GateAction.create, check_run)

    if apply_status(existing, uncompleted):
        return GateDecision(GateAction.update, existing)

    return GateDecision(GateAction.noop, existing)
