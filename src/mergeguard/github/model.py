from datetime import datetime
from typing import Optional, Type

import pydantic

CHECK_RUN_NAME = "mergeguard"
# 'pending' is documented but rejected by the API, so unfinished gates are 'queued'
CHECK_RUN_INITIAL_STATUS = "queued"
CHECK_RUN_COMPLETED_STATUS = "completed"
CHECK_RUN_CONCLUSION = "success"
CHECK_RUN_INITIAL_TITLE = "Waiting for other checks to complete"
CHECK_RUN_PENDING_TITLE = "Waiting for {count} other checks to complete"
CHECK_RUN_COMPLETED_TITLE = "All status checks have passed"
CHECK_RUN_SUMMARY = "Will block merging until all other checks have completed"


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


class Repository(Model):
    id: int
    name: str
    full_name: str


class Installation(Model):
    id: int


class App(Model):
    id: int
    client_id: Optional[str] = None
    slug: Optional[str] = None
    name: Optional[str] = None


class BranchRef(Model):
    ref: str
    sha: str
    label: Optional[str] = None


class PullRequest(Model):
    number: int
    head: BranchRef
    title: Optional[str] = None

    def __str__(self) -> str:
        return f"PR(#{self.number}, {self.head.sha})"


class CheckRunOutput(Model):
    title: Optional[str] = None
    summary: Optional[str] = None


class CheckRun(Model):
    id: int = 0
    name: str
    head_sha: str
    status: str = CHECK_RUN_INITIAL_STATUS
    conclusion: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    output: Optional[CheckRunOutput] = None
    app: Optional[App] = None

    @property
    def is_successful(self) -> bool:
        return self.status == "completed" and self.conclusion in ("success", "skipped")

    def is_owned_by(self, client_id: str) -> bool:
        return self.app is not None and self.app.client_id == client_id

    def to_payload(self) -> dict:
        return self.model_dump(
            include={"name", "head_sha", "status", "conclusion", "output"},
            exclude_none=True,
            mode="json",
        )

    @classmethod
    def new_gate(cls: Type["CheckRun"], commit: str) -> "CheckRun":
        return cls(
            name=CHECK_RUN_NAME,
            head_sha=commit,
            status=CHECK_RUN_INITIAL_STATUS,
            output=CheckRunOutput(
                title=CHECK_RUN_INITIAL_TITLE, summary=CHECK_RUN_SUMMARY
            ),
        )

    def __str__(self) -> str:
        return f"CheckRun({self.name}, {self.id}, {self.status}/{self.conclusion})"


class Issue(Model):
    id: int
    number: int


class Comment(Model):
    id: int
    body: str


class PullRequestEvent(Model):
    action: str
    number: int
    pull_request: PullRequest
    repository: Repository
    installation: Optional[Installation] = None


class CheckRunEvent(Model):
    action: str
    check_run: CheckRun
    repository: Repository
    installation: Optional[Installation] = None


class IssueCommentEvent(Model):
    action: str
    issue: Issue
    comment: Comment
    repository: Repository
    installation: Optional[Installation] = None


class TokenResponse(Model):
    token: str
    expires_at: datetime
