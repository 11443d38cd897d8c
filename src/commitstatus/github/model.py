from datetime import datetime
from typing import Literal, Optional

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


class RepoSlug(Model):
    owner: str
    name: str

    @property
    def url(self) -> str:
        return f"/repos/{self.owner}/{self.name}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


class CommitStatusPayload(Model):
    state: Literal["failure", "pending", "success", "error"]
    context: str
    description: str = pydantic.Field(max_length=140)
    target_url: Optional[str] = None


class PostedStatus(Model):
    id: int
    state: Literal["failure", "pending", "success", "error"]
    context: str
    description: Optional[str] = None
    url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IssueComment(Model):
    id: int
    body: str
    html_url: Optional[str] = None
