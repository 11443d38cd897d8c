from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Literal, Mapping, Optional

import pydantic

from commitstatus.errors import DuplicateCommitStatusError

StatusState = Literal["pending", "success", "failure", "error"]


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(
        extra="forbid", populate_by_name=True, validate_assignment=True
    )


class CommitRef(Model):
    url: str = ""
    sha: str = ""
    pull_request: str = ""

    @property
    def pull_request_number(self) -> Optional[int]:
        prefix, _, number = self.pull_request.partition("-")
        if prefix != "PR" or not number.isdigit():
            return None
        return int(number)


class ResourceReference(Model):
    name: str = ""
    kind: str = ""
    uid: str = ""
    api_version: str = ""


class PipelineActivity(Model):
    name: str
    kind: str = "PipelineActivity"
    uid: str
    api_version: str = "jenkins.io/v1"

    def to_reference(self) -> ResourceReference:
        return ResourceReference(
            name=self.name,
            kind=self.kind,
            uid=self.uid,
            api_version=self.api_version,
        )


class SubCheck(Model):
    name: str
    description: str = ""
    passed: bool = pydantic.Field(False, alias="pass")


class StatusDetail(Model):
    commit: CommitRef = pydantic.Field(default_factory=CommitRef)
    pipeline_activity: ResourceReference = pydantic.Field(
        default_factory=ResourceReference
    )
    context: str = ""
    checked: bool = False
    items: List[SubCheck] = pydantic.Field(default_factory=list)

    @property
    def failed_checks(self) -> List[SubCheck]:
        return [check for check in self.items if not check.passed]


def duplicate_shas(items: List[StatusDetail]) -> List[str]:
    counts = Counter(item.commit.sha for item in items)
    return [sha for sha, count in counts.items() if count > 1]


class StatusRecord(Model):
    name: str
    labels: Dict[str, str] = pydantic.Field(default_factory=dict)
    items: List[StatusDetail] = pydantic.Field(default_factory=list)
    resource_version: int = 0

    @pydantic.model_validator(mode="after")
    def _check_unique_shas(self) -> StatusRecord:
        duplicates = duplicate_shas(self.items)
        if duplicates:
            raise ValueError(
                f"More than one status detail references sha {duplicates[0]}"
            )
        return self

    def ensure_unique_shas(self) -> None:
        """Raise if two details share a sha.

        ``items`` is a plain list, so in-place mutation bypasses validation;
        writers call this right before persisting.
        """
        duplicates = duplicate_shas(self.items)
        if duplicates:
            raise DuplicateCommitStatusError(duplicates[0])

    def indices_for_sha(self, sha: str) -> List[int]:
        return [i for i, item in enumerate(self.items) if item.commit.sha == sha]


class EnvVar(Model):
    name: str
    value: str = ""


class Container(Model):
    name: str = ""
    env: List[EnvVar] = pydantic.Field(default_factory=list)


class WorkloadInstance(Model):
    name: str
    labels: Dict[str, str] = pydantic.Field(default_factory=dict)
    init_containers: List[Container] = pydantic.Field(default_factory=list)

    @classmethod
    def from_pod(cls, pod: Mapping[str, Any]) -> WorkloadInstance:
        metadata = pod.get("metadata") or {}
        spec = pod.get("spec") or {}
        containers = []
        for container in spec.get("initContainers") or []:
            env = [
                EnvVar(name=e["name"], value=e.get("value") or "")
                for e in container.get("env") or []
            ]
            containers.append(Container(name=container.get("name", ""), env=env))
        return cls(
            name=metadata.get("name", ""),
            labels=metadata.get("labels") or {},
            init_containers=containers,
        )


class BuildIdentity(Model):
    pod_name: str = ""
    owner: str
    repo: str
    branch: str = ""
    pull_request: str = ""
    sha: str = pydantic.Field(min_length=1)
    build_number: str
    source_url: str = ""
