from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union

from sanic.log import logger

from commitstatus.model import BuildIdentity, WorkloadInstance

LABEL_BUILD_NAME = "build-name"
LABEL_OLD_BUILD_NAME = "build.knative.dev/buildName"

DEFAULT_BUILD_NUMBER_VAR = "JX_BUILD_NUMBER"


class SkipReason(Enum):
    not_a_build = "not_a_build"
    incomplete = "incomplete"
    missing_commit_sha = "missing_commit_sha"


@dataclass(frozen=True)
class IncompleteIdentity:
    reason: SkipReason
    pod_name: str


ExtractionResult = Union[BuildIdentity, IncompleteIdentity]


def build_name(instance: WorkloadInstance) -> str:
    return instance.labels.get(LABEL_BUILD_NAME) or instance.labels.get(
        LABEL_OLD_BUILD_NAME, ""
    )


def collect_env(instance: WorkloadInstance) -> Dict[str, str]:
    env: Dict[str, str] = {}
    for container in instance.init_containers:
        for var in container.env:
            env[var.name] = var.value
    return env


def extract_build_identity(
    instance: WorkloadInstance,
    build_number_var: str = DEFAULT_BUILD_NUMBER_VAR,
) -> ExtractionResult:
    if not build_name(instance):
        return IncompleteIdentity(SkipReason.not_a_build, instance.name)

    env = collect_env(instance)
    owner = env.get("REPO_OWNER", "")
    repo = env.get("REPO_NAME", "")
    pull_number = env.get("PULL_NUMBER", "")
    pull_sha = env.get("PULL_PULL_SHA", "")
    base_sha = env.get("PULL_BASE_SHA", "")
    build_number = env.get(build_number_var, "")
    source_url = env.get("SOURCE_URL", "")
    branch = env.get("PULL_BASE_REF", "")

    if not (owner and repo and build_number and (base_sha or pull_sha)):
        return IncompleteIdentity(SkipReason.incomplete, instance.name)

    pull_request = ""
    sha = base_sha
    if pull_number:
        pull_request = f"PR-{pull_number}"
        sha = pull_sha
        branch = pull_request

    logger.debug(
        "Build pod pod=%s owner=%s repo=%s build=%s base_sha=%s pull_sha=%s pr=%s source=%s",
        instance.name,
        owner,
        repo,
        build_number,
        base_sha,
        pull_sha,
        pull_request,
        source_url,
    )

    if not sha:
        logger.warning("No sha on %s, not upserting commit status", instance.name)
        return IncompleteIdentity(SkipReason.missing_commit_sha, instance.name)

    return BuildIdentity(
        pod_name=instance.name,
        owner=owner,
        repo=repo,
        branch=branch,
        pull_request=pull_request,
        sha=sha,
        build_number=build_number,
        source_url=source_url,
    )
