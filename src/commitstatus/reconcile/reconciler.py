from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, TypeVar

from sanic.log import logger

from commitstatus.errors import (
    AlreadyExistsError,
    ConflictError,
    MultipleStatusDetailsError,
    NotFoundError,
)
from commitstatus.extract import (
    DEFAULT_BUILD_NUMBER_VAR,
    IncompleteIdentity,
    extract_build_identity,
)
from commitstatus.metric import conflict_retry_counter, upsert_counter
from commitstatus.model import (
    BuildIdentity,
    CommitRef,
    ResourceReference,
    StatusDetail,
    StatusRecord,
    SubCheck,
    WorkloadInstance,
)
from commitstatus import naming
from commitstatus.policy import ContextResolver
from commitstatus.storage import ActivityLookup, RecordStore

UpsertAction = Literal["created", "updated", "unchanged"]

R = TypeVar("R")


@dataclass(frozen=True)
class UpsertResult:
    name: str
    action: UpsertAction
    record: StatusRecord
    sha: str = ""

    @property
    def changed(self) -> bool:
        return self.action != "unchanged"


class StatusReconciler:
    def __init__(
        self,
        *,
        store: RecordStore,
        activities: ActivityLookup,
        resolver: ContextResolver,
        build_number_var: str = DEFAULT_BUILD_NUMBER_VAR,
        pull_requests_only: bool = False,
        max_attempts: int = 3,
    ):
        self.store = store
        self.activities = activities
        self.resolver = resolver
        self.build_number_var = build_number_var
        self.pull_requests_only = pull_requests_only
        self.max_attempts = max(1, max_attempts)

    async def on_workload_instance(
        self, instance: WorkloadInstance
    ) -> List[UpsertResult]:
        identity = extract_build_identity(instance, self.build_number_var)
        if isinstance(identity, IncompleteIdentity):
            logger.debug(
                "Skipping pod=%s reason=%s", identity.pod_name, identity.reason.value
            )
            return []
        if self.pull_requests_only and not identity.pull_request:
            logger.debug("Skipping pod=%s reason=not_a_pull_request", instance.name)
            return []

        contexts = await self.resolver.get_required_contexts(
            identity.owner, identity.repo
        )
        if not contexts:
            logger.debug(
                "No required contexts for %s/%s, skipping pod=%s",
                identity.owner,
                identity.repo,
                instance.name,
            )
            return []
        logger.info(
            "Reconciling pod=%s repo=%s/%s branch=%s sha=%s contexts=%s",
            instance.name,
            identity.owner,
            identity.repo,
            identity.branch,
            identity.sha,
            contexts,
        )

        results = []
        for context in contexts:
            results.append(await self.reconcile_context(identity, context))
        return results

    async def reconcile_context(
        self, identity: BuildIdentity, context: str
    ) -> UpsertResult:
        return await self.upsert_status_check(
            name=naming.status_record_name(
                identity.owner, identity.repo, identity.branch, context
            ),
            pipeline_activity_name=naming.pipeline_activity_name(
                identity.owner, identity.repo, identity.branch, identity.build_number
            ),
            url=identity.source_url,
            sha=identity.sha,
            pull_request=identity.pull_request,
            context=context,
        )

    async def upsert_status_check(
        self,
        *,
        name: str,
        pipeline_activity_name: str,
        url: str,
        sha: str,
        pull_request: str,
        context: str,
    ) -> UpsertResult:
        if not name:
            raise ValueError("Must supply a commit status name")

        result = self._with_retry(
            name,
            lambda: self._upsert_once(
                name=name,
                pipeline_activity_name=pipeline_activity_name,
                url=url,
                sha=sha,
                pull_request=pull_request,
                context=context,
            ),
        )
        upsert_counter.labels(action=result.action).inc()
        return result

    async def record_results(
        self, name: str, sha: str, checks: List[SubCheck]
    ) -> StatusRecord:
        """Mark the detail for ``sha`` as checked with the given sub-checks."""

        def apply() -> StatusRecord:
            record = self.store.get(name)
            if record is None:
                raise NotFoundError(name)
            matches = record.indices_for_sha(sha)
            if not matches:
                raise NotFoundError(f"{name}@{sha}")
            if len(matches) > 1:
                raise MultipleStatusDetailsError(name, sha, matches)
            detail = record.items[matches[0]]
            record.items[matches[0]] = detail.model_copy(
                update={"checked": True, "items": list(checks)}
            )
            return self.store.update(record)

        record = self._with_retry(name, apply)
        logger.info(
            "Recorded %d check results record=%s sha=%s", len(checks), name, sha
        )
        return record

    def _with_retry(self, name: str, fn: Callable[[], R]) -> R:
        attempt = 1
        while True:
            try:
                return fn()
            except (ConflictError, AlreadyExistsError):
                if attempt >= self.max_attempts:
                    raise
                attempt += 1
                conflict_retry_counter.inc()
                logger.info(
                    "Commit status %s changed concurrently, retrying (attempt %d/%d)",
                    name,
                    attempt,
                    self.max_attempts,
                )

    def _upsert_once(
        self,
        *,
        name: str,
        pipeline_activity_name: str,
        url: str,
        sha: str,
        pull_request: str,
        context: str,
    ) -> UpsertResult:
        record = self.store.get(name)
        create = record is None
        if not create:
            logger.debug("Commit status already exists for %s", name)

        activity_ref = ResourceReference()
        activity = self.activities.get_activity(pipeline_activity_name)
        if activity is not None:
            activity_ref = activity.to_reference()

        matches: List[int] = record.indices_for_sha(sha) if record else []
        detail: Optional[StatusDetail] = None
        update = False
        if len(matches) == 1:
            detail = record.items[matches[0]]
            # a newer build for the same sha supersedes the stored one
            if detail.pipeline_activity.uid != activity_ref.uid:
                update = True
        elif len(matches) > 1:
            raise MultipleStatusDetailsError(name, sha, matches)

        if create or update:
            detail = StatusDetail(
                checked=False,
                commit=CommitRef(url=url, sha=sha, pull_request=pull_request),
                pipeline_activity=activity_ref,
                context=context,
            )

        if create:
            logger.info(
                "Creating commit status %s for pipeline activity %s",
                name,
                pipeline_activity_name,
            )
            record = StatusRecord(
                name=name,
                labels={"lastCommitSha": sha},
                items=[detail],
            )
            return UpsertResult(name, "created", self.store.create(record), sha)

        if update:
            logger.info(
                "Resetting commit status %s for pipeline activity %s",
                name,
                pipeline_activity_name,
            )
            record.items[matches[0]] = detail
            return UpsertResult(name, "updated", self.store.update(record), sha)

        if not matches:
            logger.debug(
                "No status detail for sha %s on %s, leaving it as is", sha, name
            )
        return UpsertResult(name, "unchanged", record, sha)
