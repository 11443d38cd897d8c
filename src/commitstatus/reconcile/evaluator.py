from __future__ import annotations

from typing import List, Optional

from sanic.log import logger
from tabulate import tabulate

from commitstatus.metric import notify_counter
from commitstatus.model import StatusDetail, StatusRecord
from commitstatus.reconcile.types import Notification, Notifier

FAILURE_DESCRIPTION = "Some commit status checks failed"
ERROR_DESCRIPTION = "Internal Error performing commit status updates"
RERUN_COMMAND = "`/test this`"

FAILURE_HEADER = (
    "The following commit status checks **failed**, "
    "say `/retest` to rerun them all:"
)

HELP_FOOTER = """<details>

Instructions for interacting with me using PR comments are available [here](https://git.k8s.io/community/contributors/guide/pull-requests.md).  If you have questions or suggestions related to my behavior, please file an issue against the [kubernetes/test-infra](https://github.com/kubernetes/test-infra/issues/new?title=Prow%20issue:) repository. I understand the commands that are listed [here](https://go.k8s.io/bot-commands).
</details>"""


def failure_comment(detail: StatusDetail) -> str:
    rows = [
        (
            check.name,
            check.description,
            detail.commit.sha,
            detail.pipeline_activity.name or "-",
            RERUN_COMMAND,
        )
        for check in detail.failed_checks
    ]
    table = tabulate(
        rows,
        headers=("Name", "Description", "Commit", "Details", "Rerun command"),
        tablefmt="github",
        disable_numparse=True,
    )
    return "\n\n".join([FAILURE_HEADER, table, HELP_FOOTER])


def evaluate(detail: StatusDetail) -> Notification:
    if not detail.checked:
        return Notification(
            state="pending",
            description=f"Waiting for {detail.context} to complete",
        )
    if not detail.failed_checks:
        return Notification(
            state="success",
            description=f"{detail.context} completed successfully",
        )
    return Notification(
        state="failure",
        description=FAILURE_DESCRIPTION,
        comment=failure_comment(detail),
    )


class StatusEvaluator:
    def __init__(self, *, notifier: Notifier):
        self.notifier = notifier

    async def on_status_record(
        self, record: StatusRecord, sha: Optional[str] = None
    ) -> List[Notification]:
        """Notify the state of the detail for ``sha``, or of every detail in
        ``record`` when no sha is given.

        The first failing notification stops the loop. A best-effort
        ``error`` status is posted for that detail and the original exception
        is re-raised, even when the error status cannot be posted either.
        """
        details = record.items
        if sha is not None:
            details = [detail for detail in details if detail.commit.sha == sha]
            if not details:
                logger.debug("No status detail for sha %s on %s", sha, record.name)
        sent = []
        for detail in details:
            try:
                sent.append(await self.update(detail))
            except Exception:
                logger.error(
                    "Commit status update failed record=%s sha=%s context=%s",
                    record.name,
                    detail.commit.sha,
                    detail.context,
                    exc_info=True,
                )
                await self._notify_error(detail)
                raise
        return sent

    async def update(self, detail: StatusDetail) -> Notification:
        notification = evaluate(detail)
        logger.debug(
            "Notifying sha=%s context=%s state=%s",
            detail.commit.sha,
            detail.context,
            notification.state,
        )
        try:
            await self.notifier.notify(
                detail.commit,
                notification.state,
                notification.description,
                notification.comment,
                detail.context,
            )
        except Exception:
            notify_counter.labels(state=notification.state, result="error").inc()
            raise
        notify_counter.labels(state=notification.state, result="ok").inc()
        return notification

    async def _notify_error(self, detail: StatusDetail) -> None:
        try:
            await self.notifier.notify(
                detail.commit, "error", ERROR_DESCRIPTION, "", detail.context
            )
        except Exception:  # noqa: BLE001
            notify_counter.labels(state="error", result="error").inc()
            logger.warning(
                "Could not report internal error sha=%s context=%s",
                detail.commit.sha,
                detail.context,
                exc_info=True,
            )
        else:
            notify_counter.labels(state="error", result="ok").inc()
