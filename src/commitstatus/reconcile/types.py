from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from commitstatus.model import CommitRef, StatusState


@dataclass(frozen=True)
class Notification:
    state: StatusState
    description: str
    comment: str = ""


class Notifier(Protocol):
    async def notify(
        self,
        commit: CommitRef,
        state: StatusState,
        description: str,
        comment: str,
        context: str,
    ) -> None: ...
