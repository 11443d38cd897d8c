from __future__ import annotations

from contextlib import asynccontextmanager
import re
from typing import AsyncIterator, Optional

import aiohttp
import cachetools
import gidgethub
from gidgethub import aiohttp as gh_aiohttp
from sanic.log import logger

from commitstatus.errors import InvalidGitURLError, NotifyError
from commitstatus.github.api import API
from commitstatus.github.model import CommitStatusPayload, RepoSlug
from commitstatus.model import CommitRef, StatusState

MAX_DESCRIPTION_LENGTH = 140

_GIT_URL = re.compile(
    r"""^(?:
        (?:https?|ssh|git)://(?:[^@/]+@)?[^/]+/   # scheme://[user@]host/
        |[^@/]+@[^:/]+:                           # user@host:
    )
    (?P<owner>[^/]+)/(?P<name>[^/]+?)
    (?:\.git)?/?$""",
    re.VERBOSE,
)


def parse_git_url(url: str) -> RepoSlug:
    match = _GIT_URL.match(url.strip())
    if match is None:
        raise InvalidGitURLError(url)
    return RepoSlug(owner=match.group("owner"), name=match.group("name"))


def truncate(text: str, length: int = MAX_DESCRIPTION_LENGTH) -> str:
    if len(text) <= length:
        return text
    return text[: length - 3] + "..."


class GitHubNotifier:
    def __init__(
        self,
        api: API,
        *,
        target_url: Optional[str] = None,
        dry_run: bool = False,
    ):
        self.api = api
        self.target_url = target_url
        self.dry_run = dry_run

    async def notify(
        self,
        commit: CommitRef,
        state: StatusState,
        description: str,
        comment: str,
        context: str,
    ) -> None:
        repo = parse_git_url(commit.url)
        payload = CommitStatusPayload(
            state=state,
            context=context,
            description=truncate(description),
            target_url=self.target_url,
        )
        number = commit.pull_request_number

        if self.dry_run:
            logger.info(
                "Would post status repo=%s sha=%s context=%s state=%s comment=%s",
                repo,
                commit.sha,
                context,
                state,
                bool(comment and number is not None),
            )
            return

        try:
            await self.api.post_status(repo.url, commit.sha, payload)
            if comment and number is not None:
                await self.api.post_comment(repo.url, number, comment)
        except gidgethub.GitHubException as exc:
            raise NotifyError(
                f"Posting {state} status for {context} on {repo}@{commit.sha} failed: {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc
        logger.info(
            "Posted status repo=%s sha=%s context=%s state=%s",
            repo,
            commit.sha,
            context,
            state,
        )


@asynccontextmanager
async def github_client(
    token: Optional[str],
    *,
    base_url: str = "https://api.github.com",
    cache: Optional[cachetools.LRUCache] = None,
) -> AsyncIterator[gh_aiohttp.GitHubAPI]:
    async with aiohttp.ClientSession() as session:
        yield gh_aiohttp.GitHubAPI(
            session,
            "commitstatus",
            oauth_token=token,
            cache=cache,
            base_url=base_url,
        )
