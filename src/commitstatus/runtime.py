from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import cachetools
from sanic.log import logger

from commitstatus.config import SETTINGS, Settings
from commitstatus.controller import Controller
from commitstatus.github import GitHubNotifier, github_client
from commitstatus.github.api import API
from commitstatus.policy import (
    BranchProtectionPolicy,
    ContextResolver,
    StaticContextResolver,
)
from commitstatus.reconcile import Notifier, StatusEvaluator, StatusReconciler
from commitstatus.storage import StatusStore


@dataclass
class Runtime:
    settings: Settings
    store: StatusStore
    reconciler: StatusReconciler
    evaluator: StatusEvaluator
    controller: Controller


def make_resolver(settings: Settings) -> ContextResolver:
    if settings.POLICY_FILE is None:
        logger.warning("No POLICY_FILE configured, no contexts will be required")
        return StaticContextResolver()
    return BranchProtectionPolicy(
        settings.POLICY_FILE, cache_seconds=settings.POLICY_CACHE_SECONDS
    )


def build_runtime(
    settings: Settings,
    *,
    notifier: Notifier,
    store: StatusStore | None = None,
    resolver: ContextResolver | None = None,
) -> Runtime:
    if store is None:
        store = StatusStore(settings.DB_PATH)
        store.initialize()
    reconciler = StatusReconciler(
        store=store,
        activities=store,
        resolver=resolver or make_resolver(settings),
        build_number_var=settings.BUILD_NUMBER_VAR,
        pull_requests_only=settings.PULL_REQUESTS_ONLY,
        max_attempts=settings.RECONCILE_MAX_ATTEMPTS,
    )
    evaluator = StatusEvaluator(notifier=notifier)
    controller = Controller(
        reconciler=reconciler,
        evaluator=evaluator,
        store=store,
        event_timeout=settings.EVENT_TIMEOUT_SECONDS,
        debounce_seconds=settings.DEBOUNCE_SECONDS,
    )
    return Runtime(
        settings=settings,
        store=store,
        reconciler=reconciler,
        evaluator=evaluator,
        controller=controller,
    )


@asynccontextmanager
async def open_runtime(settings: Settings = SETTINGS) -> AsyncIterator[Runtime]:
    if settings.GITHUB_TOKEN is None and not settings.DRY_RUN:
        logger.warning("GITHUB_TOKEN is not set, status posts will be anonymous")
    async with github_client(
        settings.GITHUB_TOKEN,
        base_url=settings.GITHUB_API_URL,
        cache=cachetools.LRUCache(maxsize=500),
    ) as gh:
        notifier = GitHubNotifier(
            API(gh),
            target_url=settings.STATUS_TARGET_URL,
            dry_run=settings.DRY_RUN,
        )
        runtime = build_runtime(settings, notifier=notifier)
        try:
            yield runtime
        finally:
            await runtime.controller.shutdown()
