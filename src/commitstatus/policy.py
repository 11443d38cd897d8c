from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import cachetools
import pydantic
import yaml
from sanic.log import logger


class ContextResolver(Protocol):
    async def get_required_contexts(self, owner: str, repo: str) -> List[str]: ...


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", populate_by_name=True)


class Policy(Model):
    protect: Optional[bool] = None
    required_contexts: List[str] = pydantic.Field(
        default_factory=list, alias="required-contexts"
    )


class RepoPolicy(Policy):
    pass


class OrgPolicy(Policy):
    repos: Dict[str, RepoPolicy] = pydantic.Field(default_factory=dict)


class BranchProtection(Policy):
    orgs: Dict[str, OrgPolicy] = pydantic.Field(default_factory=dict)

    def required_contexts_for(self, owner: str, repo: str) -> List[str]:
        org = self.orgs.get(owner) or OrgPolicy()
        repo_policy = org.repos.get(repo) or RepoPolicy()

        protect = self.protect
        for policy in (org, repo_policy):
            if policy.protect is not None:
                protect = policy.protect
        if protect is False:
            return []

        return _ordered_unique(
            self.required_contexts + org.required_contexts + repo_policy.required_contexts
        )


class PolicyFile(Model):
    branch_protection: BranchProtection = pydantic.Field(
        default_factory=BranchProtection, alias="branch-protection"
    )


def _ordered_unique(contexts: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for context in contexts:
        if context and context not in seen:
            seen.add(context)
            result.append(context)
    return result


def parse_policy(raw: str) -> BranchProtection:
    data = yaml.safe_load(io.StringIO(raw))
    if data is None:
        return BranchProtection()
    return PolicyFile.model_validate(data).branch_protection


class BranchProtectionPolicy:
    """Required contexts read from a prow-style branch protection file."""

    def __init__(self, path: Path | str, cache_seconds: float = 60.0):
        self.path = Path(path)
        self._cache: cachetools.TTLCache = cachetools.TTLCache(
            maxsize=1, ttl=max(cache_seconds, 0.001)
        )

    def load(self) -> BranchProtection:
        cached = self._cache.get(self.path)
        if cached is not None:
            return cached
        logger.debug("Loading branch protection policy from %s", self.path)
        policy = parse_policy(self.path.read_text())
        self._cache[self.path] = policy
        return policy

    async def get_required_contexts(self, owner: str, repo: str) -> List[str]:
        contexts = self.load().required_contexts_for(owner, repo)
        logger.debug("Using contexts %s for %s/%s", contexts, owner, repo)
        return contexts


class StaticContextResolver:
    def __init__(self, contexts: Iterable[str] = ()):
        self.contexts = _ordered_unique(contexts)

    async def get_required_contexts(self, owner: str, repo: str) -> List[str]:
        return list(self.contexts)
