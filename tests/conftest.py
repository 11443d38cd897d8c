from typing import Dict, Optional

import pytest

from commitstatus.model import CommitRef, StatusState
from commitstatus.storage import StatusStore

SHA_A = "a" * 40
SHA_B = "b" * 40


def pod_manifest(
    name: str = "jenkins-x-demo-pr-7-1-abcde",
    labels: Optional[Dict[str, str]] = None,
    **env: str,
) -> dict:
    values = {
        "REPO_OWNER": "jenkins-x",
        "REPO_NAME": "demo",
        "PULL_NUMBER": "7",
        "PULL_PULL_SHA": SHA_A,
        "PULL_BASE_SHA": SHA_B,
        "PULL_BASE_REF": "master",
        "JX_BUILD_NUMBER": "1",
        "SOURCE_URL": "https://github.com/jenkins-x/demo.git",
    }
    values.update(env)
    return {
        "metadata": {
            "name": name,
            "labels": {"build-name": "demo-build"} if labels is None else labels,
        },
        "spec": {
            "initContainers": [
                {
                    "name": "build-step-git-source",
                    "env": [
                        {"name": key, "value": value}
                        for key, value in values.items()
                        if value is not None
                    ],
                }
            ]
        },
    }


class RecordingNotifier:
    def __init__(self, fail_states=()):
        self.fail_states = set(fail_states)
        self.calls = []

    async def notify(
        self,
        commit: CommitRef,
        state: StatusState,
        description: str,
        comment: str,
        context: str,
    ) -> None:
        self.calls.append((commit, state, description, comment, context))
        if state in self.fail_states:
            raise RuntimeError(f"cannot post {state}")


class StaticResolver:
    def __init__(self, contexts):
        self.contexts = list(contexts)
        self.calls = []

    async def get_required_contexts(self, owner, repo):
        self.calls.append((owner, repo))
        return list(self.contexts)


@pytest.fixture
def store(tmp_path):
    store = StatusStore(tmp_path / "commitstatus.sqlite3")
    store.initialize()
    return store
