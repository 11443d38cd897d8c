import json
from types import SimpleNamespace

import pytest

from conftest import SHA_A, SHA_B, StaticResolver, pod_manifest

from commitstatus.controller import StatusRecordEvent, WorkloadInstanceEvent
from commitstatus.model import WorkloadInstance
from commitstatus.reconcile import StatusReconciler
from commitstatus.web import (
    process_activity,
    process_results,
    process_workload_event,
)


class FakeController:
    def __init__(self):
        self.events = []

    async def submit(self, event):
        self.events.append(event)


@pytest.fixture
def runtime(store):
    return SimpleNamespace(
        store=store,
        reconciler=StatusReconciler(
            store=store, activities=store, resolver=StaticResolver(["lint"])
        ),
        controller=FakeController(),
    )


async def seed(runtime):
    instance = WorkloadInstance.from_pod(pod_manifest())
    await runtime.reconciler.on_workload_instance(instance)
    return "jenkins-x-demo-pr-7-lint"


@pytest.mark.asyncio
async def test_workload_event_is_queued(runtime):
    code, payload = await process_workload_event(
        runtime, json.dumps(pod_manifest()).encode()
    )

    assert code == 202
    assert payload == {"queued": "jenkins-x-demo-pr-7-1-abcde"}
    (event,) = runtime.controller.events
    assert isinstance(event, WorkloadInstanceEvent)
    assert event.instance.labels == {"build-name": "demo-build"}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"", b"{not json", b"[]", b'{"metadata": {}}'])
async def test_invalid_workload_event_is_rejected(runtime, body):
    code, payload = await process_workload_event(runtime, body)

    assert code == 400
    assert "error" in payload
    assert runtime.controller.events == []


@pytest.mark.asyncio
async def test_results_are_recorded_and_queued(runtime):
    name = await seed(runtime)
    body = json.dumps(
        {
            "sha": SHA_A,
            "checks": [{"name": "lint", "description": "golint", "pass": False}],
        }
    ).encode()

    code, payload = await process_results(runtime, name, body)

    assert code == 202
    assert payload == {"queued": name, "resource_version": 2}
    detail = runtime.store.get(name).items[0]
    assert detail.checked is True
    assert [(c.name, c.passed) for c in detail.items] == [("lint", False)]
    (event,) = runtime.controller.events
    assert isinstance(event, StatusRecordEvent)
    assert event.record.resource_version == 2
    assert event.sha == SHA_A


@pytest.mark.asyncio
async def test_results_for_unknown_record_are_not_found(runtime):
    body = json.dumps({"sha": SHA_A, "checks": []}).encode()

    code, _ = await process_results(runtime, "missing", body)

    assert code == 404


@pytest.mark.asyncio
async def test_results_for_unknown_sha_are_not_found(runtime):
    name = await seed(runtime)
    body = json.dumps({"sha": SHA_B, "checks": []}).encode()

    code, _ = await process_results(runtime, name, body)

    assert code == 404
    assert runtime.controller.events == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body", [b"", b"{}", b'{"sha": ""}', b'{"sha": "abc", "extra": 1}']
)
async def test_invalid_results_are_rejected(runtime, body):
    code, _ = await process_results(runtime, "jenkins-x-demo-pr-7-lint", body)

    assert code == 400


def activity_body(name, uid) -> bytes:
    return json.dumps({"name": name, "uid": uid}).encode()


@pytest.mark.asyncio
async def test_recorded_activity_lets_rebuild_supersede_detail(runtime):
    code, payload = await process_activity(
        runtime, activity_body("jenkins-x-demo-pr-7-1", "uid-1")
    )
    assert code == 200
    assert payload == {"recorded": "jenkins-x-demo-pr-7-1", "uid": "uid-1"}
    first = WorkloadInstance.from_pod(pod_manifest())
    (created,) = await runtime.reconciler.on_workload_instance(first)
    assert created.action == "created"
    assert created.record.items[0].pipeline_activity.uid == "uid-1"

    await process_activity(runtime, activity_body("jenkins-x-demo-pr-7-2", "uid-2"))
    rebuild = WorkloadInstance.from_pod(pod_manifest(JX_BUILD_NUMBER="2"))
    (updated,) = await runtime.reconciler.on_workload_instance(rebuild)

    assert updated.action == "updated"
    detail = runtime.store.get("jenkins-x-demo-pr-7-lint").items[0]
    assert detail.pipeline_activity.name == "jenkins-x-demo-pr-7-2"
    assert detail.pipeline_activity.uid == "uid-2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b"", b"{}", b'{"name": "", "uid": "u"}', b'{"name": "a", "uid": "u", "x": 1}'],
)
async def test_invalid_activity_is_rejected(runtime, body):
    code, _ = await process_activity(runtime, body)

    assert code == 400
