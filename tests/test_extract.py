from conftest import SHA_A, SHA_B, pod_manifest

from commitstatus.extract import (
    IncompleteIdentity,
    SkipReason,
    extract_build_identity,
)
from commitstatus.model import BuildIdentity, WorkloadInstance
from commitstatus.naming import pipeline_activity_name, status_record_name, to_valid_name


def extract(manifest, **kwargs):
    return extract_build_identity(WorkloadInstance.from_pod(manifest), **kwargs)


def test_pull_request_uses_pull_sha_and_pr_branch():
    identity = extract(pod_manifest())

    assert isinstance(identity, BuildIdentity)
    assert identity.owner == "jenkins-x"
    assert identity.repo == "demo"
    assert identity.pull_request == "PR-7"
    assert identity.branch == "PR-7"
    assert identity.sha == SHA_A
    assert identity.build_number == "1"
    assert identity.source_url == "https://github.com/jenkins-x/demo.git"


def test_branch_build_uses_base_sha():
    identity = extract(pod_manifest(PULL_NUMBER="", PULL_PULL_SHA=""))

    assert isinstance(identity, BuildIdentity)
    assert identity.pull_request == ""
    assert identity.branch == "master"
    assert identity.sha == SHA_B


def test_legacy_build_label_is_accepted():
    manifest = pod_manifest(labels={"build.knative.dev/buildName": "demo"})
    assert isinstance(extract(manifest), BuildIdentity)


def test_pod_without_build_label_is_not_applicable():
    result = extract(pod_manifest(labels={"app": "web"}))

    assert result == IncompleteIdentity(
        SkipReason.not_a_build, "jenkins-x-demo-pr-7-1-abcde"
    )


def test_missing_build_number_is_incomplete():
    result = extract(pod_manifest(JX_BUILD_NUMBER=None))

    assert isinstance(result, IncompleteIdentity)
    assert result.reason == SkipReason.incomplete


def test_missing_both_shas_is_incomplete():
    result = extract(pod_manifest(PULL_PULL_SHA="", PULL_BASE_SHA=""))

    assert isinstance(result, IncompleteIdentity)
    assert result.reason == SkipReason.incomplete


def test_pull_request_without_pull_sha_is_missing_commit_sha():
    result = extract(pod_manifest(PULL_PULL_SHA=""))

    assert isinstance(result, IncompleteIdentity)
    assert result.reason == SkipReason.missing_commit_sha


def test_custom_build_number_variable():
    manifest = pod_manifest(JX_BUILD_NUMBER=None, BUILD_NUMBER="12")

    assert isinstance(extract(manifest), IncompleteIdentity)
    identity = extract(manifest, build_number_var="BUILD_NUMBER")
    assert isinstance(identity, BuildIdentity)
    assert identity.build_number == "12"


def test_env_is_collected_across_init_containers():
    manifest = pod_manifest(REPO_NAME=None)
    manifest["spec"]["initContainers"].append(
        {"name": "other", "env": [{"name": "REPO_NAME", "value": "demo"}]}
    )

    identity = extract(manifest)
    assert isinstance(identity, BuildIdentity)
    assert identity.repo == "demo"


def test_to_valid_name():
    assert to_valid_name("Jenkins-X/Demo--PR-7_build") == "jenkins-x-demo-pr-7-build"
    assert to_valid_name("--a..b--") == "a-b"


def test_record_and_activity_names():
    assert status_record_name("Jenkins-X", "demo", "PR-7", "lint") == (
        "jenkins-x-demo-pr-7-lint"
    )
    assert pipeline_activity_name("jenkins-x", "demo", "master", "3") == (
        "jenkins-x-demo-master-3"
    )
