"""Tests for the LimitRange reconciler"""

# Standard
import logging

# Third Party
from kubernetes import client

# Local
from namespace_watcher.exceptions import NamespaceWatcherFatalError
from namespace_watcher.reconciler import LimitRangeReconciler, Outcome


def test_creates_limit_range_for_new_namespace(reconciler, core_api, policy):
    result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.CREATED
    assert result.ok
    assert result.error is None

    stored = core_api.limit_ranges[("team-a", "default-limits")]
    assert stored.metadata.labels == {"app.kubernetes.io/managed-by": "namespace-watcher"}
    item = stored.spec.limits[0]
    assert item.type == "Pod"
    assert item.max == {"cpu": "500m", "memory": "512Mi", "ephemeral-storage": "2Gi"}
    assert item.min == {"cpu": "100m", "memory": "128Mi", "ephemeral-storage": "1Gi"}


def test_second_reconcile_updates_to_same_body(reconciler, core_api, caplog):
    first = reconciler.reconcile("team-a")
    body_after_create = core_api.limit_ranges[("team-a", "default-limits")].spec

    with caplog.at_level(logging.INFO):
        second = reconciler.reconcile("team-a")
    body_after_update = core_api.limit_ranges[("team-a", "default-limits")].spec

    assert first.outcome == Outcome.CREATED
    assert second.outcome == Outcome.UPDATED
    assert body_after_create == body_after_update
    assert [call[0] for call in core_api.calls] == ["read", "create", "read", "replace"]
    assert "Updated LimitRange default-limits for namespace team-a (unchanged)" in caplog.text


def test_update_overwrites_drifted_spec_and_keeps_metadata(reconciler, core_api, caplog):
    reconciler.reconcile("team-a")
    stored = core_api.limit_ranges[("team-a", "default-limits")]
    stored.metadata.annotations = {"owner": "someone"}
    stored.spec.limits[0].max = {"cpu": "8"}

    with caplog.at_level(logging.INFO):
        result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.UPDATED
    stored = core_api.limit_ranges[("team-a", "default-limits")]
    assert stored.spec.limits[0].max["cpu"] == "500m"
    assert stored.metadata.annotations == {"owner": "someone"}
    _, kwargs = core_api.calls[-1]
    assert kwargs["body"].metadata.resource_version == "1"
    assert "(drifted)" in caplog.text


def test_update_labels_objects_created_elsewhere(reconciler, core_api, policy):
    core_api.limit_ranges[("team-a", "default-limits")] = client.V1LimitRange(
        metadata=client.V1ObjectMeta(
            name="default-limits",
            namespace="team-a",
            labels={"team": "a"},
            resource_version="7",
        ),
        spec=policy.to_limit_range_spec(),
    )

    result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.UPDATED
    assert core_api.limit_ranges[("team-a", "default-limits")].metadata.labels == {
        "team": "a",
        "app.kubernetes.io/managed-by": "namespace-watcher",
    }


def test_matches_policy(reconciler, policy):
    limit_range = reconciler.build_limit_range("team-a")
    assert reconciler.matches_policy(limit_range)

    limit_range.spec.limits[0].max = dict(policy.max, memory="1Gi")
    assert not reconciler.matches_policy(limit_range)

    limit_range.spec = client.V1LimitRangeSpec(limits=[])
    assert not reconciler.matches_policy(limit_range)


def test_read_error_fails_without_writing(reconciler, core_api, caplog):
    core_api.fail_next("read", 500, "Internal Server Error")

    with caplog.at_level(logging.ERROR):
        result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.FAILED
    assert not result.ok
    assert result.error.status == 500
    assert result.error.namespace == "team-a"
    assert not isinstance(result.error, NamespaceWatcherFatalError)
    assert [call[0] for call in core_api.calls] == ["read"]
    assert "team-a" in caplog.text


def test_create_error_fails(reconciler, core_api):
    core_api.fail_next("create", 503, "Service Unavailable")

    result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.FAILED
    assert result.error.status == 503
    assert core_api.limit_ranges == {}


def test_concurrent_change_fails_update(reconciler, core_api):
    reconciler.reconcile("team-a")
    core_api.fail_next("replace", 409, "Conflict")

    result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.FAILED
    assert result.error.status == 409


def test_dry_run_writes_nothing(limit_client, core_api, policy):
    reconciler = LimitRangeReconciler(limit_client, policy, dry_run=True)

    result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.DRY_RUN
    assert result.limit_range.spec == policy.to_limit_range_spec()
    assert core_api.limit_ranges == {}
    assert [call[0] for call in core_api.calls] == ["read"]


def test_dry_run_with_existing_object(limit_client, core_api, policy):
    LimitRangeReconciler(limit_client, policy).reconcile("team-a")
    reconciler = LimitRangeReconciler(limit_client, policy, dry_run=True)

    result = reconciler.reconcile("team-a")

    assert result.outcome == Outcome.DRY_RUN
    assert core_api.calls[-1][0] == "read"
