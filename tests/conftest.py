"""
Shared test fixtures: an in-memory CoreV1Api and a ready-to-use policy
"""
# Standard
import copy

# Third Party
from kubernetes import client
from kubernetes.client.rest import ApiException
import pytest

# Local
from namespace_watcher.exclusion import ExclusionFilter
from namespace_watcher.limit_policy import LimitPolicy
from namespace_watcher.limit_range_client import LimitRangeClient
from namespace_watcher.reconciler import LimitRangeReconciler

POLICY_ENV = {
    "CPU_LIMIT_MIN": "100m",
    "CPU_LIMIT_MAX": "500m",
    "MEM_LIMIT_MIN": "128Mi",
    "MEM_LIMIT_MAX": "512Mi",
    "EPHEMERAL_STORAGE_MIN": "1Gi",
    "EPHEMERAL_STORAGE_MAX": "2Gi",
}


class FakeCoreV1Api:
    """Stores LimitRanges in a dict and mimics the API server's status codes.

    Errors can be injected per call name with fail_next(method, status).
    """

    def __init__(self, namespaces=(), resource_version="100"):
        self.limit_ranges = {}
        self.namespaces = list(namespaces)
        self.list_resource_version = resource_version
        self.calls = []
        self._failures = {}
        self._version = 0

    def fail_next(self, method, status, reason="Injected"):
        self._failures.setdefault(method, []).append((status, reason))

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        failures = self._failures.get(method)
        if failures:
            status, reason = failures.pop(0)
            raise ApiException(status=status, reason=reason)

    def _next_version(self):
        self._version += 1
        return str(self._version)

    def read_namespaced_limit_range(self, name, namespace):
        self._record("read", name=name, namespace=namespace)
        stored = self.limit_ranges.get((namespace, name))
        if stored is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(stored)

    def create_namespaced_limit_range(self, namespace, body):
        self._record("create", namespace=namespace, body=body)
        key = (namespace, body.metadata.name)
        if key in self.limit_ranges:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = copy.deepcopy(body)
        stored.metadata.namespace = namespace
        stored.metadata.resource_version = self._next_version()
        self.limit_ranges[key] = stored
        return copy.deepcopy(stored)

    def replace_namespaced_limit_range(self, name, namespace, body):
        self._record("replace", name=name, namespace=namespace, body=body)
        stored = self.limit_ranges.get((namespace, name))
        if stored is None:
            raise ApiException(status=404, reason="Not Found")
        if body.metadata.resource_version != stored.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        stored = copy.deepcopy(body)
        stored.metadata.resource_version = self._next_version()
        self.limit_ranges[(namespace, name)] = stored
        return copy.deepcopy(stored)

    def list_namespace(self, **kwargs):
        self._record("list_namespace", **kwargs)
        return client.V1NamespaceList(
            items=[
                client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
                for name in self.namespaces
            ],
            metadata=client.V1ListMeta(resource_version=self.list_resource_version),
        )


def namespace_event(name, event_type="ADDED", resource_version=None):
    return {
        "type": event_type,
        "object": client.V1Namespace(
            metadata=client.V1ObjectMeta(name=name, resource_version=resource_version)
        ),
    }


@pytest.fixture
def policy():
    return LimitPolicy(
        cpu_min="100m",
        cpu_max="500m",
        mem_min="128Mi",
        mem_max="512Mi",
        ephemeral_min="1Gi",
        ephemeral_max="2Gi",
    )


@pytest.fixture
def core_api():
    return FakeCoreV1Api()


@pytest.fixture
def limit_client(core_api):
    return LimitRangeClient(core_api)


@pytest.fixture
def reconciler(limit_client, policy):
    return LimitRangeReconciler(limit_client, policy)


@pytest.fixture
def exclusion_filter():
    return ExclusionFilter.from_string("team-skip")
