"""Client for LimitRange objects and namespace events."""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .config import DEFAULT_WATCH_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class LimitRangeClient:
    """Wraps the CoreV1Api calls used by the watcher."""

    def __init__(self, core_api: client.CoreV1Api = None):
        """
        Initialize the client.

        Args:
            core_api: CoreV1Api to use (a new one from the loaded kube config
                when omitted)
        """
        self.v1 = core_api or client.CoreV1Api()

    def get_limit_range(self, name: str, namespace: str) -> Optional[client.V1LimitRange]:
        """
        Get a LimitRange.

        Returns:
            The LimitRange, or None if it does not exist

        Raises:
            ApiException: for any error other than 404
        """
        try:
            return self.v1.read_namespaced_limit_range(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    def create_limit_range(self, namespace: str, body: client.V1LimitRange) -> client.V1LimitRange:
        return self.v1.create_namespaced_limit_range(namespace=namespace, body=body)

    def replace_limit_range(self, name: str, namespace: str, body: client.V1LimitRange) -> client.V1LimitRange:
        """
        Replace a LimitRange. The body's resourceVersion makes this
        conditional: the API server answers 409 if the object changed since
        it was read.
        """
        return self.v1.replace_namespaced_limit_range(name=name, namespace=namespace, body=body)

    def list_namespaces(self) -> Tuple[List[str], str]:
        """
        List all namespaces.

        Returns:
            Tuple of (namespace names, collection resourceVersion)
        """
        response = self.v1.list_namespace()
        names = [ns.metadata.name for ns in response.items]
        return names, response.metadata.resource_version

    def watch_namespaces(
        self,
        resource_version: Optional[str] = None,
        timeout: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
    ) -> Iterator[Dict[str, Any]]:
        """
        Create a watch stream for namespace events.

        The stream ends when the server-side timeout expires.

        Args:
            resource_version: Version to start watching from
            timeout: Watch timeout in seconds

        Yields:
            Watch events ({"type": ..., "object": V1Namespace})
        """
        w = watch.Watch()
        kwargs = {"timeout_seconds": timeout}
        if resource_version:
            kwargs["resource_version"] = resource_version

        try:
            for event in w.stream(self.v1.list_namespace, **kwargs):
                yield event
        finally:
            w.stop()
