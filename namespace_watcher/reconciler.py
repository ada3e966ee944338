"""Reconciliation logic for namespace LimitRanges."""

import copy
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .config import LIMIT_RANGE_NAME, MANAGED_BY_LABEL, MANAGED_BY_VALUE
from .exceptions import ReconciliationError
from .limit_policy import LimitPolicy
from .limit_range_client import LimitRangeClient
from .utils import resource_lists_match, serialize_resources

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"
    DRY_RUN = "dry-run"


@dataclass
class ReconcileResult:
    """What a single reconciliation did."""
    namespace: str
    outcome: Outcome
    limit_range: Optional[client.V1LimitRange] = None
    error: Optional[ReconciliationError] = None

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.FAILED


class LimitRangeReconciler:
    """Ensures each namespace has a LimitRange matching the policy."""

    def __init__(
        self,
        limit_client: LimitRangeClient,
        policy: LimitPolicy,
        dry_run: bool = False,
        name: str = LIMIT_RANGE_NAME,
    ):
        """
        Initialize the reconciler.

        Args:
            limit_client: Client used to read and write LimitRanges
            policy: The limit policy to enforce
            dry_run: If True, don't make actual changes
            name: Name of the LimitRange in every namespace
        """
        self.limit_client = limit_client
        self.policy = policy
        self.dry_run = dry_run
        self.name = name

    def build_limit_range(self, namespace: str) -> client.V1LimitRange:
        """Build a new LimitRange for a namespace from the policy."""
        return client.V1LimitRange(
            api_version="v1",
            kind="LimitRange",
            metadata=client.V1ObjectMeta(
                name=self.name,
                namespace=namespace,
                labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            ),
            spec=self.policy.to_limit_range_spec(),
        )

    def matches_policy(self, limit_range: client.V1LimitRange) -> bool:
        """Check if an existing LimitRange already carries the policy."""
        spec = limit_range.spec
        if not spec or not spec.limits or len(spec.limits) != 1:
            return False
        item = spec.limits[0]
        desired = self.policy.to_limit_range_spec().limits[0]
        return (
            item.type == desired.type
            and resource_lists_match(item.max, desired.max)
            and resource_lists_match(item.min, desired.min)
        )

    def reconcile(self, namespace: str) -> ReconcileResult:
        """
        Create or update the LimitRange of a namespace.

        Args:
            namespace: Namespace to reconcile

        Returns:
            ReconcileResult with outcome CREATED, UPDATED, DRY_RUN or FAILED
        """
        key = f"{namespace}/{self.name}"

        try:
            existing = self.limit_client.get_limit_range(self.name, namespace)
        except ApiException as e:
            return self._failed(namespace, f"Error reading LimitRange {key}", e)

        if existing is None:
            return self._create(namespace)
        return self._update(namespace, existing)

    def _create(self, namespace: str) -> ReconcileResult:
        body = self.build_limit_range(namespace)

        if self.dry_run:
            logger.info(
                f"[DRY-RUN] Would create LimitRange {self.name} in namespace {namespace}: "
                f"max={serialize_resources(self.policy.max)} min={serialize_resources(self.policy.min)}"
            )
            return ReconcileResult(namespace, Outcome.DRY_RUN, limit_range=body)

        try:
            created = self.limit_client.create_limit_range(namespace, body)
        except ApiException as e:
            return self._failed(namespace, f"Error creating LimitRange {namespace}/{self.name}", e)

        logger.info(f"Created LimitRange {self.name} for namespace {namespace}")
        return ReconcileResult(namespace, Outcome.CREATED, limit_range=created)

    def _update(self, namespace: str, existing: client.V1LimitRange) -> ReconcileResult:
        state = "unchanged" if self.matches_policy(existing) else "drifted"

        # Keep metadata (resourceVersion included) so the replace is conditional
        body = copy.deepcopy(existing)
        body.metadata.labels = {**(body.metadata.labels or {}), MANAGED_BY_LABEL: MANAGED_BY_VALUE}
        body.spec = self.policy.to_limit_range_spec()

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would update LimitRange {self.name} in namespace {namespace} ({state})")
            return ReconcileResult(namespace, Outcome.DRY_RUN, limit_range=body)

        try:
            updated = self.limit_client.replace_limit_range(self.name, namespace, body)
        except ApiException as e:
            return self._failed(namespace, f"Error updating LimitRange {namespace}/{self.name}", e)

        logger.info(f"Updated LimitRange {self.name} for namespace {namespace} ({state})")
        return ReconcileResult(namespace, Outcome.UPDATED, limit_range=updated)

    def _failed(self, namespace: str, message: str, e: ApiException) -> ReconcileResult:
        error = ReconciliationError(namespace, f"{message}: {e.status} {e.reason}", status=e.status)
        logger.error(f"Failed to reconcile namespace {namespace}: {error}")
        return ReconcileResult(namespace, Outcome.FAILED, error=error)
