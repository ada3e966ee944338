"""Main controller logic for the Namespace Watcher."""

import logging
import queue
import threading
import time
from typing import Any, Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .config import (
    DEFAULT_WATCH_TIMEOUT_SECONDS,
    DEFAULT_WATCH_QUEUE_SIZE,
    DEFAULT_WATCH_BACKOFF_INITIAL_SECONDS,
    DEFAULT_WATCH_BACKOFF_MAX_SECONDS,
    FATAL_WATCH_STATUSES,
    SUBSCRIBE_TIMEOUT_SECONDS,
    VERSION,
)
from .exceptions import SubscriptionError
from .exclusion import ExclusionFilter
from .limit_range_client import LimitRangeClient
from .reconciler import LimitRangeReconciler, ReconcileResult

logger = logging.getLogger(__name__)

ADDED = "ADDED"


class NamespaceWatcher:
    """
    Watches namespace events and applies the limit policy to every added
    namespace that is not excluded.

    A producer thread owns the watch and feeds a bounded queue. The thread
    calling run() is the only consumer, so events are reconciled one at a
    time in the order they arrived.
    """

    def __init__(
        self,
        limit_client: LimitRangeClient,
        reconciler: LimitRangeReconciler,
        exclusion_filter: ExclusionFilter,
        queue_size: int = DEFAULT_WATCH_QUEUE_SIZE,
        watch_timeout: int = DEFAULT_WATCH_TIMEOUT_SECONDS,
        backoff_initial: float = DEFAULT_WATCH_BACKOFF_INITIAL_SECONDS,
        backoff_max: float = DEFAULT_WATCH_BACKOFF_MAX_SECONDS,
    ):
        self.limit_client = limit_client
        self.reconciler = reconciler
        self.exclusion_filter = exclusion_filter
        self.watch_timeout = watch_timeout
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max

        self._events: "queue.Queue[Dict[str, Any]]" = queue.Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._resource_version: Optional[str] = None
        self._fatal_error: Optional[SubscriptionError] = None

    @property
    def resource_version(self) -> Optional[str]:
        return self._resource_version

    @property
    def fatal_error(self) -> Optional[SubscriptionError]:
        return self._fatal_error

    def subscribe(self) -> List[Dict[str, Any]]:
        """
        Open the namespace watch.

        Namespaces that already exist are not reconciled; only events after
        the listed version are. The first watch is opened here with a short
        server-side timeout so a watch the API server refuses fails startup.

        Returns:
            Events received while the first watch was open

        Raises:
            SubscriptionError: if the namespaces cannot be listed or watched
        """
        try:
            _, resource_version = self.limit_client.list_namespaces()
            self._resource_version = resource_version
            events = []
            for event in self.limit_client.watch_namespaces(
                resource_version=resource_version,
                timeout=SUBSCRIBE_TIMEOUT_SECONDS,
            ):
                self._track_version(event)
                events.append(event)
        except ApiException as e:
            raise SubscriptionError(f"Failed to watch namespaces: {e.status} {e.reason}") from e

        logger.info(f"Subscribed to namespace events from resourceVersion {resource_version}")
        return events

    def handle_event(self, event: Dict[str, Any]) -> Optional[ReconcileResult]:
        """
        Handle one namespace watch event.

        Returns:
            The reconcile result, or None if the event was ignored or skipped
        """
        event_type = event.get("type")
        if event_type != ADDED:
            logger.debug(f"Ignoring {event_type} event")
            return None

        name = event["object"].metadata.name
        return self.handle_namespace_added(name)

    def handle_namespace_added(self, name: str) -> Optional[ReconcileResult]:
        if self.exclusion_filter.should_exclude(name):
            logger.info(f"Skipping namespace {name}")
            return None

        logger.info(f"New namespace: {name}")
        return self.reconciler.reconcile(name)

    def _put(self, event: Dict[str, Any]) -> bool:
        """Block until the event is queued or the watcher stops."""
        while not self._stop_event.is_set():
            try:
                self._events.put(event, timeout=1)
                return True
            except queue.Full:
                continue
        return False

    def _track_version(self, event: Dict[str, Any]) -> None:
        obj = event.get("object")
        metadata = getattr(obj, "metadata", None)
        resource_version = getattr(metadata, "resource_version", None)
        if resource_version:
            self._resource_version = resource_version

    def resync(self) -> None:
        """
        Re-list namespaces after the watch history expired and queue an
        ADDED event for each, so additions missed while disconnected are
        reconciled.
        """
        names, resource_version = self.limit_client.list_namespaces()
        logger.warning(f"Watch history expired, resyncing {len(names)} namespace(s)")

        for name in names:
            event = {"type": ADDED, "object": client.V1Namespace(metadata=client.V1ObjectMeta(name=name))}
            if not self._put(event):
                return
        self._resource_version = resource_version

    def watch_namespaces(self) -> None:
        """Watch namespace events until stopped, resubscribing as needed."""
        logger.info("Starting namespace watcher...")
        delay = self.backoff_initial

        while not self._stop_event.is_set():
            try:
                received = False
                opened_at = time.monotonic()
                for event in self.limit_client.watch_namespaces(
                    resource_version=self._resource_version,
                    timeout=self.watch_timeout,
                ):
                    if self._stop_event.is_set():
                        break
                    received = True
                    self._track_version(event)
                    if not self._put(event):
                        break
                    delay = self.backoff_initial

                if self._stop_event.is_set():
                    break

                # A quiet stream that lasted its full timeout is healthy
                if received or time.monotonic() - opened_at >= self.watch_timeout:
                    delay = self.backoff_initial
                    logger.debug(f"Watch stream ended, resuming from {self._resource_version}")
                    continue

                logger.warning(f"Watch stream closed early, resubscribing in {delay:.1f}s")

            except ApiException as e:
                if e.status in FATAL_WATCH_STATUSES:
                    self._fatal_error = SubscriptionError(
                        f"Namespace watch refused: {e.status} {e.reason}"
                    )
                    logger.critical(str(self._fatal_error))
                    self.stop()
                    return

                if e.status == 410:
                    try:
                        self.resync()
                        delay = self.backoff_initial
                        continue
                    except ApiException as list_error:
                        logger.error(f"Namespace resync error: {list_error.status} {list_error.reason}")
                        self._resource_version = None
                else:
                    logger.error(f"Namespace watch error: {e.status} {e.reason}")

                logger.info(f"Resubscribing in {delay:.1f}s")

            except Exception as e:
                logger.error(f"Unexpected error in namespace watcher: {e}")

            self._stop_event.wait(delay)
            delay = min(delay * 2, self.backoff_max)

    def _dispatch(self, event: Dict[str, Any]) -> None:
        try:
            self.handle_event(event)
        except Exception:
            logger.exception("Unexpected error handling namespace event")

    def process_events(self) -> None:
        """Consume queued events one at a time until stopped."""
        while not self._stop_event.is_set():
            try:
                event = self._events.get(timeout=1)
            except queue.Empty:
                continue

            try:
                self._dispatch(event)
            finally:
                self._events.task_done()

    def run(self) -> None:
        """
        Run the controller.

        Raises:
            SubscriptionError: if the watch cannot be opened, or the API
                server later refuses it
        """
        logger.info("=" * 60)
        logger.info(f"Starting Namespace Watcher version {VERSION}")
        logger.info("=" * 60)
        logger.info(f"LimitRange: {self.reconciler.name}")
        logger.info(f"Dry run: {self.reconciler.dry_run}")
        logger.info(f"Excluded namespaces: {', '.join(sorted(self.exclusion_filter.excluded))}")

        for event in self.subscribe():
            self._dispatch(event)

        watch_thread = threading.Thread(
            target=self.watch_namespaces,
            name="namespace-watcher",
            daemon=True,
        )
        watch_thread.start()

        logger.info("Controller is running. Press Ctrl+C to stop.")
        self.process_events()

        if self._fatal_error is not None:
            raise self._fatal_error

    def stop(self) -> None:
        """Stop the controller."""
        logger.info("Stopping controller...")
        self._stop_event.set()

