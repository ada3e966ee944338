"""
Exceptions raised by the Namespace Watcher
"""

from typing import Optional

## Base Error ##################################################################


class NamespaceWatcherError(Exception):
    """Base class for all namespace watcher exceptions"""


## Fatal Errors ################################################################


class NamespaceWatcherFatalError(NamespaceWatcherError):
    """A failure the process cannot recover from. The entry point logs it and
    exits non-zero.
    """


class ConfigurationError(NamespaceWatcherFatalError):
    """A limit or setting is missing, empty, unparseable or out of range"""


class ClientInitializationError(NamespaceWatcherFatalError):
    """The Kubernetes client could not be configured"""


class SubscriptionError(NamespaceWatcherFatalError):
    """The namespace event stream could not be opened"""


## Recoverable Errors ##########################################################


class ReconciliationError(NamespaceWatcherError):
    """Reading or writing the LimitRange of a single namespace failed. The
    watch loop logs it and moves on to the next event.
    """

    def __init__(self, namespace: str, message: str = "", status: Optional[int] = None):
        self.namespace = namespace
        self.status = status
        super().__init__(message)
