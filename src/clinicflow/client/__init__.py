"""Dashboard-side synchronization with the ClinicFlow API."""

from .api_client import DashboardApiClient, QueuedOperation
from .synchronizer import ClientSynchronizer, SyncEvent

__all__ = ["ClientSynchronizer", "DashboardApiClient", "QueuedOperation", "SyncEvent"]
