"""Deployment lineage correlation across independently triggered pipeline stages."""

__version__ = "0.1.0"

from .errors import (
    DeployTraceError,
    EntryNotFoundError,
    SelfTestError,
    StorageOperationError,
    ValidationError,
)
from .models import DeploymentEntry
from .store import EntityStore, SqlEntityStore
from .tracker import DeploymentTracker
