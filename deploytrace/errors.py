"""
Exception taxonomy for the deployment-lineage correlator.

Validation errors are raised before the store is touched. Storage failures
are wrapped with the operation that hit them. Not-found is reserved for the
manifest-commit patcher, which cannot create the row it needs.
"""

from typing import List, Optional


class DeployTraceError(Exception):
    """Base class for all deploytrace errors."""
    pass


class ValidationError(DeployTraceError):
    """Raised when required identifiers are missing or blank."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class StorageOperationError(DeployTraceError):
    """Raised when the entity store rejects a query, insert, replace or delete."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Storage operation failed: {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class EntryNotFoundError(DeployTraceError):
    """Raised when an expected deployment entry does not exist."""

    def __init__(self, field_name: str, field_value: str):
        self.field_name = field_name
        self.field_value = field_value
        super().__init__(f"No deployment entry found with {field_name}={field_value!r}")


class SelfTestError(DeployTraceError):
    """Raised when the store self-test cannot verify its own writes."""
    pass
