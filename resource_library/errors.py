"""
Error taxonomy shared by the stores, the core services and the API layer.

- ``ValidationError``: a required field is missing or out of range (HTTP 400).
- ``NotFoundError``: an unknown resource or review id (HTTP 404).
- ``AggregationFailure``: the aggregate could not be written after a review
  write. Logged by the aggregator and never surfaced to the caller.
- ``UpstreamStoreError``: a store is unavailable (HTTP 500).
"""
from __future__ import annotations


class ResourceLibraryError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(ResourceLibraryError):
    pass


class NotFoundError(ResourceLibraryError):
    pass


class AggregationFailure(ResourceLibraryError):
    def __init__(self, resource_id: str, reason: str) -> None:
        super().__init__(f"Aggregate update failed for resource {resource_id}: {reason}")
        self.resource_id = resource_id


class UpstreamStoreError(ResourceLibraryError):
    pass
