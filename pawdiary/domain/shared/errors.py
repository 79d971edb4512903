"""
Domain exceptions.

Typed exceptions for explicit error handling across drafts,
activities and the infrastructure adapters behind them.
"""

from __future__ import annotations


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    All domain-specific exceptions inherit from this.
    Allows catching all domain errors with single except clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# DRAFT DOMAIN EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class DraftDomainError(DomainError):
    """Base exception for draft domain."""

    pass


class DraftNotFoundError(DraftDomainError):
    """
    Draft not found.

    Raised when:
    - Draft ID doesn't exist
    - Draft expired and was swept
    - Draft was discarded elsewhere

    The draft store itself returns None for missing drafts; this is
    raised by commands that cannot proceed without one.

    Example:
        >>> raise DraftNotFoundError("Draft draft-1700000000000-abc not found")
    """

    pass


# ═══════════════════════════════════════════════════════════
# ACTIVITY DOMAIN EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ActivityDomainError(DomainError):
    """Base exception for activity domain."""

    pass


class ActivityNotFoundError(ActivityDomainError):
    """
    Activity not found in the remote store.

    Example:
        >>> raise ActivityNotFoundError("Activity 42 not found")
    """

    pass


# ═══════════════════════════════════════════════════════════
# VALIDATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ValidationError(DomainError):
    """
    Input validation failed.

    Raised when:
    - Invalid input format
    - Missing required fields
    - Out of range values

    Example:
        >>> raise ValidationError("pet_id must be positive")
    """

    pass


# ═══════════════════════════════════════════════════════════
# EXTERNAL SERVICE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ExternalServiceError(DomainError):
    """
    External service call failed.

    Base class for all external service errors.
    """

    pass


class RemoteServiceError(ExternalServiceError):
    """
    Remote activity store call failed.

    Raised by remote adapters on any backend failure. The retry policy
    treats it (like any other error) as transient.

    Example:
        >>> raise RemoteServiceError("create_activity failed: connection reset")
    """

    pass


# ═══════════════════════════════════════════════════════════
# INFRASTRUCTURE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class InfrastructureError(DomainError):
    """
    Infrastructure layer error.

    Base class for storage, cache, etc. errors.
    """

    pass


class StorageError(InfrastructureError):
    """
    Draft storage operation failed.

    Raised when:
    - Draft file cannot be written
    - Storage directory is not writable

    Example:
        >>> raise StorageError("Cannot write drafts: disk full")
    """

    pass


class CacheError(InfrastructureError):
    """
    Cache operation failed.

    Raised when:
    - Unknown reference variant during reconciliation
    - Invalid cache key

    Example:
        >>> raise CacheError("Cache key must have at least one segment")
    """

    pass
