"""
Domain exceptions.

Typed exceptions for the analysis pipeline. Backends raise the
AnalysisError subclasses; only the orchestrator surfaces a hard
failure to callers, as NoAnalyzersAvailableError.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """Base exception for all domain errors."""

    pass


# ═══════════════════════════════════════════════════════════
# ANALYSIS EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class AnalysisError(DomainError):
    """
    Base exception for analysis failures.

    Every subclass carries a stable ``code`` so observers can render
    the failure without knowing which backend produced it.

    Example:
        >>> err = NotFoundError("No match for 'kangaroo'")
        >>> err.code
        'not_found'
    """

    code = "analysis_error"


class NoAnalyzersAvailableError(AnalysisError):
    """
    No backend produced a result.

    Raised when:
    - No analyzer is registered for the input
    - Every eligible analyzer failed

    The last recorded backend error is chained as ``__cause__``.
    """

    code = "no_analyzers_available"

    def __init__(
        self,
        message: str = "No analyzers available",
        failures: Optional[List[Tuple[Any, Exception]]] = None,
    ) -> None:
        super().__init__(message)
        self.failures: List[Tuple[Any, Exception]] = list(failures or [])

    @property
    def last_error(self) -> Optional[Exception]:
        """Most recent backend failure, if any backend was tried."""
        return self.failures[-1][1] if self.failures else None


class AnalysisTimeoutError(AnalysisError):
    """Backend did not answer within its deadline."""

    code = "analysis_timeout"


class InvalidInputError(AnalysisError):
    """
    Input is structurally invalid.

    Raised when:
    - Text input is blank
    - Image input has no payload
    - Barcode is not 8-14 digits
    - Recipe servings < 1
    """

    code = "invalid_input"


class NetworkError(AnalysisError):
    """Transport failure or upstream error status."""

    code = "network_error"


class ApiKeyMissingError(AnalysisError):
    """Backend credentials are absent or rejected."""

    code = "api_key_missing"


class NotFoundError(AnalysisError):
    """
    Backend has no data for the input.

    Not fatal: the fallback strategy moves to the next backend.

    Example:
        >>> raise NotFoundError("No match for 'kangaroo'")
    """

    code = "not_found"


# ═══════════════════════════════════════════════════════════
# CONFIGURATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ConfigurationError(DomainError):
    """
    Fatal misconfiguration detected at construction time.

    Example:
        >>> raise ConfigurationError("AI_USDA_API_KEY is required")
    """

    pass


# ═══════════════════════════════════════════════════════════
# INFRASTRUCTURE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class InfrastructureError(Exception):
    """Base exception for infrastructure errors."""

    pass


class StoreError(InfrastructureError):
    """Persistent store operation failed."""

    pass
