# File: subgxe/errors.py
# Location: subgxe/subgxe/errors.py

"""
Exception classes for subgxe.

Input validation errors are raised eagerly before any computation starts and
derive from both PastaError and ValueError, so callers can catch either.
IntegrationFailure is the only error raised mid-computation.
"""

from typing import Dict, Optional, Sequence, Tuple


class PastaError(Exception):
    """Base exception for all subgxe errors."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        """Initialize subgxe error.

        Parameters
        ----------
        message : str
            Error message
        details : dict, optional
            Additional error details
        """
        super().__init__(message)
        self.details = details or {}


class InputValidationError(PastaError, ValueError):
    """Raised when caller-supplied inputs violate the analysis contract."""


class InvalidPValue(InputValidationError):
    """Raised when a p-value lies outside the open interval (0, 1)."""

    def __init__(self, index: int, value: object):
        """Initialize invalid p-value error."""
        message = f"p-value for study {index + 1} must lie in the open interval (0, 1), got {value!r}"
        super().__init__(message, {"index": index, "value": value})


class InvalidSampleSize(InputValidationError):
    """Raised when a sample size is not a positive integer."""

    def __init__(self, index: int, value: object):
        """Initialize invalid sample size error."""
        message = f"Sample size for study {index + 1} must be a positive integer, got {value!r}"
        super().__init__(message, {"index": index, "value": value})


class InvalidCorrelationMatrix(InputValidationError):
    """Raised when the correlation matrix is malformed or numerically degenerate."""

    def __init__(self, reason: str):
        """Initialize invalid correlation matrix error."""
        super().__init__(f"Invalid correlation matrix: {reason}", {"reason": reason})

    def __reduce__(self):
        """Custom pickling to handle multiprocessing correctly."""
        return (self.__class__, (self.details["reason"],), self.__dict__)


class DimensionMismatch(InputValidationError):
    """Raised when inputs disagree on the number of studies."""

    def __init__(self, counts: Dict[str, int]):
        """Initialize dimension mismatch error."""
        detail = ", ".join(f"{name}={n}" for name, n in counts.items())
        super().__init__(f"Inputs disagree on the number of studies: {detail}", dict(counts))


class InvalidStudyCount(InputValidationError):
    """Raised when the number of studies is outside the supported range."""

    def __init__(self, n_studies: int, minimum: int, maximum: int):
        """Initialize invalid study count error."""
        message = (
            f"Number of studies must be between {minimum} and {maximum}, got {n_studies}. "
            "Subset enumeration is exponential in the number of studies."
        )
        super().__init__(
            message, {"n_studies": n_studies, "minimum": minimum, "maximum": maximum}
        )


class IntegrationFailure(PastaError):
    """Raised when quadrature for a subset's tail integral fails to converge."""

    def __init__(self, subset: Sequence[int], abserr: float, message: str):
        """Initialize integration failure error."""
        subset_tuple: Tuple[int, ...] = tuple(int(v) for v in subset)
        super().__init__(
            f"Tail integral for subset {subset_tuple} did not converge "
            f"(estimated abs. error {abserr:.3g}): {message}",
            {"subset": subset_tuple, "abserr": abserr, "message": message},
        )
        self.subset = subset_tuple
        self.abserr = abserr

    def __reduce__(self):
        """Custom pickling to handle multiprocessing correctly."""
        return (
            self.__class__,
            (self.subset, self.abserr, self.details["message"]),
            self.__dict__,
        )
