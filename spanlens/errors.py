"""
SpanLens exceptions.

Data-quality problems in upstream annotations are never raised; they are
dropped and logged. Only caller misuse raises.
"""


class SpanLensError(Exception):
    """Base class for SpanLens errors."""


class ContractViolation(SpanLensError, TypeError):
    """Raised when a caller passes inputs of the wrong shape (not upstream noise)."""
