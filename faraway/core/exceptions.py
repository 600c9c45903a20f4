"""
Exception hierarchy.

An unregistered model is not an error: detect() returns None for it.
Unmet card conditions are game outcomes and only show up in the
score trace.
"""


class FarawayError(Exception):
    """Base class for all errors raised by this package."""


class ModelLoadError(FarawayError):
    """A model file could not be found or could not be loaded."""


class DecodeError(FarawayError):
    """
    The raw model output does not have the expected [*, 4 + N] shape.

    Fatal for the decode call that raised it only; the model registry
    and other detections are unaffected.
    """


class TaxonomyError(FarawayError, ValueError):
    """A class taxonomy or multiplier table is inconsistent."""
