"""
Idempotent quote creation service.

This package provides a quote-creation API guarded by client-supplied
idempotency keys, ensuring that retried or duplicated requests create at
most one quote per key and always observe the outcome of the first attempt.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
