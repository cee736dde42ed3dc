"""Pipeline exceptions.

Only store-level failures are raised. Mapping, coercion and validation
problems are reported as values on the batch report instead.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for pipeline errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StoreUnavailable(PipelineError):
    """The canonical store cannot be read or written; the batch is aborted."""
    pass
