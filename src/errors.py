"""
Error Taxonomy

Exceptions shared across the pipeline. Where each one is raised decides
whether it is absorbed at the orchestrator boundary or reaches the API.
"""


class ValidationError(Exception):
    """Malformed or missing request fields. Mapped to 4xx, never retried."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class EnrichmentFailure(Exception):
    """The external research call failed. Absorbed; the session continues without research."""
    pass


class StoreError(Exception):
    """A Context Store backend operation failed."""

    def __init__(self, operation: str, session_id: str, cause: Exception | None = None):
        detail = f": {cause}" if cause else ""
        super().__init__(f"Context store {operation} failed for {session_id}{detail}")
        self.operation = operation
        self.session_id = session_id
        self.cause = cause


class StreamGenerationError(Exception):
    """The token provider failed mid-stream. Converted into a terminal error frame."""
    pass
