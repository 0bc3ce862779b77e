"""Domain exception hierarchy for CodeScore.

Services raise these instead of bare ``ValueError`` so that the global
exception handlers (``codescore.middleware.exception_handler``) can map
them to the correct HTTP status without fragile string matching.
"""


class ScoreError(Exception):
    """Base for all domain exceptions."""

    def __init__(self, message: str = "An unexpected error occurred", *, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ScoreError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class BadRequestError(ScoreError):
    """Client sent an invalid request (400)."""

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, status_code=400)


class GitHubError(ScoreError):
    """GitHub API call failed.  Carries the upstream HTTP status (0 = network)."""

    def __init__(self, message: str = "GitHub API error", *, upstream_status: int = 0):
        super().__init__(message, status_code=502)
        self.upstream_status = upstream_status


class CollectionError(ScoreError):
    """Source files could not be collected -- the analysis run is aborted (502)."""

    def __init__(self, message: str = "File collection failed"):
        super().__init__(message, status_code=502)
        self.stage = "collection"


class PersistenceError(ScoreError):
    """The analysis result could not be stored (503)."""

    def __init__(self, message: str = "Failed to persist analysis result"):
        super().__init__(message, status_code=503)
        self.stage = "persistence"


def format_error_response(
    *,
    error: str,
    detail: object = None,
    request_id: str = "",
) -> dict:
    """Build a structured error response dict.

    Parameters
    ----------
    error : str
        Short error title (e.g. ``"Internal Server Error"``).
    detail : object
        Human-readable detail string or validation error list.
    request_id : str
        The request ID for tracing.

    Returns
    -------
    dict
        ``{"error": ..., "detail": ..., "request_id": ...}``
    """
    return {
        "error": error,
        "detail": detail if detail is not None else error,
        "request_id": request_id,
    }
