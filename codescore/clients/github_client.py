"""GitHub API client -- repository contents, file content, and commits."""

import base64
import logging
from urllib.parse import quote

import httpx

from codescore.errors import GitHubError

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
USER_AGENT = "CodeScore-Analysis-Platform"

# ── Shared HTTP client (connection pooling) ─────────────────────────────────

_client: httpx.AsyncClient | None = None


def _get_client() -> httpx.AsyncClient:
    """Return (or create) the shared httpx client for GitHub API calls."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=30.0)
    return _client


async def close_client() -> None:
    """Close the shared HTTP client.  Called during app shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


# ── Helpers ──────────────────────────────────────────────────────────────────


def _auth_headers(access_token: str) -> dict:
    """Return standard GitHub API auth headers."""
    return {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
    }


def _raise_for_github_status(response: httpx.Response, endpoint: str) -> None:
    """Translate a GitHub error response into a :class:`GitHubError`."""
    if response.status_code < 400:
        return
    logger.error(
        "GitHub API error %d on %s: %s",
        response.status_code, endpoint, response.text[:500],
    )
    if response.status_code == 401:
        msg = "GitHub token is invalid or expired"
    elif response.status_code == 403:
        msg = "GitHub API rate limit exceeded or insufficient permissions"
    elif response.status_code == 404:
        msg = "GitHub resource not found"
    else:
        msg = f"GitHub API error: {response.status_code} - {response.text[:200]}"
    raise GitHubError(msg, upstream_status=response.status_code)


async def _get(access_token: str, endpoint: str, params: dict | None = None):
    """GET *endpoint* and return the decoded JSON body.

    Network failures are raised as :class:`GitHubError` with status 0.
    """
    client = _get_client()
    try:
        response = await client.get(
            f"{GITHUB_API_BASE}{endpoint}",
            params=params,
            headers=_auth_headers(access_token),
        )
    except httpx.RequestError as exc:
        raise GitHubError(f"GitHub unreachable: {exc}") from exc
    _raise_for_github_status(response, endpoint)
    try:
        return response.json()
    except ValueError as exc:
        raise GitHubError(
            f"GitHub returned a non-JSON body for {endpoint}",
            upstream_status=response.status_code,
        ) from exc


# ── Contents ─────────────────────────────────────────────────────────────────


async def get_repository_contents(
    access_token: str,
    full_name: str,
    path: str = "",
    ref: str = "main",
) -> list[dict]:
    """List a directory of a repo at *ref*.

    Returns the raw GitHub content entries (``name``, ``path``, ``type``,
    ``size`` …).  A path pointing at a single file yields a one-item list.
    Order is whatever GitHub returns.
    """
    endpoint = f"/repos/{full_name}/contents/{quote(path)}"
    data = await _get(access_token, endpoint, params={"ref": ref})
    items = data if isinstance(data, list) else [data]
    logger.debug(
        "Fetched contents of %s:%s@%s (%d items)", full_name, path or "/", ref, len(items),
    )
    return items


async def get_file_content(
    access_token: str,
    full_name: str,
    path: str,
    ref: str = "main",
) -> str:
    """Fetch and decode a single file's content at *ref*.

    Raises ``ValueError`` if the path is not a file or GitHub did not
    inline its content (files over 1 MB).
    """
    endpoint = f"/repos/{full_name}/contents/{quote(path)}"
    data = await _get(access_token, endpoint, params={"ref": ref})
    if not isinstance(data, dict) or data.get("type") != "file" or not data.get("content"):
        raise ValueError(f"Not a file or content not available: {path}")
    if data.get("encoding", "base64") == "base64":
        return base64.b64decode(data["content"]).decode("utf-8", errors="replace")
    return data["content"]


# ── Commits ──────────────────────────────────────────────────────────────────


async def list_commits(
    access_token: str,
    full_name: str,
    branch: str | None = None,
    per_page: int = 30,
    page: int = 1,
) -> list[dict]:
    """List commits on *branch* (default branch if None), newest first.

    Returns list of dicts with sha, message, author, date.
    """
    params: dict[str, str | int] = {"per_page": per_page, "page": page}
    if branch:
        params["sha"] = branch
    data = await _get(access_token, f"/repos/{full_name}/commits", params=params)
    commits: list[dict] = []
    for c in data:
        commit_data = c.get("commit", {})
        author_data = commit_data.get("author") or {}
        commits.append({
            "sha": c["sha"],
            "message": commit_data.get("message", ""),
            "author": author_data.get("name", ""),
            "date": author_data.get("date", ""),
        })
    return commits


async def get_latest_commit(
    access_token: str,
    full_name: str,
    branch: str = "main",
) -> dict:
    """Return the newest commit on *branch*.  Raises ``ValueError`` if none."""
    commits = await list_commits(access_token, full_name, branch=branch, per_page=1)
    if not commits:
        raise ValueError("No commits found")
    return commits[0]
