"""Tests for the file collector -- traversal, filtering, caps, failures."""

import base64
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from codescore.errors import CollectionError, GitHubError
from codescore.services.analysis.collector import (
    collect_code_files,
    detect_language,
    file_extension,
    is_collectable,
)

BASE = "codescore.services.analysis.collector"


def _file(path: str, size: int = 100) -> dict:
    return {"type": "file", "name": path.rsplit("/", 1)[-1], "path": path, "size": size}


def _dir(path: str) -> dict:
    return {"type": "dir", "name": path.rsplit("/", 1)[-1], "path": path}


def _listing(tree: dict[str, list[dict]]):
    """Side effect for get_repository_contents backed by a path -> entries map."""
    async def _contents(access_token, full_name, path="", ref="main"):
        if path not in tree:
            raise GitHubError("GitHub resource not found", upstream_status=404)
        return tree[path]
    return _contents


async def _content(access_token, full_name, path, ref="main"):
    return f"# {path}\n"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_file_extension():
    assert file_extension("app.py") == ".py"
    assert file_extension("archive.tar.gz") == ".gz"
    assert file_extension("Makefile") == ""


def test_detect_language():
    assert detect_language(".tsx") == "typescript"
    assert detect_language(".yml") == "yaml"
    assert detect_language(".md") == "text"


def test_is_collectable():
    assert is_collectable("main.go", 10)
    assert not is_collectable("README.md", 10)
    assert not is_collectable("big.py", 100_000)
    assert is_collectable("big.py", 99_999)
    assert not is_collectable("Dockerfile", 10)


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_collects_supported_files_recursively():
    tree = {
        "": [_file("main.py"), _file("README.md"), _dir("src")],
        "src": [_file("src/app.ts"), _dir("src/lib")],
        "src/lib": [_file("src/lib/util.rs")],
    }
    with patch(f"{BASE}.get_repository_contents", AsyncMock(side_effect=_listing(tree))), \
         patch(f"{BASE}.get_file_content", AsyncMock(side_effect=_content)):
        files = await collect_code_files("tok", "octocat/hello", "main")

    assert [f.path for f in files] == ["main.py", "src/app.ts", "src/lib/util.rs"]
    assert [f.language for f in files] == ["python", "typescript", "rust"]
    assert files[0].content == "# main.py\n"


@pytest.mark.asyncio
async def test_ignored_directories_are_not_entered():
    tree = {
        "": [_dir("node_modules"), _dir(".git"), _dir("vendor"), _dir("src")],
        "src": [_file("src/index.js")],
    }
    contents = AsyncMock(side_effect=_listing(tree))
    with patch(f"{BASE}.get_repository_contents", contents), \
         patch(f"{BASE}.get_file_content", AsyncMock(side_effect=_content)):
        files = await collect_code_files("tok", "octocat/hello", "main")

    assert [f.path for f in files] == ["src/index.js"]
    listed = [c.args[2] for c in contents.call_args_list]
    assert listed == ["", "src"]


@pytest.mark.asyncio
async def test_oversized_files_are_skipped():
    tree = {"": [_file("huge.py", size=100_000), _file("ok.py", size=50)]}
    fetch = AsyncMock(side_effect=_content)
    with patch(f"{BASE}.get_repository_contents", AsyncMock(side_effect=_listing(tree))), \
         patch(f"{BASE}.get_file_content", fetch):
        files = await collect_code_files("tok", "octocat/hello", "main")

    assert [f.path for f in files] == ["ok.py"]
    fetch.assert_awaited_once()


@pytest.mark.asyncio
async def test_stops_at_file_cap():
    tree = {
        "": [_file(f"f{i:03d}.py") for i in range(150)] + [_dir("more")],
        "more": [_file("more/x.py")],
    }
    contents = AsyncMock(side_effect=_listing(tree))
    with patch(f"{BASE}.get_repository_contents", contents), \
         patch(f"{BASE}.get_file_content", AsyncMock(side_effect=_content)):
        files = await collect_code_files("tok", "octocat/hello", "main")

    assert len(files) == 100
    assert files[-1].path == "f099.py"
    # the cap is hit before the trailing directory is listed
    assert contents.await_count == 1


@pytest.mark.asyncio
async def test_custom_cap():
    tree = {"": [_file(f"f{i}.py") for i in range(10)]}
    with patch(f"{BASE}.get_repository_contents", AsyncMock(side_effect=_listing(tree))), \
         patch(f"{BASE}.get_file_content", AsyncMock(side_effect=_content)):
        files = await collect_code_files("tok", "octocat/hello", "main", max_files=3)
    assert len(files) == 3


@pytest.mark.asyncio
async def test_failing_entries_are_skipped():
    tree = {
        "": [_dir("broken"), _file("bad.py"), _file("good.py")],
    }

    async def _flaky_content(access_token, full_name, path, ref="main"):
        if path == "bad.py":
            raise ValueError("Not a file or content not available: bad.py")
        return "print('hi')"

    with patch(f"{BASE}.get_repository_contents", AsyncMock(side_effect=_listing(tree))), \
         patch(f"{BASE}.get_file_content", AsyncMock(side_effect=_flaky_content)):
        files = await collect_code_files("tok", "octocat/hello", "main")

    assert [f.path for f in files] == ["good.py"]


@pytest.mark.asyncio
async def test_root_listing_failure_raises_collection_error():
    contents = AsyncMock(side_effect=GitHubError("GitHub token is invalid or expired", upstream_status=401))
    with patch(f"{BASE}.get_repository_contents", contents):
        with pytest.raises(CollectionError) as exc_info:
            await collect_code_files("tok", "octocat/hello", "main")
    assert exc_info.value.stage == "collection"
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_sorted_listings_give_path_order():
    tree = {
        "": [_file("z.py"), _dir("b"), _file("a.py")],
        "b": [_file("b/y.py"), _file("b/c.py")],
    }
    with patch(f"{BASE}.get_repository_contents", AsyncMock(side_effect=_listing(tree))), \
         patch(f"{BASE}.get_file_content", AsyncMock(side_effect=_content)):
        unsorted = await collect_code_files("tok", "octocat/hello", "main")
        ordered = await collect_code_files("tok", "octocat/hello", "main", sort_listings=True)

    assert [f.path for f in unsorted] == ["z.py", "b/y.py", "b/c.py", "a.py"]
    assert [f.path for f in ordered] == ["a.py", "b/c.py", "b/y.py", "z.py"]


# ---------------------------------------------------------------------------
# Real client over a mock transport
# ---------------------------------------------------------------------------


def _github_transport(root_body=None):
    """MockTransport serving a tiny repo whose ``broken`` dir returns HTML."""
    encoded = base64.b64encode(b"print('a')\n").decode()

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/contents/"):
            if root_body is not None:
                return httpx.Response(200, text=root_body)
            return httpx.Response(200, json=[_dir("broken"), _file("a.py")])
        if path.endswith("/contents/broken"):
            return httpx.Response(200, text="<html>proxy error</html>")
        if path.endswith("/contents/a.py"):
            return httpx.Response(
                200, json={"type": "file", "encoding": "base64", "content": encoded},
            )
        return httpx.Response(404, json={"message": "Not Found"})

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_non_json_directory_listing_is_skipped():
    client = httpx.AsyncClient(transport=_github_transport())
    try:
        with patch("codescore.clients.github_client._get_client", return_value=client):
            files = await collect_code_files("tok", "octocat/hello", "main")
    finally:
        await client.aclose()

    assert [f.path for f in files] == ["a.py"]
    assert files[0].content == "print('a')\n"


@pytest.mark.asyncio
async def test_non_json_root_listing_raises_collection_error():
    client = httpx.AsyncClient(transport=_github_transport(root_body="<html>oops</html>"))
    try:
        with patch("codescore.clients.github_client._get_client", return_value=client):
            with pytest.raises(CollectionError):
                await collect_code_files("tok", "octocat/hello", "main")
    finally:
        await client.aclose()
