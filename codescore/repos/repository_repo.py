"""Repository repository -- database reads and writes for the repositories table."""

from uuid import UUID

from codescore.repos.db import get_pool

_COLUMNS = """
    id, user_id, full_name, default_branch, language,
    last_analyzed_at, created_at, updated_at
"""


async def get_repository_by_id(repository_id: UUID) -> dict | None:
    """Fetch a repository by primary key. Returns None if not found."""
    pool = await get_pool()
    row = await pool.fetchrow(
        f"SELECT {_COLUMNS} FROM repositories WHERE id = $1",
        repository_id,
    )
    return dict(row) if row else None


async def delete_repository(repository_id: UUID) -> bool:
    """Delete a repository by primary key. Returns True if a row was deleted.

    Its analysis results are removed by the ``ON DELETE CASCADE`` foreign key.
    """
    pool = await get_pool()
    result = await pool.execute(
        "DELETE FROM repositories WHERE id = $1",
        repository_id,
    )
    return result == "DELETE 1"
