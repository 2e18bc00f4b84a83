"""
BranchBooks - Query Helpers

Free-text search fragments for SQLAlchemy ``ilike`` filters.
"""

LIKE_ESCAPE = "\\"


def contains_pattern(search: str) -> str:
    """
    Build a ``%...%`` pattern that matches ``search`` literally.

    ``%`` and ``_`` typed by the user are escaped; use with
    ``column.ilike(pattern, escape=LIKE_ESCAPE)``.
    """
    escaped = (
        search.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
