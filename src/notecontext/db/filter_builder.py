"""WHERE clause assembly with numbered asyncpg placeholders."""

from typing import Any


class FilterBuilder:
    """Collects SQL conditions and their parameters.

    Placeholders are numbered from `start_idx`, so the positional
    parameters a query reserves up front ($1..$n) stay untouched.

    Example:
        fb = FilterBuilder(start_idx=4)   # $1 vector, $2 threshold, $3 limit
        fb.add_owner_filter(user_id)
        fb.add("embedding IS NOT NULL")

        sql = f"SELECT ... WHERE {fb.build()} ..."
        rows = await conn.fetch(sql, vector, threshold, limit, *fb.values)
    """

    def __init__(self, start_idx: int = 1):
        self._conditions: list[str] = []
        self._values: list[Any] = []
        self._param_idx = start_idx

    @property
    def values(self) -> list[Any]:
        """Parameter values in placeholder order."""
        return self._values

    def add(self, condition: str) -> "FilterBuilder":
        """Add a literal condition that takes no parameters."""
        self._conditions.append(condition)
        return self

    def add_param(self, condition_template: str, value: Any) -> "FilterBuilder":
        """Add a condition whose `${}` marker becomes the next placeholder.

        Example: add_param("user_id = ${}", "u1") adds "user_id = $4".
        """
        self._conditions.append(condition_template.replace("${}", f"${self._param_idx}"))
        self._values.append(value)
        self._param_idx += 1
        return self

    def add_owner_filter(self, user_id: str, col_prefix: str = "") -> "FilterBuilder":
        """Restrict rows to one user's live (not soft-deleted) notes.

        Every note query goes through this; there is no unscoped search.

        Raises:
            ValueError: If user_id is empty
        """
        if not user_id:
            raise ValueError("user_id is required for note queries")
        self.add_param(f"{col_prefix}user_id = ${{}}", user_id)
        self.add(f"{col_prefix}deleted_at IS NULL")
        return self

    def build(self, default: str = "TRUE") -> str:
        """Join the conditions with AND, or return `default` when there are none."""
        return " AND ".join(self._conditions) if self._conditions else default
