"""Blog repository with the different ways of filtering by keyword."""

from typing import TYPE_CHECKING, List, Optional

from query.compiler import escape_like
from query.descriptor import query
from query.strategies import DirectStrategy, QueryStrategy

if TYPE_CHECKING:
    from ..models import Blog
    from ..scope import SessionScope

RAW_KEYWORD_SQL = "SELECT * FROM blogs WHERE name LIKE ? ESCAPE '\\'"


def contains_keyword(text: Optional[str], keyword: str) -> bool:
    """Case-insensitive substring match, evaluated in Python."""
    return text is not None and keyword.lower() in text.lower()


class BlogRepository:
    """Repository for querying blogs within one unit of work."""

    def __init__(self, scope: "SessionScope", strategy: Optional[QueryStrategy] = None):
        self.scope = scope
        self.strategy = strategy or DirectStrategy()

    def _run(self, descriptor) -> List["Blog"]:
        return list(self.scope.execute(descriptor, self.strategy))

    def filter_custom_method(self, keyword: str) -> List["Blog"]:
        """Filter with a Python function without opting in to client evaluation.

        Raises UntranslatablePredicate: the function can't run in the store.
        """
        descriptor = query("blog").where_client(
            lambda blog: contains_keyword(blog.name, keyword),
            name=f"contains_keyword(name, {keyword!r})",
        )
        return self._run(descriptor)

    def filter_client_side(self, keyword: str) -> List["Blog"]:
        """Fetch every blog and filter in memory."""
        descriptor = query("blog").where_client(
            lambda blog: contains_keyword(blog.name, keyword),
            name=f"contains_keyword(name, {keyword!r})",
        ).with_client_eval()
        return self._run(descriptor)

    def filter_server_side(self, keyword: str) -> List["Blog"]:
        """Push the keyword match to the store as a LIKE condition."""
        return self._run(query("blog").where("name", "contains", keyword))

    def filter_raw_sql(self, keyword: str) -> List["Blog"]:
        """Filter with parameterized raw SQL, wildcards in the keyword matched literally."""
        return self._run(query("blog").from_sql(RAW_KEYWORD_SQL, f"%{escape_like(keyword)}%"))

    def first(self) -> Optional["Blog"]:
        """The blog with the lowest id."""
        result = self.scope.execute(query("blog").ordered_by("id").take(1), self.strategy)
        return result.first()

    def highest_rated(self) -> List["Blog"]:
        """All blogs sharing the maximum rating."""
        rows = self.scope.execute_sql("SELECT MAX(rating) FROM blogs")
        max_rating = rows[0][0] if rows else None
        if max_rating is None:
            return []
        return self._run(query("blog").where("rating", "eq", max_rating))
