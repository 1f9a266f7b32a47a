"""Tests for db/models.py module."""

import pytest

from db.models import BLOG, POST, Blog, Post, entity_type_of, get_entity_type


class TestEntityTypes:
    """Tests for entity metadata."""

    def test_blog_columns(self):
        """Test the posts collection is not a column."""
        assert BLOG.columns == ("id", "name", "author", "created_at", "description", "url", "rating")
        assert BLOG.relations["posts"].foreign_key == "blog_id"

    def test_post_columns(self):
        assert POST.columns == ("id", "blog_id", "title", "content")

    def test_lookup(self):
        """Test lookup by name and by instance."""
        assert get_entity_type("blog") is BLOG
        assert entity_type_of(Post()) is POST
        with pytest.raises(ValueError):
            get_entity_type("comment")

    def test_from_row_prefix(self):
        """Test building an entity from prefixed aliases."""
        row = {"p__id": 1, "p__blog_id": 2, "p__title": "t", "p__content": "c"}
        assert POST.from_row(row, prefix="p__") == Post(id=1, blog_id=2, title="t", content="c")

    def test_values(self):
        blog = Blog(id=3, name="n", rating=4)
        values = BLOG.values(blog)
        assert values["rating"] == 4
        assert "posts" not in values
        assert BLOG.key_of(blog) == 3
