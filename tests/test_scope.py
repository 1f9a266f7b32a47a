"""Tests for db/scope.py module."""

import threading
import pytest

from db.errors import Cancelled, ConstraintViolation, PoolExhausted, QueryError, ReadOnlyResult
from db.models import Blog, Post
from db.scope import ChangeTracker, SessionScope
from query.descriptor import query
from query.strategies import CachedStrategy, TrackedStrategy, projection_type


class TestChangeTracker:
    """Tests for ChangeTracker class."""

    def test_attach_returns_tracked_instance(self):
        """Test attaching the same key twice keeps the first instance."""
        tracker = ChangeTracker()
        first = tracker.attach(Blog(id=1, name="a"))
        second = tracker.attach(Blog(id=1, name="b"))

        assert second is first
        assert len(tracker) == 1

    def test_same_key_different_types(self):
        """Test identity is per entity type."""
        tracker = ChangeTracker()
        tracker.attach(Blog(id=1))
        tracker.attach(Post(id=1))
        assert len(tracker) == 2

    def test_attach_projection_rejected(self):
        """Test projected rows can't be attached."""
        row = projection_type("blog", ("name",))("x")
        with pytest.raises(ReadOnlyResult):
            ChangeTracker().attach(row)

    def test_attach_unmapped_rejected(self):
        """Test only mapped entities can be tracked."""
        with pytest.raises(ValueError, match="Not a mapped entity"):
            ChangeTracker().attach(object())

    def test_changes_only_modified_columns(self):
        """Test the diff lists only columns that changed."""
        tracker = ChangeTracker()
        blog = tracker.attach(Blog(id=1, name="a", rating=1))
        tracker.attach(Blog(id=2, name="b"))

        blog.rating = 5

        assert tracker.changes() == [(blog, {"rating": 5})]

    def test_primary_key_change_rejected(self):
        """Test changing a tracked identifier is an error."""
        tracker = ChangeTracker()
        blog = tracker.attach(Blog(id=1))
        blog.id = 2
        with pytest.raises(ValueError, match="Identifier"):
            tracker.changes()

    def test_remove_untracked(self):
        """Test only tracked entities can be removed."""
        with pytest.raises(ValueError, match="not tracked"):
            ChangeTracker().remove(Blog(id=1))

    def test_accept_changes(self):
        """Test accepting re-snapshots and applies adds and removes."""
        tracker = ChangeTracker()
        kept = tracker.attach(Blog(id=1, rating=1))
        gone = tracker.attach(Blog(id=2))
        new = Blog(id=3)
        kept.rating = 2
        tracker.remove(gone)
        tracker.add(new)

        tracker.accept_changes()

        assert tracker.changes() == []
        assert tracker.is_tracked(new)
        assert not tracker.is_tracked(gone)
        assert tracker.added == []
        assert tracker.removed == []


class TestSessionScope:
    """Tests for SessionScope class."""

    def test_acquires_and_releases(self, seeded_pool):
        """Test the scope holds one session for its lifetime."""
        with SessionScope(seeded_pool) as scope:
            assert scope.is_active
            assert seeded_pool.in_flight_count == 1
        assert not scope.is_active
        assert seeded_pool.in_flight_count == 0
        assert seeded_pool.free_count == seeded_pool.capacity

    def test_releases_once_on_exception(self, seeded_pool):
        """Test an error inside the block still releases exactly once."""
        with pytest.raises(QueryError):
            with SessionScope(seeded_pool) as scope:
                scope.execute(query("blog").from_sql("SELECT * FROM nowhere"))

        assert seeded_pool.in_flight_count == 0
        assert seeded_pool.free_count == seeded_pool.capacity

    def test_not_reentrant(self, seeded_pool):
        """Test a scope can't be entered twice."""
        scope = SessionScope(seeded_pool)
        with scope:
            with pytest.raises(RuntimeError, match="re-entered"):
                scope.__enter__()
        assert seeded_pool.in_flight_count == 0

    def test_session_outside_block(self, seeded_pool):
        """Test the session is only available inside the block."""
        with pytest.raises(RuntimeError, match="not active"):
            SessionScope(seeded_pool).session

    def test_pool_exhausted(self, seeded_pool):
        """Test entering with no free session times out."""
        with SessionScope(seeded_pool), SessionScope(seeded_pool):
            with pytest.raises(PoolExhausted):
                with SessionScope(seeded_pool, timeout=0.1):
                    pass
        assert seeded_pool.free_count == seeded_pool.capacity

    def test_cancel_releases_session(self, seeded_pool):
        """Test a cancelled query propagates and the session goes back."""
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(Cancelled):
            with SessionScope(seeded_pool) as scope:
                scope.execute(query("blog"), cancel=cancel)

        assert seeded_pool.in_flight_count == 0
        assert seeded_pool.free_count == seeded_pool.capacity

    def test_execute_cancel_is_temporary(self, scope):
        """Test a per-call cancel token doesn't stick to the scope."""
        cancel = threading.Event()
        scope.execute(query("blog"), cancel=cancel)
        assert scope.cancel is None

    def test_execute_sql(self, scope):
        """Test raw parameterized SQL passthrough."""
        rows = scope.execute_sql("SELECT name FROM blogs WHERE id = ?", [3])
        assert rows[0]["name"] == "Blog Name 2"

    def test_save_without_changes(self, scope):
        """Test saving nothing issues no statements."""
        before = scope.session.round_trips
        assert scope.save_changes() == 0
        assert scope.session.round_trips == before

    def test_insert_assigns_id(self, scope):
        """Test added entities get their generated id."""
        blog = Blog(name="New", author="Me", url="http://new.example")
        scope.add(blog)

        assert scope.save_changes() == 1
        assert blog.id == 21
        assert scope.tracker.is_tracked(blog)
        assert scope.execute_sql("SELECT name FROM blogs WHERE id = 21")[0][0] == "New"

    def test_update_only_changed_columns(self, scope):
        """Test an update leaves untouched columns alone."""
        blog = scope.execute(query("blog").where("id", "eq", 1), TrackedStrategy()).first()
        scope.execute_sql("UPDATE blogs SET author = 'Elsewhere' WHERE id = 1")
        blog.rating = 42

        scope.save_changes()

        row = scope.execute_sql("SELECT author, rating FROM blogs WHERE id = 1")[0]
        assert row["rating"] == 42
        assert row["author"] == "Elsewhere"

    def test_second_save_is_noop(self, scope):
        """Test saved changes are accepted."""
        blog = scope.execute(query("blog").where("id", "eq", 1), TrackedStrategy()).first()
        blog.name = "Changed"
        assert scope.save_changes() == 1
        assert scope.save_changes() == 0

    def test_delete_cascades(self, scope, query_cache):
        """Test removing a blog deletes its posts and invalidates both types."""
        cached = CachedStrategy(query_cache)
        scope.execute(query("post").where("blog_id", "eq", 1), cached)
        blog = scope.execute(query("blog").where("id", "eq", 1), TrackedStrategy()).first()

        scope.remove(blog)
        scope.save_changes()

        assert scope.execute_sql("SELECT COUNT(*) FROM posts WHERE blog_id = 1")[0][0] == 0
        assert query_cache.size == 0
        assert not scope.tracker.is_tracked(blog)

    def test_failed_save_rolls_back(self, scope):
        """Test a constraint failure leaves the store unchanged."""
        blog = scope.execute(query("blog").where("id", "eq", 1), TrackedStrategy()).first()
        blog.rating = 99
        scope.add(Blog(name="Dup", url="http://www.someblog1.com"))

        with pytest.raises(ConstraintViolation):
            scope.save_changes()

        assert scope.execute_sql("SELECT COUNT(*) FROM blogs")[0][0] == 20
        assert scope.session.in_transaction is False
        assert scope.tracker.changes() == [(blog, {"rating": 99})]

    def test_failed_save_voids_generated_ids(self, scope):
        """Test ids assigned before a rollback are cleared again."""
        fresh = Blog(name="Fresh", url="http://fresh.example")
        scope.add(fresh)
        scope.add(Blog(name="Dup", url="http://www.someblog1.com"))

        with pytest.raises(ConstraintViolation):
            scope.save_changes()

        assert fresh.id is None
        assert scope.execute_sql("SELECT COUNT(*) FROM blogs WHERE name = ?", ["Fresh"])[0][0] == 0
