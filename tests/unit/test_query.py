"""
Unit tests for the query builder.
"""

import pytest

from pressframe.db.query import QueryBuilder, UnsafeMutationError


def seed_posts(conn, count: int):
    conn.execute("CREATE TABLE posts (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT, views INTEGER, status TEXT)")
    for i in range(1, count + 1):
        QueryBuilder("posts", conn).insert({
            "title": f"Post {i}",
            "views": i * 10,
            "status": "published" if i % 2 else "draft",
        })


class TestCompilation:
    """Tests for SQL and binding generation (no database needed)."""

    def test_select_all(self):
        """Test the default SELECT."""
        assert QueryBuilder("blogs").to_sql() == 'SELECT * FROM "blogs"'

    def test_where_shorthand_uses_equals(self):
        """Test where(column, value) compiles to column = ?."""
        query = QueryBuilder("blogs").where("status", "draft")

        assert query.to_sql() == 'SELECT * FROM "blogs" WHERE "status" = ?'
        assert query.bindings == ("draft",)

    def test_n_wheres_give_n_placeholders_in_order(self):
        """Test that every where() adds exactly one placeholder and one binding."""
        query = (QueryBuilder("blogs")
            .where("status", "published")
            .where("views", ">", 100)
            .or_where("featured", 1)
            .where("category_id", "!=", 3))

        sql = query.to_sql()
        assert sql.count("?") == 4
        assert query.bindings == ("published", 100, 1, 3)
        assert '"status" = ? AND "views" > ? OR "featured" = ? AND "category_id" != ?' in sql

    def test_values_never_appear_in_sql(self):
        """Test that values are bound, not interpolated."""
        query = QueryBuilder("blogs").where("title", "x'; DROP TABLE blogs; --")

        assert "DROP" not in query.to_sql()
        assert query.bindings == ("x'; DROP TABLE blogs; --",)

    def test_where_in(self):
        """Test IN with one placeholder per value."""
        query = QueryBuilder("blogs").where("status", "draft").where_in("id", [1, 2, 3])

        assert query.to_sql().endswith('WHERE "status" = ? AND "id" IN (?, ?, ?)')
        assert query.bindings == ("draft", 1, 2, 3)

    def test_where_in_empty_matches_nothing(self):
        """Test that an empty IN list compiles to a false predicate."""
        query = QueryBuilder("blogs").where_in("id", [])

        assert query.to_sql().endswith("WHERE 1 = 0")
        assert query.bindings == ()

    def test_where_null_has_no_binding(self):
        """Test IS NULL / IS NOT NULL."""
        query = QueryBuilder("categories").where_null("parent_id").where_not_null("slug")

        assert query.to_sql().endswith('WHERE "parent_id" IS NULL AND "slug" IS NOT NULL')
        assert query.bindings == ()

    def test_where_any_groups_alternatives(self):
        """Test that where_any() wraps its OR in parentheses."""
        query = (QueryBuilder("blogs")
            .where("status", "published")
            .where_any(["title", "content"], "like", "%py%"))

        assert query.to_sql().endswith('WHERE "status" = ? AND ("title" LIKE ? OR "content" LIKE ?)')
        assert query.bindings == ("published", "%py%", "%py%")

    def test_order_limit_offset(self):
        """Test ORDER BY, LIMIT and OFFSET."""
        sql = QueryBuilder("blogs").order_by("created_at", "desc").order_by("id").limit(10).offset(20).to_sql()

        assert sql == 'SELECT * FROM "blogs" ORDER BY "created_at" DESC, "id" ASC LIMIT 10 OFFSET 20'

    def test_select_columns(self):
        """Test an explicit column list."""
        sql = QueryBuilder("blogs").select("id", "title").to_sql()
        assert sql == 'SELECT "id", "title" FROM "blogs"'

    def test_rejects_unknown_operator(self):
        """Test the operator whitelist."""
        with pytest.raises(ValueError):
            QueryBuilder("blogs").where("id", "; DELETE", 1)

    def test_rejects_bad_direction(self):
        """Test the sort direction whitelist."""
        with pytest.raises(ValueError):
            QueryBuilder("blogs").order_by("id", "sideways")


class TestUnsafeMutations:
    """Tests for the UPDATE/DELETE guard."""

    def test_update_without_where_raises_before_sql(self, conn, sql_log):
        """Test that an unconditional update issues no SQL."""
        sql_log.clear()

        with pytest.raises(UnsafeMutationError):
            QueryBuilder("blogs", conn).update({"status": "draft"})

        assert sql_log.statements == []

    def test_delete_without_where_raises_before_sql(self, conn, sql_log):
        """Test that an unconditional delete issues no SQL."""
        sql_log.clear()

        with pytest.raises(UnsafeMutationError):
            QueryBuilder("blogs", conn).delete()

        assert sql_log.statements == []


class TestExecution:
    """Tests against a real SQLite database."""

    def test_insert_returns_id(self, conn):
        """Test that insert() returns the new primary key."""
        conn.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY AUTOINCREMENT, body TEXT)")

        first = QueryBuilder("notes", conn).insert({"body": "a"})
        second = QueryBuilder("notes", conn).insert({"body": "b"})

        assert (first, second) == (1, 2)

    def test_get_first_count(self, conn):
        """Test reads."""
        seed_posts(conn, 5)

        drafts = QueryBuilder("posts", conn).where("status", "draft").order_by("id").get()
        assert [row["title"] for row in drafts] == ["Post 2", "Post 4"]

        first = QueryBuilder("posts", conn).where("views", ">=", 30).order_by("views").first()
        assert first["title"] == "Post 3"

        assert QueryBuilder("posts", conn).count() == 5
        assert QueryBuilder("posts", conn).where("id", 99).first() is None

    def test_update_binds_set_before_where(self, conn):
        """Test that SET values and WHERE values land on the right placeholders."""
        seed_posts(conn, 3)

        QueryBuilder("posts", conn).where("id", 2).update({"title": "Renamed", "views": 7})

        row = QueryBuilder("posts", conn).where("id", 2).first()
        assert row["title"] == "Renamed"
        assert row["views"] == 7
        assert QueryBuilder("posts", conn).where("title", "Renamed").count() == 1

    def test_delete_with_where_in(self, conn):
        """Test a conditional delete."""
        seed_posts(conn, 4)

        QueryBuilder("posts", conn).where_in("id", [1, 3]).delete()

        remaining = QueryBuilder("posts", conn).order_by("id").get()
        assert [row["id"] for row in remaining] == [2, 4]

    def test_empty_insert_is_refused(self, conn, sql_log):
        """Test that insert({}) returns None without sending SQL."""
        conn.execute("CREATE TABLE notes (id INTEGER PRIMARY KEY AUTOINCREMENT, body TEXT)")
        sql_log.clear()

        assert QueryBuilder("notes", conn).insert({}) is None
        assert sql_log.statements == []

    def test_empty_update_is_a_noop(self, conn, sql_log):
        """Test that update({}) returns False without sending SQL."""
        seed_posts(conn, 1)
        sql_log.clear()

        assert QueryBuilder("posts", conn).where("id", 1).update({}) is False
        assert sql_log.statements == []


class TestPaginate:
    """Tests for paginate() / simple_paginate()."""

    def test_forty_seven_rows_page_five(self, conn):
        """Test the last page of 47 rows at 10 per page."""
        seed_posts(conn, 47)

        page = QueryBuilder("posts", conn).order_by("id").paginate(per_page=10, page=5)

        assert page.total == 47
        assert page.last_page == 5
        assert page.from_ == 41
        assert page.to == 47
        assert page.prev_page == 4
        assert page.next_page is None
        assert page.has_more_pages is False
        assert [row["id"] for row in page.data] == [41, 42, 43, 44, 45, 46, 47]

    def test_first_page(self, conn):
        """Test page one."""
        seed_posts(conn, 47)

        page = QueryBuilder("posts", conn).order_by("id").paginate(per_page=10, page=1)

        assert page.from_ == 1
        assert page.to == 10
        assert page.prev_page is None
        assert page.next_page == 2
        assert page.has_more_pages is True

    def test_empty_result(self, conn):
        """Test pagination of no rows."""
        seed_posts(conn, 0)

        page = QueryBuilder("posts", conn).paginate(per_page=10, page=1)

        assert page.total == 0
        assert page.from_ == 0
        assert page.to == 0
        assert page.data == []

    def test_page_read_from_request(self, conn, make_request):
        """Test that the page number comes from the query string when not given."""
        seed_posts(conn, 25)
        request = make_request("GET", "/posts", query={"page": "3"})

        page = QueryBuilder("posts", conn).order_by("id").paginate(per_page=10, request=request)

        assert page.current_page == 3
        assert page.path == "/posts"
        assert [row["id"] for row in page.data] == [21, 22, 23, 24, 25]

    def test_where_applies_to_count(self, conn):
        """Test that the total respects the WHERE clause."""
        seed_posts(conn, 10)

        page = QueryBuilder("posts", conn).where("status", "draft").paginate(per_page=2, page=1)

        assert page.total == 5
        assert page.last_page == 3

    def test_simple_paginate(self, conn):
        """Test next-page detection without a count."""
        seed_posts(conn, 12)

        page = QueryBuilder("posts", conn).order_by("id").simple_paginate(per_page=5, page=3)

        assert [row["id"] for row in page.data] == [11, 12]
        assert page.has_more_pages is False
        assert page.next_page is None
        assert page.prev_page == 2
