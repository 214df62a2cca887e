"""Tests for query building."""

import pytest

from recordkit import ExecutionError, MissingConnectionError, QueryBuilder, QueryCompilationError


def qb(table="posts"):
    return QueryBuilder(None, table)


def test_select_basic():
    """Test basic SELECT generation."""
    query = qb()
    assert query.to_sql() == "SELECT * FROM posts"
    assert query.get_bindings() == []


def test_select_columns():
    """Test explicit projection as varargs or a list."""
    assert qb().select("id", "title").to_sql() == "SELECT id, title FROM posts"
    assert qb().select(["id", "title"]).to_sql() == "SELECT id, title FROM posts"
    assert qb().select("id").add_select("title").to_sql() == "SELECT id, title FROM posts"
    assert qb().distinct().select("status").to_sql() == "SELECT DISTINCT status FROM posts"


def test_where_chain():
    """Test chained where clauses and binding order."""
    query = qb().where("status", "=", "published").where("views", ">", 10)
    assert query.to_sql() == "SELECT * FROM posts WHERE status = ? and views > ?"
    assert query.get_bindings() == ["published", 10]


def test_where_two_argument_form_implies_equals():
    """Test where(column, value)."""
    query = qb().where("votes", 100)
    assert query.to_sql() == "SELECT * FROM posts WHERE votes = ?"
    assert query.get_bindings() == [100]


def test_unknown_operator_becomes_value():
    """Test that an unrecognized operator is treated as the value."""
    query = qb().where("status", "published")
    assert query.to_sql() == "SELECT * FROM posts WHERE status = ?"
    assert query.get_bindings() == ["published"]


def test_or_where():
    """Test OR connectors."""
    query = qb().where("a", 1).or_where("b", 2)
    assert query.to_sql() == "SELECT * FROM posts WHERE a = ? or b = ?"
    assert query.get_bindings() == [1, 2]


def test_first_clause_has_no_connector():
    """Test that a leading or_where renders without a connector."""
    query = qb().or_where("a", 1).where("b", 2)
    assert query.to_sql() == "SELECT * FROM posts WHERE a = ? and b = ?"


def test_where_none_becomes_null_check():
    """Test that comparing to None compiles to IS NULL / IS NOT NULL."""
    assert qb().where("deleted_at", None).to_sql() == "SELECT * FROM posts WHERE deleted_at is null"
    assert qb().where("deleted_at", "=", None).to_sql() == "SELECT * FROM posts WHERE deleted_at is null"
    assert qb().where("deleted_at", "!=", None).to_sql() == "SELECT * FROM posts WHERE deleted_at is not null"
    assert qb().where("deleted_at", None).get_bindings() == []


def test_illegal_operator_and_none():
    """Test that ordering comparisons against None are rejected."""
    with pytest.raises(QueryCompilationError, match="Illegal operator"):
        qb().where("views", ">", None)


def test_where_in():
    """Test IN and NOT IN."""
    query = qb("comments").where_in("post_id", [1, 2, 3])
    assert query.to_sql() == "SELECT * FROM comments WHERE post_id in (?,?,?)"
    assert query.get_bindings() == [1, 2, 3]

    query = qb().where_not_in("id", [4, 5])
    assert query.to_sql() == "SELECT * FROM posts WHERE id not in (?,?)"


def test_where_in_empty():
    """Test that empty IN lists compile to constant predicates."""
    assert qb().where_in("id", []).to_sql() == "SELECT * FROM posts WHERE 0 = 1"
    assert qb().where_not_in("id", []).to_sql() == "SELECT * FROM posts WHERE 1 = 1"
    assert qb().where_in("id", []).get_bindings() == []


def test_or_where_in_and_null_variants():
    """Test the OR forms of IN and NULL checks."""
    query = qb().where("a", 1).or_where_in("b", [2]).or_where_null("c").or_where_not_null("d")
    assert query.to_sql() == "SELECT * FROM posts WHERE a = ? or b in (?) or c is null or d is not null"
    assert query.get_bindings() == [1, 2]


def test_where_between():
    """Test BETWEEN and NOT BETWEEN."""
    query = qb().where_between("views", 1, 10).where_not_between("id", 5, 6)
    assert query.to_sql() == "SELECT * FROM posts WHERE views between ? and ? and id not between ? and ?"
    assert query.get_bindings() == [1, 10, 5, 6]


def test_nested_where():
    """Test a callable building a parenthesized group."""
    query = qb().where("status", "published").where(lambda q: q.where("a", 1).or_where("b", 2))
    assert query.to_sql() == "SELECT * FROM posts WHERE status = ? and (a = ? or b = ?)"
    assert query.get_bindings() == ["published", 1, 2]


def test_nested_or_where():
    """Test a nested group joined with OR."""
    query = qb().where("a", 1).or_where(lambda q: q.where("b", 2).where("c", 3))
    assert query.to_sql() == "SELECT * FROM posts WHERE a = ? or (b = ? and c = ?)"


def test_empty_nested_group_is_dropped():
    """Test that a callback adding no clauses adds nothing."""
    query = qb().where(lambda q: None)
    assert query.to_sql() == "SELECT * FROM posts"


def test_where_mapping():
    """Test a mapping of equalities."""
    query = qb().where({"status": "published", "user_id": 1})
    assert query.to_sql() == "SELECT * FROM posts WHERE (status = ? and user_id = ?)"
    assert query.get_bindings() == ["published", 1]


def test_where_nested_requires_callable():
    """Test the nested-where contract."""
    with pytest.raises(QueryCompilationError):
        qb().where_nested("status")


def test_join():
    """Test JOIN compilation."""
    query = qb().join("comments", "posts.id", "=", "comments.post_id")
    assert query.to_sql() == "SELECT * FROM posts INNER JOIN comments ON posts.id = comments.post_id"

    query = qb().left_join("users", "posts.user_id", "users.id")
    assert query.to_sql() == "SELECT * FROM posts LEFT JOIN users ON posts.user_id = users.id"


def test_order_limit_offset():
    """Test ORDER BY, LIMIT and OFFSET."""
    query = qb().order_by("created_at", "DESC").order_by("id").limit(10).offset(20)
    assert query.to_sql() == "SELECT * FROM posts ORDER BY created_at desc, id asc LIMIT 10 OFFSET 20"


def test_limit_and_offset_clamp():
    """Test that negative paging values clamp to zero."""
    assert qb().limit(-5).limit_value == 0
    assert qb().take(0).limit_value == 0
    assert qb().offset(-3).offset_value == 0
    assert qb().skip(4).offset_value == 4


def test_invalid_order_direction():
    """Test order direction validation."""
    with pytest.raises(QueryCompilationError, match='"asc" or "desc"'):
        qb().order_by("id", "sideways")


def test_clone_is_independent():
    """Test that a clone does not share where state."""
    base = qb().where("a", 1)
    branch = base.clone().where("b", 2)
    assert base.to_sql() == "SELECT * FROM posts WHERE a = ?"
    assert branch.to_sql() == "SELECT * FROM posts WHERE a = ? and b = ?"


def test_compile_update_and_delete():
    """Test UPDATE and DELETE compilation."""
    query = qb().where("id", 1)
    assert query.compile_update({"title": "x", "views": 2}) == "UPDATE posts SET title = ?, views = ? WHERE id = ?"
    assert query.compile_delete() == "DELETE FROM posts WHERE id = ?"
    assert query.compile_insert(["title", "views"]) == "INSERT INTO posts (title, views) VALUES (?, ?)"


def test_execution_without_connection():
    """Test that running a query with no connection fails clearly."""
    with pytest.raises(MissingConnectionError):
        qb().get()


class TestExecution:
    """Queries executed against SQLite."""

    def test_get_and_first(self, seeded):
        """Test fetching rows."""
        rows = QueryBuilder(seeded, "posts").where("status", "published").order_by("id").get()
        assert [row["title"] for row in rows] == ["Hello", "World"]

        row = QueryBuilder(seeded, "posts").where("status", "draft").first()
        assert row["title"] == "Draft"

    def test_find(self, seeded):
        """Test primary key lookup."""
        assert QueryBuilder(seeded, "users").find(2)["name"] == "Bob"
        assert QueryBuilder(seeded, "users").find(99) is None

    def test_aggregates(self, seeded):
        """Test count and the other aggregates."""
        query = QueryBuilder(seeded, "posts")
        assert query.count() == 3
        assert query.sum("views") == 15
        assert query.max("views") == 10
        assert query.min("views") == 0
        assert query.to_sql() == "SELECT * FROM posts"
        assert QueryBuilder(seeded, "posts").where("views", ">", 100).exists() is False

    def test_pluck(self, seeded):
        """Test plucking one column."""
        names = QueryBuilder(seeded, "tags").order_by("name").pluck("name")
        assert names == ["orm", "python", "sql"]

    def test_insert_update_delete(self, seeded):
        """Test write statements and their return values."""
        tags = QueryBuilder(seeded, "tags")
        new_id = tags.insert_get_id({"name": "sqlite"})
        assert new_id == 4

        assert QueryBuilder(seeded, "tags").insert([{"name": "a"}, {"name": "b"}]) is True
        assert QueryBuilder(seeded, "tags").count() == 6

        updated = QueryBuilder(seeded, "tags").where("name", "like", "%q%").update({"name": "renamed"})
        assert updated == 2

        deleted = QueryBuilder(seeded, "tags").where_in("name", ["a", "b"]).delete()
        assert deleted == 2

    def test_insert_compiles_each_row(self, recorder):
        """Test that every row of a multi-row insert keeps its own columns."""
        QueryBuilder(recorder, "tags").insert([{"name": "a"}, {"name": "b", "created_at": "2024-01-01 00:00:00"}])
        assert recorder.queries == [
            ("INSERT INTO tags (name) VALUES (?)", ["a"]),
            ("INSERT INTO tags (name, created_at) VALUES (?, ?)", ["b", "2024-01-01 00:00:00"]),
        ]
        row = QueryBuilder(recorder, "tags").where("name", "b").first()
        assert row["created_at"] == "2024-01-01 00:00:00"

    def test_update_binds_values_before_wheres(self, recorder):
        """Test binding order for UPDATE."""
        QueryBuilder(recorder, "posts").where("id", 1).update({"title": "Changed"})
        assert recorder.queries[-1] == ("UPDATE posts SET title = ? WHERE id = ?", ["Changed", 1])


def test_placeholders_match_bindings():
    """Test that every placeholder has a binding, in clause order."""
    query = (
        qb()
        .where("a", 1)
        .where_in("b", [2, 3])
        .where(lambda q: q.where("c", 4).or_where_not_null("d"))
        .where_between("e", 7, 8)
        .where_null("f")
        .or_where("g", "like", "%9%")
    )
    sql = query.to_sql()
    assert sql.count("?") == len(query.get_bindings())
    assert query.get_bindings() == [1, 2, 3, 4, 7, 8, "%9%"]


class FailingConnection:
    """A connection whose driver raises a plain exception."""

    def __init__(self, error):
        self.error = error

    def execute(self, sql, bindings=None):
        raise self.error

    execute_statement = insert = execute


def test_driver_errors_are_wrapped():
    """Test that driver exceptions surface as ExecutionError with the query."""
    cause = OSError("disk gone")
    query = QueryBuilder(FailingConnection(cause), "posts").where("status", "published").where_in("id", [1, 2])
    with pytest.raises(ExecutionError) as exc_info:
        query.get()
    error = exc_info.value
    assert error.sql == query.to_sql()
    assert error.bindings == query.get_bindings()
    assert error.__cause__ is cause


def test_execution_errors_are_not_rewrapped():
    """Test that an ExecutionError from the connection passes through unchanged."""
    original = ExecutionError("SELECT 1", [], ValueError("bad"))
    with pytest.raises(ExecutionError) as exc_info:
        QueryBuilder(FailingConnection(original), "posts").delete()
    assert exc_info.value is original
