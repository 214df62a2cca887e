"""Tests for many-to-many relationships."""

import pytest

from blog import Post, Tag
from recordkit import BelongsToMany, Pivot


def tag_ids(conn, post_id):
    rows = conn.execute("SELECT tag_id FROM post_tag WHERE post_id = ? ORDER BY tag_id", [post_id])
    return [row["tag_id"] for row in rows]


@pytest.fixture
def post(seeded):
    return Post.find(seeded, 1)


def test_default_pivot_naming(post):
    """Test pivot table and key defaults."""
    relation = post.tags()
    assert isinstance(relation, BelongsToMany)
    assert relation.table == "post_tag"
    assert relation.foreign_pivot_key == "post_id"
    assert relation.related_pivot_key == "tag_id"


def test_query_shape(post):
    """Test the join and lazy constraint."""
    relation = post.tags()
    assert relation.to_sql() == (
        "SELECT * FROM tags INNER JOIN post_tag ON tags.id = post_tag.tag_id WHERE post_tag.post_id = ?"
    )
    assert relation.get_bindings() == [1]


def test_lazy_load_with_pivot(post):
    """Test loading related models with their pivot records."""
    tags = sorted(post.get("tags"), key=lambda t: t.get_key())
    assert [t.get("name") for t in tags] == ["python", "sql"]

    pivot = tags[1].get_relation("pivot")
    assert isinstance(pivot, Pivot)
    assert pivot.get_table() == "post_tag"
    assert pivot.get_attributes() == {"post_id": 1, "tag_id": 2, "position": 2}
    assert tags[1].has_attribute("pivot_post_id") is False


def test_inverse_side(seeded):
    """Test the relation from the other model."""
    sql_tag = Tag.find(seeded, 2)
    assert sorted(p.get("title") for p in sql_tag.get("posts")) == ["Hello", "World"]


def test_eager_load(recorder):
    """Test eager loading a many-to-many relation with one query."""
    posts = Post.query(recorder).with_("tags").get()
    assert len(recorder.queries) == 2
    sql, bindings = recorder.queries[1]
    assert "WHERE post_tag.post_id in (?,?,?)" in sql
    assert bindings == [1, 2, 3]

    loaded = {p.get_key(): sorted(t.get("name") for t in p.get_relation("tags")) for p in posts}
    assert loaded == {1: ["python", "sql"], 2: [], 3: ["sql"]}


def test_attach(seeded, post):
    """Test attaching ids, models and ids with pivot attributes."""
    post.tags().attach(3)
    assert tag_ids(seeded, 1) == [1, 2, 3]

    other = Post.find(seeded, 2)
    other.tags().attach([Tag.find(seeded, 1), 2])
    other.tags().attach({3: {"position": 9}})
    assert tag_ids(seeded, 2) == [1, 2, 3]

    position = seeded.execute("SELECT position FROM post_tag WHERE post_id = 2 AND tag_id = 3")
    assert position == [{"position": 9}]


def test_detach(seeded, post):
    """Test detaching some or all ids."""
    assert post.tags().detach([1]) == 1
    assert tag_ids(seeded, 1) == [2]

    assert post.tags().detach() == 1
    assert tag_ids(seeded, 1) == []
    assert post.tags().detach([]) == 0


def test_sync(seeded, post):
    """Test that sync attaches the new ids and detaches the missing ones."""
    changes = post.tags().sync([2, 3])
    assert changes == {"attached": [3], "detached": [1], "updated": []}
    assert tag_ids(seeded, 1) == [2, 3]

    # Same set again is a no-op
    assert post.tags().sync([2, 3]) == {"attached": [], "detached": [], "updated": []}


def test_sync_with_pivot_attributes(seeded, post):
    """Test that sync updates pivot attributes of kept ids."""
    changes = post.tags().sync({1: {"position": 5}, 2: {}})
    assert changes == {"attached": [], "detached": [], "updated": [1]}
    rows = seeded.execute("SELECT position FROM post_tag WHERE post_id = 1 AND tag_id = 1")
    assert rows == [{"position": 5}]


def test_sync_without_detaching(seeded, post):
    """Test sync that only adds."""
    changes = post.tags().sync_without_detaching([3])
    assert changes["attached"] == [3]
    assert changes["detached"] == []
    assert tag_ids(seeded, 1) == [1, 2, 3]


def test_toggle(seeded, post):
    """Test toggling attachment."""
    changes = post.tags().toggle([2, 3])
    assert changes == {"attached": [3], "detached": [2]}
    assert tag_ids(seeded, 1) == [1, 3]


def test_update_existing_pivot(seeded, post):
    """Test updating one pivot row."""
    assert post.tags().update_existing_pivot(2, {"position": 7}) == 1
    rows = seeded.execute("SELECT position FROM post_tag WHERE post_id = 1 AND tag_id = 2")
    assert rows == [{"position": 7}]


def test_find_through_pivot(post):
    """Test find scoped to attached models."""
    assert post.tags().find(2).get("name") == "sql"
    assert post.tags().find(3) is None
