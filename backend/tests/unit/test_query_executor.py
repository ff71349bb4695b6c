# backend/tests/unit/test_query_executor.py
import pytest
from unittest.mock import MagicMock

from mlcatalog.errors import InvalidArgument
from mlcatalog.models import Project, ResourceAction
from mlcatalog.schemas.project import ProjectCreate
from mlcatalog.services.authorization import AuthorizationScope
from mlcatalog.services.predicate_compiler import PredicateTree, compile_predicates
from mlcatalog.services.query_executor import PaginatedQueryExecutor, resolve_sort

READ = ResourceAction.READ


def _run(db, tree=None, scope=None, **kwargs):
    executor = PaginatedQueryExecutor(db)
    return executor.execute(
        Project, "project",
        tree or PredicateTree(),
        scope or AuthorizationScope.unrestricted(READ),
        **kwargs,
    )


def test_empty_scope_returns_nothing_without_touching_store():
    db = MagicMock()
    items, total = PaginatedQueryExecutor(db).execute(
        Project, "project", PredicateTree(), AuthorizationScope.restricted_to(READ, []),
    )

    assert items == []
    assert total == 0
    db.query.assert_not_called()


def test_unrestricted_scope_returns_all_live_rows(db_session, make_project):
    make_project("a")
    make_project("b", owner="bob")
    make_project("gone", deleted=True)

    items, total = _run(db_session)

    assert total == 2
    assert sorted(p.name for p in items) == ["a", "b"]


def test_restricted_scope_filters_by_id(db_session, make_project):
    a = make_project("a")
    make_project("b")

    items, total = _run(db_session, scope=AuthorizationScope.restricted_to(READ, [a.id]))

    assert total == 1
    assert items[0].id == a.id


def test_or_within_key_and_across_keys(db_session, make_project):
    make_project("p1", tags=["a"])
    make_project("p2", tags=["b"])
    make_project("p3", tags=["a"], owner="bob")
    make_project("p4", tags=["c"])

    tree = compile_predicates([
        {"key": "tags", "value": "a"},
        {"key": "tags", "value": "b"},
        {"key": "owner", "value": "alice"},
    ])
    items, total = _run(db_session, tree=tree, sort_key="name", ascending=True)

    assert total == 2
    assert [p.name for p in items] == ["p1", "p2"]


def test_tag_not_equal_excludes_tagged_resources(db_session, make_project):
    make_project("p1", tags=["keep", "drop"])
    make_project("p2", tags=["keep"])
    make_project("p3")

    tree = compile_predicates([{"key": "tags", "operator": "NE", "value": "drop"}])
    items, _ = _run(db_session, tree=tree, sort_key="name", ascending=True)

    assert [p.name for p in items] == ["p2", "p3"]


def test_contains_escapes_like_wildcards(db_session, make_project):
    make_project("100%_done")
    make_project("100 done")

    tree = compile_predicates([{"key": "name", "operator": "CONTAINS", "value": "%_"}])
    items, total = _run(db_session, tree=tree)

    assert total == 1
    assert items[0].name == "100%_done"


def test_page_two_of_twenty_five(db_session, make_project):
    for i in range(25):
        make_project(f"p{i:02d}", date_updated=10_000 + i)

    items, total = _run(db_session, sort_key="date_updated", ascending=False, page_number=2, page_limit=10)

    assert total == 25
    assert [p.date_updated for p in items] == [10_000 + i for i in range(14, 4, -1)]


def test_pages_are_disjoint_and_cover_everything_with_ties(db_session, make_project):
    # Identical sort values: order must still be stable through the id tiebreak
    ids = {make_project(f"p{i}", date_updated=5_000).id for i in range(7)}

    seen = []
    for page in range(1, 4):
        items, total = _run(db_session, sort_key="date_updated", page_number=page, page_limit=3)
        assert total == 7
        seen.extend(p.id for p in items)

    assert len(seen) == len(set(seen)) == 7
    assert set(seen) == ids
    assert seen == sorted(ids)


def test_zero_page_values_return_all_rows(db_session, make_project):
    for i in range(4):
        make_project(f"p{i}")

    items, total = _run(db_session, page_number=0, page_limit=2)
    assert (len(items), total) == (4, 4)

    items, total = _run(db_session, page_number=3, page_limit=0)
    assert (len(items), total) == (4, 4)


def test_page_past_the_end_is_empty_with_full_total(db_session, make_project):
    for i in range(3):
        make_project(f"p{i}")

    items, total = _run(db_session, page_number=5, page_limit=10)

    assert items == []
    assert total == 3


@pytest.mark.parametrize("page_number,page_limit", [(-1, 10), (1, -5)])
def test_negative_page_values_are_rejected(page_number, page_limit):
    db = MagicMock()
    with pytest.raises(InvalidArgument):
        PaginatedQueryExecutor(db).execute(
            Project, "project", PredicateTree(), AuthorizationScope.unrestricted(READ),
            page_number=page_number, page_limit=page_limit,
        )
    db.query.assert_not_called()


def test_unknown_sort_key_falls_back_to_date_updated_descending(db_session, make_project):
    make_project("old", date_updated=1)
    make_project("new", date_updated=2)

    items, _ = _run(db_session, sort_key="; drop table projects", ascending=True)

    assert [p.name for p in items] == ["new", "old"]


def test_resolve_sort():
    assert resolve_sort("name", True) == ("name", True, False)
    assert resolve_sort("", True) == ("date_updated", False, True)
    assert resolve_sort(None, True) == ("date_updated", False, True)
    assert resolve_sort("tags", True) == ("date_updated", False, True)


def test_attribute_number_filter(db_session, projects, alice):
    projects.insert(alice, ProjectCreate(
        name="fast", attributes=[{"key": "lr", "value_type": "NUMBER", "value": 0.1}],
    ))
    projects.insert(alice, ProjectCreate(
        name="slow", attributes=[{"key": "lr", "value_type": "NUMBER", "value": 0.001}],
    ))
    projects.insert(alice, ProjectCreate(
        name="labelled", attributes=[{"key": "lr", "value_type": "STRING", "value": "0.5"}],
    ))

    tree = compile_predicates([{"key": "attributes.lr", "operator": "GTE", "value_type": "NUMBER", "value": 0.01}])
    items, total = _run(db_session, tree=tree)

    assert total == 1
    assert items[0].name == "fast"
