# backend/mlcatalog/services/query_executor.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from mlcatalog.errors import InvalidArgument
from mlcatalog.services.authorization import AuthorizationScope
from mlcatalog.services.predicate_compiler import PredicateTree, predicate_tree_criteria

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("name", "owner", "workspace", "visibility", "date_created", "date_updated", "id")

# Used whenever a sort key is missing or does not name a sortable field
DEFAULT_SORT_KEY = "date_updated"
DEFAULT_ASCENDING = False


def resolve_sort(sort_key: Optional[str], ascending: bool) -> Tuple[str, bool, bool]:
    """
    Map a client sort key onto a sortable column.

    Returns:
        Tuple of (field, ascending, fell_back). An unknown or empty key falls
        back to date_updated descending and ignores ``ascending``.
    """
    if sort_key in SORTABLE_FIELDS:
        return sort_key, ascending, False
    return DEFAULT_SORT_KEY, DEFAULT_ASCENDING, True


class PaginatedQueryExecutor:
    """Runs predicate tree AND scope against the store, returning one page plus a total."""

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        model,
        resource_type: str,
        tree: PredicateTree,
        scope: AuthorizationScope,
        sort_key: Optional[str] = DEFAULT_SORT_KEY,
        ascending: bool = DEFAULT_ASCENDING,
        page_number: int = 0,
        page_limit: int = 0,
    ) -> tuple[List, int]:
        if page_number < 0:
            raise InvalidArgument("page_number must be >= 0")
        if page_limit < 0:
            raise InvalidArgument("page_limit must be >= 0")

        # An empty scope means "nothing", never "no filter"
        if scope.is_empty:
            return [], 0

        query = self.db.query(model).filter(model.deleted.is_(False))
        if not scope.is_unrestricted:
            query = query.filter(model.id.in_(sorted(scope.ids)))
        for criterion in predicate_tree_criteria(tree, model, resource_type):
            query = query.filter(criterion)

        total = query.count()

        field, ascending, fell_back = resolve_sort(sort_key, ascending)
        if fell_back:
            logger.debug(f"Unsupported sort key {sort_key!r}, sorting by {DEFAULT_SORT_KEY} descending")
        column = getattr(model, field)
        query = query.order_by(column.asc() if ascending else column.desc(), model.id.asc())

        if page_number > 0 and page_limit > 0:
            query = query.offset((page_number - 1) * page_limit).limit(page_limit)

        return query.all(), total
