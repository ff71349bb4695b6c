# backend/mlcatalog/services/predicate_compiler.py
"""
Compiles client filter clauses into a validated predicate tree.

A tree is an AND of groups, one group per distinct key; the clauses inside a
group are OR-ed ("tag = a OR tag = b"). Groups are ordered by key and clauses
keep their input order, so equal input always yields an equal tree.

Keys resolve to one of three kinds:
  - a core resource column (``name``, ``owner``, ``date_updated``, ...)
  - ``tags``
  - ``attributes.<key>``

Every type/operator check happens here so an invalid filter never reaches
the store. Rendering to SQL uses bound parameters only.
"""
import operator as op
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy import or_, select

from mlcatalog.config import get_settings
from mlcatalog.errors import InvalidArgument
from mlcatalog.models.resource import ResourceVisibility
from mlcatalog.models.resource_attribute import ResourceAttribute, ValueType, encode_blob
from mlcatalog.models.resource_tag import ResourceTag
from mlcatalog.schemas.resource import FilterClause, FilterOperator

TAGS_KEY = "tags"
ATTRIBUTE_PREFIX = "attributes."

CORE_FIELDS = {
    "id": ValueType.STRING,
    "name": ValueType.STRING,
    "owner": ValueType.STRING,
    "description": ValueType.STRING,
    "workspace": ValueType.STRING,
    "visibility": ValueType.STRING,
    "date_created": ValueType.NUMBER,
    "date_updated": ValueType.NUMBER,
}

ALLOWED_OPERATORS = {
    ValueType.NUMBER: {
        FilterOperator.EQ, FilterOperator.NE,
        FilterOperator.GT, FilterOperator.GTE,
        FilterOperator.LT, FilterOperator.LTE,
    },
    ValueType.STRING: {FilterOperator.EQ, FilterOperator.NE, FilterOperator.CONTAINS},
    ValueType.BLOB: {FilterOperator.EQ, FilterOperator.NE},
}

ATTRIBUTE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-/:]+$")

# date_created/date_updated are signed 64-bit epoch milliseconds
DATE_FIELDS = {"date_created", "date_updated"}
BIGINT_MIN, BIGINT_MAX = -2 ** 63, 2 ** 63 - 1

_COMPARATORS = {
    FilterOperator.EQ: op.eq,
    FilterOperator.NE: op.ne,
    FilterOperator.GT: op.gt,
    FilterOperator.GTE: op.ge,
    FilterOperator.LT: op.lt,
    FilterOperator.LTE: op.le,
}


class PredicateKind(str, Enum):
    CORE = "core"
    TAG = "tag"
    ATTRIBUTE = "attribute"


class FieldPredicate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PredicateKind
    field: str  # column name, attribute key, or "tags"
    operator: FilterOperator
    value_type: ValueType
    value: Any


class PredicateGroup(BaseModel):
    """Clauses on one key, OR-ed together."""
    model_config = ConfigDict(frozen=True)

    key: str
    predicates: Tuple[FieldPredicate, ...]


class PredicateTree(BaseModel):
    """Groups AND-ed together. An empty tree matches everything."""
    model_config = ConfigDict(frozen=True)

    groups: Tuple[PredicateGroup, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.groups


def validate_tags(tags: Iterable[str], max_length: Optional[int] = None) -> List[str]:
    """Reject empty or over-long tags. Returns the tags as a list."""
    if max_length is None:
        max_length = get_settings().tag_max_length
    checked = []
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise InvalidArgument("Tag must be a non-empty string")
        if len(tag) > max_length:
            raise InvalidArgument(
                f"Tag '{tag[:max_length]}...' exceeds the maximum length of {max_length} characters"
            )
        checked.append(tag)
    return checked


def validate_attribute_key(key: str, max_length: Optional[int] = None) -> str:
    if max_length is None:
        max_length = get_settings().attribute_key_max_length
    if not key:
        raise InvalidArgument("Attribute key must not be empty")
    if len(key) > max_length:
        raise InvalidArgument(f"Attribute key exceeds the maximum length of {max_length} characters")
    if not ATTRIBUTE_KEY_PATTERN.match(key):
        raise InvalidArgument(f"Attribute key '{key}' contains unsupported characters")
    return key


def _as_clause(raw: Union[FilterClause, Dict[str, Any]]) -> FilterClause:
    if isinstance(raw, FilterClause):
        return raw
    try:
        return FilterClause.model_validate(raw)
    except ValidationError as e:
        raise InvalidArgument(f"Malformed filter clause: {e.errors()[0]['msg']}") from e


def _compile_clause(clause: FilterClause, tag_max_length: int, key_max_length: int) -> FieldPredicate:
    key = clause.key.strip() if clause.key else ""
    if not key:
        raise InvalidArgument("Filter key must not be empty")

    value_type = clause.value_type
    if clause.operator not in ALLOWED_OPERATORS[value_type]:
        raise InvalidArgument(
            f"Operator {clause.operator.value} is not valid for {value_type.value} values (key '{key}')"
        )

    if key == TAGS_KEY:
        if value_type != ValueType.STRING:
            raise InvalidArgument(f"Filter on 'tags' requires STRING values, got {value_type.value}")
        validate_tags([clause.value], tag_max_length)
        return FieldPredicate(
            kind=PredicateKind.TAG, field=TAGS_KEY,
            operator=clause.operator, value_type=value_type, value=clause.value,
        )

    if key.startswith(ATTRIBUTE_PREFIX):
        attribute_key = validate_attribute_key(key[len(ATTRIBUTE_PREFIX):], key_max_length)
        return FieldPredicate(
            kind=PredicateKind.ATTRIBUTE, field=attribute_key,
            operator=clause.operator, value_type=value_type, value=clause.value,
        )

    if key not in CORE_FIELDS:
        raise InvalidArgument(f"Unknown filter key '{key}'")

    expected = CORE_FIELDS[key]
    if value_type != expected:
        raise InvalidArgument(f"Filter on '{key}' requires {expected.value} values, got {value_type.value}")

    value = clause.value
    if key in DATE_FIELDS and not BIGINT_MIN <= value <= BIGINT_MAX:
        raise InvalidArgument(f"Filter value for '{key}' is out of range")
    if key == "visibility":
        if clause.operator == FilterOperator.CONTAINS:
            raise InvalidArgument("Operator CONTAINS is not valid for 'visibility'")
        try:
            value = ResourceVisibility(value).value
        except ValueError as e:
            raise InvalidArgument(f"Unknown visibility '{value}'") from e

    return FieldPredicate(
        kind=PredicateKind.CORE, field=key,
        operator=clause.operator, value_type=value_type, value=value,
    )


def compile_predicates(
    raw_clauses: Iterable[Union[FilterClause, Dict[str, Any]]],
    tag_max_length: Optional[int] = None,
    attribute_key_max_length: Optional[int] = None,
) -> PredicateTree:
    settings = get_settings()
    tag_max_length = tag_max_length or settings.tag_max_length
    attribute_key_max_length = attribute_key_max_length or settings.attribute_key_max_length

    grouped: Dict[str, List[FieldPredicate]] = {}
    for raw in raw_clauses or []:
        clause = _as_clause(raw)
        predicate = _compile_clause(clause, tag_max_length, attribute_key_max_length)
        group_key = predicate.field if predicate.kind != PredicateKind.ATTRIBUTE \
            else ATTRIBUTE_PREFIX + predicate.field
        grouped.setdefault(group_key, []).append(predicate)

    return PredicateTree(groups=tuple(
        PredicateGroup(key=key, predicates=tuple(grouped[key]))
        for key in sorted(grouped)
    ))


# ============================================================================
# SQL rendering
# ============================================================================

def _compare(column, operator: FilterOperator, value):
    if operator == FilterOperator.CONTAINS:
        return column.contains(value, autoescape=True)
    return _COMPARATORS[operator](column, value)


def _tag_criterion(model, resource_type: str, predicate: FieldPredicate):
    tagged = select(ResourceTag.resource_id).where(ResourceTag.resource_type == resource_type)
    if predicate.operator == FilterOperator.NE:
        # No tag on the resource equals the value
        return ~model.id.in_(tagged.where(ResourceTag.tag == predicate.value))
    return model.id.in_(tagged.where(_compare(ResourceTag.tag, predicate.operator, predicate.value)))


def _attribute_criterion(model, resource_type: str, predicate: FieldPredicate):
    if predicate.value_type == ValueType.NUMBER:
        column, value = ResourceAttribute.value_number, float(predicate.value)
    elif predicate.value_type == ValueType.STRING:
        column, value = ResourceAttribute.value_string, predicate.value
    else:
        column, value = ResourceAttribute.value_blob, encode_blob(predicate.value)

    matching = select(ResourceAttribute.resource_id).where(
        ResourceAttribute.resource_type == resource_type,
        ResourceAttribute.key == predicate.field,
        ResourceAttribute.value_type == predicate.value_type,
        _compare(column, predicate.operator, value),
    )
    return model.id.in_(matching)


def _predicate_criterion(model, resource_type: str, predicate: FieldPredicate):
    if predicate.kind == PredicateKind.TAG:
        return _tag_criterion(model, resource_type, predicate)
    if predicate.kind == PredicateKind.ATTRIBUTE:
        return _attribute_criterion(model, resource_type, predicate)
    value = predicate.value
    if predicate.field == "visibility":
        value = ResourceVisibility(value)
    return _compare(getattr(model, predicate.field), predicate.operator, value)


def predicate_tree_criteria(tree: PredicateTree, model, resource_type: str) -> list:
    """One SQLAlchemy criterion per group, to be AND-ed by the caller."""
    criteria = []
    for group in tree.groups:
        clauses = [_predicate_criterion(model, resource_type, p) for p in group.predicates]
        criteria.append(clauses[0] if len(clauses) == 1 else or_(*clauses))
    return criteria
