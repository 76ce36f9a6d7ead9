"""
Reusable list-query features: filtering, keyword search, sorting, field
selection and pagination over a SQLAlchemy query.

Example: ``/api/v1/medicines?price[gte]=10&category=Vitamins&sort=price,-name&page=2``
"""
import logging
import operator
import re
from datetime import date, datetime
from typing import Callable, Iterable, Mapping, Optional

from sqlalchemy import (
    JSON, Boolean, Date, DateTime, Float, Integer, Numeric, and_, false, func, or_, select,
)
from sqlalchemy import inspect as sa_inspect

from wellness_api.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT

logger = logging.getLogger(__name__)

# Never treated as field filters
RESERVED_PARAMS = ("page", "sort", "limit", "fields", "keyword")

RANGE_OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

# Hidden from responses unless explicitly requested, never filterable
INTERNAL_FIELDS = frozenset({"version"})

FILTER_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)\[(?P<op>[A-Za-z]+)\]$")


def _like_pattern(text: str) -> str:
    """``%text%`` with LIKE wildcards in ``text`` escaped"""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _positive_int(raw, default: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def _coerce(column_type, raw):
    """Convert a query-string value to the python type of ``column_type``"""
    if isinstance(column_type, Boolean):
        lowered = str(raw).strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if isinstance(column_type, Integer):
        return int(raw)
    if isinstance(column_type, (Float, Numeric)):
        return float(raw)
    if isinstance(column_type, DateTime):
        return datetime.fromisoformat(raw)
    if isinstance(column_type, Date):
        return date.fromisoformat(raw)
    return str(raw)


class APIFeatures:
    """
    Chainable query builder.

        features = (
            APIFeatures(db.query(Medicine), Medicine, params)
            .filter()
            .search(["name", "description"])
            .apply_find()
            .sort()
            .limit_fields()
            .paginate()
        )
        page = features.execute()
    """

    def __init__(self, query, model, query_params: Optional[Mapping[str, str]] = None):
        self.query = query
        self.model = model
        self.query_params = dict(query_params or {})
        self.filter_conditions = []
        self.search_conditions = None
        self.selected_fields = None
        self.page = 1
        self.limit = DEFAULT_PAGE_LIMIT
        self.total = None

    # ==================== COLUMN LOOKUP ====================

    def _column(self, name: str):
        if name in INTERNAL_FIELDS:
            return None
        mapper = sa_inspect(self.model)
        if name not in mapper.column_attrs:
            return None
        return mapper.columns[name]

    def _is_json(self, column) -> bool:
        return isinstance(column.type, JSON)

    def _any_element(self, attribute, condition):
        """EXISTS over the text elements of a JSON list column"""
        if self.query.session.get_bind().dialect.name == "postgresql":
            elements = func.jsonb_array_elements_text(attribute).table_valued("value")
        else:
            elements = func.json_each(attribute).table_valued("value")
        return select(elements.c.value).where(condition(elements.c.value)).exists()

    # ==================== FILTER ====================

    def filter(self):
        """Equality / range filters from every non-reserved parameter"""
        conditions = []
        try:
            for key, raw in self.query_params.items():
                if key in RESERVED_PARAMS:
                    continue
                match = FILTER_KEY.match(key)
                field, op = (match.group("field"), match.group("op")) if match else (key, None)
                column = self._column(field)

                # Unknown fields and operators match nothing
                if column is None or (op is not None and op not in RANGE_OPERATORS):
                    conditions.append(false())
                    continue

                attribute = getattr(self.model, field)
                if self._is_json(column):
                    if op is not None:
                        conditions.append(false())
                    else:
                        # List columns: "contains this element"
                        conditions.append(self._any_element(attribute, lambda value: value == str(raw)))
                    continue

                value = _coerce(column.type, raw)
                if op is None:
                    conditions.append(attribute == value)
                else:
                    conditions.append(RANGE_OPERATORS[op](attribute, value))
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed filter %s: %s", self.query_params, exc)
            conditions = []

        self.filter_conditions = conditions
        return self

    # ==================== SEARCH ====================

    def search(self, search_fields: Iterable[str] = ("name", "description")):
        """Case-insensitive substring match of ``keyword`` against any of ``search_fields``"""
        keyword = str(self.query_params.get("keyword") or "").strip()
        if not keyword:
            self.search_conditions = None
            return self

        pattern = _like_pattern(keyword)
        matches = []
        for field in search_fields:
            column = self._column(field)
            if column is None:
                continue
            attribute = getattr(self.model, field)
            if self._is_json(column):
                matches.append(
                    self._any_element(attribute, lambda value: value.ilike(pattern, escape="\\"))
                )
            else:
                matches.append(attribute.ilike(pattern, escape="\\"))

        self.search_conditions = or_(*matches) if matches else false()
        return self

    def apply_find(self):
        """AND the filter conditions with the keyword OR-group"""
        conditions = list(self.filter_conditions)
        if self.search_conditions is not None:
            conditions.append(self.search_conditions)
        if conditions:
            self.query = self.query.filter(and_(*conditions))
        self.total = self.query.order_by(None).count()
        return self

    # ==================== SORT ====================

    def sort(self):
        clauses = []
        for token in str(self.query_params.get("sort") or "").split(","):
            token = token.strip()
            descending = token.startswith("-")
            name = token[1:] if descending else token
            column = self._column(name) if name else None
            if column is None or self._is_json(column):
                continue
            attribute = getattr(self.model, name)
            clauses.append(attribute.desc() if descending else attribute.asc())

        if clauses:
            clauses.append(self.model.id.asc())
        else:
            clauses = [self.model.created_at.desc(), self.model.id.desc()]

        self.query = self.query.order_by(*clauses)
        return self

    # ==================== FIELDS ====================

    def limit_fields(self):
        fields = [
            field.strip()
            for field in str(self.query_params.get("fields") or "").split(",")
            if field.strip()
        ]
        self.selected_fields = fields or None
        return self

    def select(self, record: dict) -> dict:
        if self.selected_fields is None:
            return {key: value for key, value in record.items() if key not in INTERNAL_FIELDS}
        wanted = ["id"] + [field for field in self.selected_fields if field != "id"]
        return {key: record[key] for key in wanted if key in record}

    # ==================== PAGINATION ====================

    def paginate(self):
        self.page = _positive_int(self.query_params.get("page"), 1)
        self.limit = min(
            _positive_int(self.query_params.get("limit"), DEFAULT_PAGE_LIMIT),
            MAX_PAGE_LIMIT,
        )
        skip = (self.page - 1) * self.limit
        self.query = self.query.offset(skip).limit(self.limit)
        return self

    # ==================== EXECUTE ====================

    def execute(self, serializer: Optional[Callable] = None) -> dict:
        serializer = serializer or (lambda record: record.to_dict(include_version=True))
        data = [self.select(serializer(record)) for record in self.query.all()]
        return {
            "count": len(data),
            "total": self.total if self.total is not None else len(data),
            "page": self.page,
            "limit": self.limit,
            "data": data,
        }


def list_records(query, model, query_params, search_fields=None, serializer=None) -> dict:
    """Standard list pipeline used by every list endpoint"""
    features = APIFeatures(query, model, query_params).filter()
    if search_fields:
        features.search(search_fields)
    return (
        features
        .apply_find()
        .sort()
        .limit_fields()
        .paginate()
        .execute(serializer)
    )
