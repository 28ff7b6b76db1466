import copy
import threading
from datetime import datetime, timezone
from itertools import count
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from orgledger.data.base import DbAdapter, UniqueConstraintError


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == '$in':
        return actual in expected
    if op == '$nin':
        return actual not in expected
    if op == '$ne':
        return actual != expected
    if op == '$eq':
        return actual == expected
    if actual is None:
        return False
    if op == '$gt':
        return actual > expected
    if op == '$gte':
        return actual >= expected
    if op == '$lt':
        return actual < expected
    if op == '$lte':
        return actual <= expected
    raise ValueError(f"Unsupported query operator: {op}")


def matches(document: Dict[str, Any], conditions: Optional[Dict[str, Any]]) -> bool:
    """Evaluate a Mongo-style filter document against `document`."""
    for key, expected in (conditions or {}).items():
        actual = document.get(key)
        if isinstance(expected, dict) and expected and all(k.startswith('$') for k in expected):
            if not all(_compare(op, actual, value) for op, value in expected.items()):
                return False
        elif actual != expected:
            return False
    return True


def _sort_documents(documents: List[Dict[str, Any]], sort: Optional[List[Tuple[str, int]]]) -> List[Dict[str, Any]]:
    # Missing values order before present ones, as in MongoDB
    for key, direction in reversed(sort or []):
        documents = sorted(
            documents,
            key=lambda d: (d.get(key) is not None, d.get(key) if d.get(key) is not None else 0),
            reverse=direction < 0
        )
    return documents


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _evaluate(expression: Any, document: Dict[str, Any]) -> Any:
    """Evaluate the small subset of aggregation expressions the repositories use."""
    if isinstance(expression, str) and expression.startswith('$'):
        return document.get(expression[1:])
    if isinstance(expression, dict) and '$month' in expression:
        argument = expression['$month']
        if isinstance(argument, dict):
            value = _evaluate(argument['date'], document)
            tz = ZoneInfo(argument.get('timezone', 'UTC'))
        else:
            value = _evaluate(argument, document)
            tz = timezone.utc
        return _as_utc(value).astimezone(tz).month
    if isinstance(expression, dict):
        return {k: _evaluate(v, document) for k, v in expression.items()}
    return expression


def _group_key(value: Any) -> Any:
    return tuple(sorted(value.items())) if isinstance(value, dict) else value


class MemoryAdapter(DbAdapter):
    """
    In-process document store, suitable for tests and single-process runs.

    Mirrors MongoDBAdapter semantics: versioned saves,
    unique (optionally partial) indexes, atomic counters and the
    `$match` / `$group` / `$sort` / `$limit` aggregation stages.
    All state is lost when the process exits.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self._indexes: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._counters: Dict[str, int] = {}
        self._ids = count(1)
        self._lock = threading.RLock()

    def __enter__(self) -> 'MemoryAdapter':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        pass

    def _table(self, name: str) -> List[Dict[str, Any]]:
        return self._tables.setdefault(name, [])

    def get_one(
        self,
        table: str,
        conditions: Dict[str, Any],
        hint: Optional[str] = None,
        sort: Optional[List[Tuple[str, int]]] = None
    ) -> Optional[Dict[str, Any]]:
        found = self.get_many(table, conditions, hint=hint, sort=sort, limit=1)
        return found[0] if found else None

    def get_many(
        self,
        table: str,
        conditions: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            found = [d for d in self._table(table) if matches(d, conditions)]
            found = _sort_documents(found, sort)
            if offset:
                found = found[offset:]
            if limit:
                found = found[:limit]
            return copy.deepcopy(found)

    def get_count(
        self,
        table: str,
        conditions: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None
    ) -> int:
        with self._lock:
            return sum(1 for d in self._table(table) if matches(d, conditions))

    def _check_unique(self, table: str, document: Dict[str, Any]) -> None:
        for index in self._indexes.get(table, {}).values():
            if not index['unique'] or not matches(document, index['partial_filter']):
                continue
            keys = {column: document.get(column) for column in index['columns']}
            for existing in self._table(table):
                if existing is document or not matches(existing, index['partial_filter']):
                    continue
                if all(existing.get(c) == v for c, v in keys.items()):
                    raise UniqueConstraintError(table, keys)

    def save(
        self,
        table: str,
        data: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Versioned insert: demote the current latest version of `entity_id`,
        then insert `data` as the new latest version.
        """
        if 'entity_id' not in data:
            raise RuntimeError("save failed: 'entity_id' is required in data")

        with self._lock:
            rows = self._table(table)
            prev_latest = next(
                (d for d in rows if d.get('entity_id') == data['entity_id'] and d.get('latest')), None)
            if prev_latest:
                prev_latest['latest'] = False

            new_doc = copy.deepcopy(data)
            new_doc['_id'] = next(self._ids)
            new_doc['latest'] = True
            try:
                self._check_unique(table, new_doc)
            except UniqueConstraintError:
                if prev_latest:
                    prev_latest['latest'] = True
                raise
            rows.append(new_doc)
            return copy.deepcopy(new_doc)

    def create_index(
        self,
        table: str,
        columns: List[Union[str, Tuple[str, int]]],
        index_name: str,
        unique: bool = False,
        partial_filter: Optional[Dict[str, Any]] = None,
    ) -> str:
        with self._lock:
            names = [c[0] if isinstance(c, tuple) else c for c in columns]
            self._indexes.setdefault(table, {})[index_name] = {
                'columns': names,
                'unique': unique,
                'partial_filter': partial_filter or {},
            }
            return index_name

    def _group(self, documents: List[Dict[str, Any]], spec: Dict[str, Any]) -> List[Dict[str, Any]]:
        accumulators: Dict[str, Callable[[List[Dict[str, Any]]], Any]] = {}
        for name, accumulator in spec.items():
            if name == '_id':
                continue
            operator, argument = next(iter(accumulator.items()))
            if operator != '$sum':
                raise ValueError(f"Unsupported accumulator: {operator}")
            accumulators[name] = (
                lambda docs, arg=argument: sum((_evaluate(arg, d) or 0) for d in docs))

        groups: Dict[Any, Tuple[Any, List[Dict[str, Any]]]] = {}
        for document in documents:
            key = _evaluate(spec['_id'], document)
            groups.setdefault(_group_key(key), (key, []))[1].append(document)

        return [
            {'_id': key, **{name: fn(docs) for name, fn in accumulators.items()}}
            for key, docs in groups.values()
        ]

    def aggregate(
        self,
        table: str,
        pipeline: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        with self._lock:
            documents = copy.deepcopy(self._table(table))
        for stage in pipeline:
            operator, spec = next(iter(stage.items()))
            if operator == '$match':
                documents = [d for d in documents if matches(d, spec)]
            elif operator == '$group':
                documents = self._group(documents, spec)
            elif operator == '$sort':
                documents = _sort_documents(documents, list(spec.items()))
            elif operator == '$limit':
                documents = documents[:spec]
            else:
                raise ValueError(f"Unsupported aggregation stage: {operator}")
        return documents

    def increment_counter(self, name: str) -> int:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + 1
            return self._counters[name]
