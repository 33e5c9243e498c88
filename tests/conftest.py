"""
Shared fixtures: test settings and an in-memory stand-in for the Motor database.

`FakeDatabase` implements the slice of the Motor collection API the services use (CRUD,
cursors, the update operators we issue, array filters, upserts and simple `$match`/`$group`
aggregations), so service logic runs against real document state instead of call
assertions.
"""

import copy
import os
import re
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-webnest-suite")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ["MONGODB_DATABASE"] = "webnest_test"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("REDIS_URL", None)

from bson import ObjectId  # noqa: E402

# ============================================================================
# Query matching
# ============================================================================


def _resolve(doc, path):
    """All values reachable at a dotted path, descending into arrays of sub-documents."""
    current = [doc]
    for part in path.split("."):
        nxt = []
        for value in current:
            if isinstance(value, dict):
                if part in value:
                    nxt.append(value[part])
            elif isinstance(value, list):
                if part.isdigit() and int(part) < len(value):
                    nxt.append(value[int(part)])
                    continue
                for item in value:
                    if isinstance(item, dict) and part in item:
                        nxt.append(item[part])
        current = nxt
    return current


def _candidates(values):
    for value in values:
        yield value
        if isinstance(value, list):
            yield from value


def _compare(op, value, operand):
    try:
        if op == "$gt":
            return value is not None and value > operand
        if op == "$gte":
            return value is not None and value >= operand
        if op == "$lt":
            return value is not None and value < operand
        if op == "$lte":
            return value is not None and value <= operand
    except TypeError:
        return False
    raise NotImplementedError(op)


def _match_condition(values, condition):
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, operand in condition.items():
            if op == "$options":
                continue
            if op == "$exists":
                if bool(values) != bool(operand):
                    return False
            elif op == "$in":
                if not any(v in operand for v in _candidates(values)):
                    return False
            elif op == "$nin":
                if any(v in operand for v in _candidates(values)):
                    return False
            elif op == "$ne":
                if any(v == operand for v in _candidates(values)):
                    return False
            elif op == "$regex":
                flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
                if not any(isinstance(v, str) and re.search(operand, v, flags) for v in _candidates(values)):
                    return False
            elif not any(_compare(op, v, operand) for v in _candidates(values)):
                return False
        return True
    if not values:
        return condition is None
    return any(v == condition for v in _candidates(values))


def matches(doc, query):
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif not _match_condition(_resolve(doc, key), condition):
            return False
    return True


# ============================================================================
# Update operators
# ============================================================================


def _set_path(target, parts, value, array_filters):
    head, rest = parts[0], parts[1:]
    if isinstance(target, list):
        if head.startswith("$[") and head.endswith("]"):
            name = head[2:-1]
            conditions = {}
            for flt in array_filters or []:
                for key, cond in flt.items():
                    if key.split(".", 1)[0] == name:
                        conditions[key.split(".", 1)[1]] = cond
            for item in target:
                if matches(item, conditions):
                    _set_path(item, rest, value, array_filters)
            return
        index = int(head)
        if not rest:
            target[index] = value
        else:
            _set_path(target[index], rest, value, array_filters)
        return
    if not rest:
        target[head] = value
        return
    if not isinstance(target.get(head), (dict, list)):
        target[head] = {}
    _set_path(target[head], rest, value, array_filters)


def _get_path(doc, path, default=None):
    values = _resolve(doc, path)
    return values[0] if values else default


def _unset_path(doc, path):
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        target = target.get(part) if isinstance(target, dict) else None
        if target is None:
            return
    if isinstance(target, dict):
        target.pop(parts[-1], None)


def apply_update(doc, update, array_filters=None, is_insert=False):
    for op, fields in update.items():
        if op == "$set":
            for path, value in fields.items():
                _set_path(doc, path.split("."), copy.deepcopy(value), array_filters)
        elif op == "$setOnInsert":
            if is_insert:
                for path, value in fields.items():
                    _set_path(doc, path.split("."), copy.deepcopy(value), array_filters)
        elif op == "$unset":
            for path in fields:
                _unset_path(doc, path)
        elif op == "$inc":
            for path, amount in fields.items():
                _set_path(doc, path.split("."), (_get_path(doc, path) or 0) + amount, array_filters)
        elif op == "$push":
            for path, value in fields.items():
                items = list(_get_path(doc, path) or [])
                if isinstance(value, dict) and "$each" in value:
                    items.extend(copy.deepcopy(value["$each"]))
                    if "$slice" in value:
                        limit = value["$slice"]
                        items = items[limit:] if limit < 0 else items[:limit]
                else:
                    items.append(copy.deepcopy(value))
                _set_path(doc, path.split("."), items, array_filters)
        else:
            raise NotImplementedError(op)


# ============================================================================
# Aggregation ($match, $group, $sort, $limit)
# ============================================================================


def _expression(doc, expr):
    if isinstance(expr, str) and expr.startswith("$"):
        return _get_path(doc, expr[1:])
    if isinstance(expr, dict):
        return {key: _expression(doc, value) for key, value in expr.items()}
    return expr


def _group(docs, spec):
    groups = {}
    for doc in docs:
        key = _expression(doc, spec["_id"])
        groups.setdefault(repr(key), (key, []))[1].append(doc)

    results = []
    for key, members in groups.values():
        row = {"_id": key}
        for field, accumulator in spec.items():
            if field == "_id":
                continue
            (op, expr), = accumulator.items()
            values = [_expression(doc, expr) for doc in members]
            numbers = [v for v in values if isinstance(v, (int, float))]
            if op == "$sum":
                row[field] = sum(numbers)
            elif op == "$avg":
                row[field] = sum(numbers) / len(numbers) if numbers else None
            elif op == "$addToSet":
                row[field] = list({repr(v): v for v in values}.values())
            else:
                raise NotImplementedError(op)
        results.append(row)
    return results


def _sort_docs(docs, keys):
    for field, direction in reversed(keys):
        docs.sort(
            key=lambda d: (_get_path(d, field) is None, _get_path(d, field) if _get_path(d, field) is not None else 0),
            reverse=direction < 0,
        )
    return docs


def run_pipeline(docs, pipeline):
    for stage in pipeline:
        (name, spec), = stage.items()
        if name == "$match":
            docs = [d for d in docs if matches(d, spec)]
        elif name == "$group":
            docs = _group(docs, spec)
        elif name == "$sort":
            docs = _sort_docs(docs, list(spec.items()))
        elif name == "$limit":
            docs = docs[:spec]
        else:
            raise NotImplementedError(name)
    return docs


# ============================================================================
# Collection and cursor
# ============================================================================


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._skip = 0
        self._limit = 0

    def sort(self, key, direction=None):
        keys = key if isinstance(key, list) else [(key, direction if direction is not None else 1)]
        _sort_docs(self._docs, keys)
        return self

    def skip(self, count):
        self._skip = count
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _window(self):
        docs = self._docs[self._skip:]
        return docs[: self._limit] if self._limit else docs

    async def to_list(self, length=None):
        docs = self._window()
        return docs[:length] if length else docs

    def __aiter__(self):
        self._iter = iter(self._window())
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []

    def _find(self, query):
        return [d for d in self.docs if matches(d, query)]

    async def insert_one(self, doc, session=None):
        doc.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    async def find_one(self, query=None, projection=None, session=None):
        found = self._find(query)
        return copy.deepcopy(found[0]) if found else None

    def find(self, query=None, projection=None, session=None):
        return FakeCursor([copy.deepcopy(d) for d in self._find(query)])

    async def count_documents(self, query, session=None):
        return len(self._find(query))

    def _upsert(self, query, update, array_filters):
        doc = {k: copy.deepcopy(v) for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        doc["_id"] = doc.get("_id", ObjectId())
        apply_update(doc, update, array_filters, is_insert=True)
        self.docs.append(doc)
        return doc

    async def update_one(self, query, update, upsert=False, array_filters=None, session=None):
        found = self._find(query)
        if not found:
            if upsert:
                doc = self._upsert(query, update, array_filters)
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        before = copy.deepcopy(found[0])
        apply_update(found[0], update, array_filters)
        return SimpleNamespace(matched_count=1, modified_count=int(before != found[0]), upserted_id=None)

    async def update_many(self, query, update, upsert=False, array_filters=None, session=None):
        modified = 0
        found = self._find(query)
        for doc in found:
            before = copy.deepcopy(doc)
            apply_update(doc, update, array_filters)
            modified += int(before != doc)
        return SimpleNamespace(matched_count=len(found), modified_count=modified, upserted_id=None)

    async def find_one_and_update(
        self, query, update, projection=None, sort=None, upsert=False, return_document=False, session=None, **kwargs
    ):
        found = self._find(query)
        if sort:
            found = _sort_docs(found, sort)
        if not found:
            if upsert:
                doc = self._upsert(query, update, kwargs.get("array_filters"))
                return copy.deepcopy(doc) if return_document else None
            return None
        before = copy.deepcopy(found[0])
        apply_update(found[0], update, kwargs.get("array_filters"))
        return copy.deepcopy(found[0]) if return_document else before

    async def delete_one(self, query, session=None):
        found = self._find(query)
        if found:
            self.docs.remove(found[0])
        return SimpleNamespace(deleted_count=len(found[:1]))

    async def delete_many(self, query, session=None):
        found = self._find(query)
        self.docs = [d for d in self.docs if d not in found]
        return SimpleNamespace(deleted_count=len(found))

    def aggregate(self, pipeline, session=None):
        return FakeCursor(run_pipeline([copy.deepcopy(d) for d in self.docs], pipeline))

    async def create_index(self, *args, **kwargs):
        return "fake_index"


class FakeDatabase:
    """Drop-in for `DatabaseManager` as seen by services: collections plus transactions."""

    def __init__(self):
        self.collections = {}
        self.transactions_supported = False

    def get_collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def run_in_transaction(self, callback):
        return await callback(None)

    async def health_check(self):
        return True


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def email_service():
    service = AsyncMock()
    service.enabled = False
    return service


@pytest.fixture
def api_client(fake_db, email_service):
    """`TestClient` against the real app with the database and email swapped out."""
    from fastapi.testclient import TestClient

    from webnest.main import app
    from webnest.routes.dependencies import get_db, get_email_service

    app.dependency_overrides[get_db] = lambda: fake_db
    app.dependency_overrides[get_email_service] = lambda: email_service
    # Not entered as a context manager, so the lifespan (MongoDB, scheduler) never runs
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
