"""
In-memory stand-in for the parts of the Supabase client the services use.

Supports table().select/insert/update/upsert/delete with eq, in_, is_,
order and limit filters, so conditional writes (version guards, job claims)
behave like the real database.
"""
import copy
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class FakeQuery:

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.operation = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List = []
        self.order_by: Optional[tuple] = None
        self.limit_count: Optional[int] = None

    # Operations

    def select(self, columns: str = "*"):
        self.operation = "select"
        return self

    def insert(self, payload):
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload: Dict[str, Any]):
        self.operation = "update"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None):
        self.operation = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def delete(self):
        self.operation = "delete"
        return self

    # Filters

    def eq(self, column: str, value: Any):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column: str, value: str):
        if value == "null":
            self.filters.append(lambda row: row.get(column) is None)
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(f(row) for f in self.filters)

    def execute(self) -> FakeResponse:
        rows = self.db.tables.setdefault(self.table_name, [])
        self.db.calls.append((self.table_name, self.operation))

        if self.operation == "select":
            found = [copy.deepcopy(r) for r in rows if self._matches(r)]
            if self.order_by:
                column, desc = self.order_by
                found.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            if self.limit_count is not None:
                found = found[:self.limit_count]
            return FakeResponse(found)

        if self.operation == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            for row in new_rows:
                rows.append(copy.deepcopy(row))
            return FakeResponse(copy.deepcopy(new_rows))

        if self.operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.operation == "upsert":
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            for existing in rows:
                if all(existing.get(k) == self.payload.get(k) for k in keys):
                    existing.update(copy.deepcopy(self.payload))
                    return FakeResponse([copy.deepcopy(existing)])
            rows.append(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(self.payload)])

        if self.operation == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)

        raise AssertionError(f"Unsupported operation {self.operation}")


class FakeSupabase:

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(tables or {})
        self.calls: List[tuple] = []
        self.auth = MagicMock()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def count(self, table: str, operation: str) -> int:
        return sum(1 for call in self.calls if call == (table, operation))
