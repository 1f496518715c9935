"""In-memory stand-in for the parts of the Supabase client the app uses."""
from __future__ import annotations

import itertools
import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest

from rental_admin.bookings import BookingEngine
from rental_admin.customers import CustomerRegistry
from rental_admin.vehicles import VehicleRegistry


FOREIGN_KEYS = {
    "car_id": "cars",
    "customer_id": "customers",
    "user_id": "profiles",
}

EMBED = re.compile(r"^(\w+):(\w+)\(\*\)$")


class FakeAPIError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = None
        self.columns = "*"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_to: Optional[int] = None

    # --- builders ---
    def select(self, columns: str = "*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any):
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, n: int):
        self.limit_to = n
        return self

    # --- execution ---
    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(col) == value for col, value in self.filters)

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for part in [p.strip() for p in self.columns.split(",") if p.strip()]:
            if part == "*":
                out.update({k: v for k, v in row.items() if not k.startswith("_")})
                continue
            embed = EMBED.match(part)
            if embed:
                alias, fk = embed.groups()
                target = self.db.find(FOREIGN_KEYS[fk], row.get(fk))
                out[alias] = self.db.public(target) if target else None
            else:
                out[part] = row.get(part)
        return out

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.op))
        if (self.table, self.op) in self.db.failures:
            raise FakeAPIError(self.db.failures[(self.table, self.op)])

        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            created = []
            for p in payloads:
                row = dict(p)
                row.setdefault("id", f"{self.table}-{next(self.db.ids)}")
                row["_seq"] = next(self.db.seq)
                rows.append(row)
                created.append(self.db.public(row))
            return FakeResponse(created)

        matched = [r for r in rows if self._matches(r)]
        if self.op == "update":
            for r in matched:
                r.update(self.payload)
            return FakeResponse([self.db.public(r) for r in matched])
        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return FakeResponse([self.db.public(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: (r.get(column) or "", r["_seq"]), reverse=desc)
        if self.limit_to is not None:
            matched = matched[: self.limit_to]
        return FakeResponse([self._project(r) for r in matched])


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback: Callable):
        self.auth = auth
        self.callback = callback

    def unsubscribe(self):
        if self.callback in self.auth.callbacks:
            self.auth.callbacks.remove(self.callback)


class FakeAuth:
    def __init__(self):
        self.accounts: Dict[str, tuple] = {}
        self.session = None
        self.callbacks: List[Callable] = []

    def add_account(self, email: str, password: str, user_id: str):
        self.accounts[email] = (password, user_id)

    def _emit(self, event: str):
        for cb in list(self.callbacks):
            cb(event, self.session)

    def get_session(self):
        return self.session

    def sign_in_with_password(self, credentials: Dict[str, str]):
        account = self.accounts.get(credentials["email"])
        if account is None or account[0] != credentials["password"]:
            raise FakeAPIError("Invalid login credentials")
        user = SimpleNamespace(id=account[1], email=credentials["email"])
        self.session = SimpleNamespace(user=user, access_token="token")
        self._emit("SIGNED_IN")
        return SimpleNamespace(user=user, session=self.session)

    def sign_out(self):
        self.session = None
        self._emit("SIGNED_OUT")

    def on_auth_state_change(self, callback: Callable):
        self.callbacks.append(callback)
        return FakeSubscription(self, callback)


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, str] = {}
        self.ids = itertools.count(1)
        self.seq = itertools.count(1)
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, op: str, message: str = "connection refused"):
        self.failures[(table, op)] = message

    def find(self, table: str, row_id: Any) -> Optional[Dict[str, Any]]:
        if row_id is None:
            return None
        return next((r for r in self.tables.get(table, []) if r.get("id") == row_id), None)

    @staticmethod
    def public(row: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in row.items() if not k.startswith("_")}

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [self.public(r) for r in self.tables.get(table, [])]


@pytest.fixture
def client():
    return FakeSupabase()


@pytest.fixture
def vehicles(client):
    return VehicleRegistry(client)


@pytest.fixture
def customers(client):
    return CustomerRegistry(client)


@pytest.fixture
def engine(client, vehicles, customers):
    return BookingEngine(client, vehicles, customers)


@pytest.fixture
def car(vehicles):
    return vehicles.create(
        {
            "make": "Toyota",
            "model": "Corolla",
            "year": 2022,
            "license_plate": "ab-123-c",
            "daily_rate": "50.00",
        }
    )


@pytest.fixture
def customer_fields():
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "a@b.com",
        "phone": "+1 555 0100",
        "license_number": "D1234567",
        "license_expiry": "2099-12-31",
    }
