"""Shared fixtures for Back Office tests.

Provides:
- fake_db: patches supabase_client with an in-memory fake
- client: FastAPI TestClient wired to the app with the fake DB
- sample data factories for products, customers, transactions, lifecycles
"""

import os
import re
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

import pytest

# Set env vars before any Back Office imports
os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "fake-key")
os.environ.setdefault("WEBHOOK_SECRET", "test-secret-123")


# ---------------------------------------------------------------------------
# In-memory fake Supabase
# ---------------------------------------------------------------------------

class FakeQueryResult:
    def __init__(self, data=None, count=None):
        self.data = data or []
        self.count = count


class FakeQueryBuilder:
    """Mimics the supabase-py query builder chain."""

    def __init__(self, store, table_name):
        self._store = store
        self._table = table_name
        self._filters = []
        self._order_col = None
        self._order_desc = False
        self._limit_val = None
        self._range_start = None
        self._range_end = None
        self._columns = "*"
        self._count_mode = None
        self._update_data = None
        self._delete_mode = False
        self._insert_data = None

    def select(self, columns="*", count=None):
        self._columns = columns
        self._count_mode = count
        return self

    def insert(self, data):
        self._insert_data = data
        return self

    def update(self, data):
        self._update_data = data
        return self

    def delete(self):
        self._delete_mode = True
        return self

    def eq(self, col, val):
        self._filters.append(("eq", col, val))
        return self

    def neq(self, col, val):
        self._filters.append(("neq", col, val))
        return self

    def gte(self, col, val):
        self._filters.append(("gte", col, val))
        return self

    def lte(self, col, val):
        self._filters.append(("lte", col, val))
        return self

    def lt(self, col, val):
        self._filters.append(("lt", col, val))
        return self

    def like(self, col, pattern):
        self._filters.append(("like", col, pattern))
        return self

    def or_(self, expr):
        # Simplified: don't filter, return all
        return self

    def order(self, col, desc=False):
        self._order_col = col
        self._order_desc = desc
        return self

    def limit(self, n):
        self._limit_val = n
        return self

    def range(self, start, end):
        self._range_start = start
        self._range_end = end
        return self

    @staticmethod
    def _like(value, pattern):
        regex = "^" + re.escape(pattern).replace("%", ".*").replace("_", ".") + "$"
        return value is not None and re.match(regex, str(value)) is not None

    def _match(self, row):
        for op, col, val in self._filters:
            row_val = row.get(col)
            if op == "eq" and row_val != val:
                return False
            if op == "neq" and row_val == val:
                return False
            if op == "gte" and (row_val is None or str(row_val) < str(val)):
                return False
            if op == "lte" and (row_val is None or str(row_val) > str(val)):
                return False
            if op == "lt" and (row_val is None or str(row_val) >= str(val)):
                return False
            if op == "like" and not self._like(row_val, val):
                return False
        return True

    def _new_row(self, data):
        row = dict(data)
        if "id" not in row:
            row["id"] = str(uuid.uuid4())
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        return row

    def execute(self):
        table = self._store[self._table]

        if self._insert_data is not None:
            payload = self._insert_data if isinstance(self._insert_data, list) else [self._insert_data]
            rows = [self._new_row(d) for d in payload]
            table.extend(rows)
            return FakeQueryResult(data=rows)

        if self._update_data is not None:
            updated = []
            for row in table:
                if self._match(row):
                    row.update(self._update_data)
                    updated.append(row)
            return FakeQueryResult(data=updated)

        if self._delete_mode:
            remaining = [r for r in table if not self._match(r)]
            removed = [r for r in table if self._match(r)]
            table.clear()
            table.extend(remaining)
            return FakeQueryResult(data=removed)

        # SELECT
        rows = [r for r in table if self._match(r)]

        if self._order_col:
            rows.sort(
                key=lambda r: str(r.get(self._order_col) or ""),
                reverse=self._order_desc,
            )

        total = len(rows)

        if self._range_start is not None:
            rows = rows[self._range_start:self._range_end + 1]
        elif self._limit_val is not None:
            rows = rows[:self._limit_val]

        return FakeQueryResult(
            data=rows,
            count=total if self._count_mode else None,
        )


class FakeDB:
    """In-memory store keyed by table name."""

    def __init__(self):
        self.store = defaultdict(list)

    def table(self, name):
        return FakeQueryBuilder(self.store, name)

    def clear(self):
        self.store.clear()


@pytest.fixture
def fake_db():
    """Provides a clean in-memory DB and patches supabase_client._table."""
    db = FakeDB()

    def fake_table(name):
        return FakeQueryBuilder(db.store, name)

    with patch("back_office.supabase_client._table", side_effect=fake_table):
        with patch("back_office.supabase_client.get_client", return_value=MagicMock()):
            yield db


@pytest.fixture
def client(fake_db):
    """Sync test client for FastAPI app with mocked DB and no scheduler."""
    from contextlib import asynccontextmanager

    from fastapi.testclient import TestClient

    from back_office.app import create_app

    @asynccontextmanager
    async def noop_lifespan(app):
        yield

    app = create_app()
    app.router.lifespan_context = noop_lifespan

    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------

def make_flow_config(onboarding=True, retention=True, maturity=True):
    """Each phase takes a bool (enabled) or a dict of fields merged over an enabled phase."""
    config = {
        "onboarding": {"enabled": True, "task_name": "Install Product", "message_template_id": None},
        "retention": {"enabled": True, "reminder_days_before": 7, "message_template_id": None},
        "maturity": {"enabled": True, "task_name": "Call for MA Renewal", "message_template_id": None},
    }
    for phase, value in (("onboarding", onboarding), ("retention", retention),
                         ("maturity", maturity)):
        if isinstance(value, dict):
            config[phase].update(value)
        else:
            config[phase]["enabled"] = value
    return config


def make_product(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "name": "Inverter Air Conditioner 12000 BTU",
        "sku": "AC-12K",
        "selling_price": 15900.0,
        "product_type": "tangible",
        "has_service_flow": True,
        "lifecycle_months": 24,
        "service_interval_months": 6,
        "usage_duration_days": None,
        "service_flow_config": make_flow_config(),
        "is_active": True,
        "stock_quantity": 10,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_customer(**overrides):
    defaults = {
        "id": "a1b2c3d4-0000-4000-8000-000000000001",
        "name": "Somchai Jaidee",
        "phone": "0812345678",
        "email": "somchai@example.com",
        "line_id": "",
        "address": "",
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_customer_product(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "customer_id": "a1b2c3d4-0000-4000-8000-000000000001",
        "product_id": str(uuid.uuid4()),
        "transaction_id": str(uuid.uuid4()),
        "transaction_item_id": str(uuid.uuid4()),
        "quantity": 1,
        "installation_date": "2025-01-15",
        "warranty_end_date": "2027-01-05",
        "next_service_date": "2025-07-14",
        "status": "active",
        "service_flow_config_snapshot": make_flow_config(),
        "lifecycle_months_snapshot": 24,
        "service_interval_months_snapshot": 6,
    }
    defaults.update(overrides)
    return defaults


def make_template(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "name": "Welcome",
        "type": "onboarding",
        "channel": "line",
        "subject": None,
        "content": "Hi {{customer_name}}, thanks for buying {{product_name}}!",
        "variables": ["customer_name", "product_name", "service_date"],
        "is_default": True,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    defaults.update(overrides)
    return defaults


def make_task(**overrides):
    defaults = {
        "id": str(uuid.uuid4()),
        "customer_product_id": str(uuid.uuid4()),
        "customer_id": "a1b2c3d4-0000-4000-8000-000000000001",
        "phase": "retention",
        "scheduled_date": "2025-07-15",
        "task_name": "Service Reminder - Month 6",
        "message_template_id": None,
        "status": "pending",
        "executed_at": None,
    }
    defaults.update(overrides)
    return defaults
