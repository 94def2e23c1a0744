"""
PostgreSQL implementation of the record store.

Leads and bookings live in their own tables with an integer version
column. Lead history lives in the append-only lead_history table keyed by
(lead_id, sequence); nothing in this module issues UPDATE or DELETE
against it.

A versioned update is one transaction: the UPDATE only matches when the
version is unchanged, and the history INSERT runs on the same connection
while the lead row is locked by that UPDATE.
"""

import json
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.filters import Condition, Op, Predicate
from core.store import RecordStore, VersionConflict

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS leads (
    id UUID PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL,
    phone TEXT NOT NULL,
    source TEXT NOT NULL,
    stage TEXT NOT NULL,
    score INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
    interest TEXT,
    budget NUMERIC,
    notes TEXT,
    assigned_to TEXT,
    customer_id UUID,
    stage_date_start TIMESTAMPTZ NOT NULL,
    attachments JSONB NOT NULL DEFAULT '[]'::jsonb,
    is_active BOOLEAN NOT NULL DEFAULT true,
    version INTEGER NOT NULL DEFAULT 1,
    created_by TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS lead_history (
    lead_id UUID NOT NULL REFERENCES leads(id),
    sequence INTEGER NOT NULL,
    stage TEXT NOT NULL,
    occurred_at TIMESTAMPTZ NOT NULL,
    notes TEXT,
    actor_id TEXT NOT NULL,
    PRIMARY KEY (lead_id, sequence)
);

CREATE TABLE IF NOT EXISTS bookings (
    id UUID PRIMARY KEY,
    property_id UUID NOT NULL,
    inventory_id UUID,
    customer_id UUID NOT NULL,
    agent_id TEXT NOT NULL,
    stage TEXT NOT NULL,
    status TEXT NOT NULL,
    booking_date TIMESTAMPTZ NOT NULL,
    move_in_date TIMESTAMPTZ,
    move_out_date TIMESTAMPTZ,
    amount NUMERIC NOT NULL,
    advance_amount NUMERIC,
    payment_method TEXT,
    payment_status TEXT NOT NULL,
    notes TEXT,
    token_dates JSONB NOT NULL DEFAULT '[]'::jsonb,
    pricing_breakdown JSONB NOT NULL,
    documents JSONB NOT NULL DEFAULT '[]'::jsonb,
    is_active BOOLEAN NOT NULL DEFAULT true,
    version INTEGER NOT NULL DEFAULT 1,
    created_by TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_leads_stage ON leads (stage) WHERE is_active;
CREATE INDEX IF NOT EXISTS idx_leads_score ON leads (score) WHERE is_active;
CREATE INDEX IF NOT EXISTS idx_bookings_stage ON bookings (stage) WHERE is_active;
CREATE INDEX IF NOT EXISTS idx_bookings_booking_date ON bookings (booking_date) WHERE is_active;
"""

TABLE_COLUMNS: dict[str, frozenset[str]] = {
    "leads": frozenset({
        "id", "name", "email", "phone", "source", "stage", "score",
        "interest", "budget", "notes", "assigned_to", "customer_id",
        "stage_date_start", "attachments", "is_active", "version",
        "created_by", "created_at", "updated_at",
    }),
    "bookings": frozenset({
        "id", "property_id", "inventory_id", "customer_id", "agent_id",
        "stage", "status", "booking_date", "move_in_date", "move_out_date",
        "amount", "advance_amount", "payment_method", "payment_status",
        "notes", "token_dates", "pricing_breakdown", "documents",
        "is_active", "version", "created_by", "created_at", "updated_at",
    }),
}

JSON_COLUMNS = frozenset({"attachments", "token_dates", "pricing_breakdown", "documents"})

HISTORY_TABLES = {"leads": "lead_history"}

_OPERATORS = {Op.EQ: "=", Op.GTE: ">=", Op.LTE: "<="}


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresRecordStore(RecordStore):
    """Record store over PostgresClient."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def ensure_schema(self) -> None:
        """Create tables and indexes if missing. Safe to call on every start."""
        self.postgres.execute(SCHEMA_SQL)
        logger.info("Record store schema ensured")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _table(self, collection: str) -> str:
        if collection not in TABLE_COLUMNS:
            raise ValueError(f"Unknown collection '{collection}'")
        return collection

    def _column(self, collection: str, name: str) -> str:
        if name not in TABLE_COLUMNS[collection]:
            raise ValueError(f"Unknown field '{name}' for {collection}")
        return name

    def _value(self, column: str, value: Any) -> Any:
        if column in JSON_COLUMNS and value is not None:
            return Json(value, dumps=_dumps)
        return value

    def _where(self, collection: str, predicate: Predicate) -> tuple[str, list[Any]]:
        clauses = []
        params: list[Any] = []
        for condition in predicate.conditions:
            clauses.append(self._condition_sql(collection, condition))
            params.append(condition.value)

        if predicate.search is not None:
            pattern = f"%{_escape_like(predicate.search.term)}%"
            ors = []
            for name in predicate.search.fields:
                ors.append(f"{self._column(collection, name)}::text ILIKE %s")
                params.append(pattern)
            clauses.append("(" + " OR ".join(ors) + ")")

        sql = " AND ".join(clauses) if clauses else "TRUE"
        return sql, params

    def _condition_sql(self, collection: str, condition: Condition) -> str:
        column = self._column(collection, condition.field)
        return f"{column} {_OPERATORS[condition.op]} %s"

    @staticmethod
    def _history_row(row: dict[str, Any]) -> dict[str, Any]:
        return {
            "stage": row["stage"],
            "date": row["occurred_at"],
            "notes": row["notes"],
            "user_id": row["actor_id"],
        }

    # ------------------------------------------------------------------
    # RecordStore
    # ------------------------------------------------------------------

    def insert(self, collection, record, history_entry=None):
        table = self._table(collection)
        record = {**record, "version": 1}
        columns = [self._column(collection, name) for name in record]
        values = [self._value(name, record[name]) for name in columns]
        placeholders = ", ".join(["%s"] * len(columns))

        with self.postgres.transaction() as cur:
            cur.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
                self.postgres.convert_params(tuple(values)),
            )
            row = dict(cur.fetchone())
            if history_entry is not None:
                self._append_history(cur, collection, record["id"], history_entry)
        return row

    def get(self, collection, record_id):
        table = self._table(collection)
        return self.postgres.execute_single(
            f"SELECT * FROM {table} WHERE id = %s AND is_active",
            (record_id,),
        )

    def update(self, collection, record_id, expected_version, changes, history_entry=None):
        table = self._table(collection)
        columns = [self._column(collection, name) for name in changes if name not in ("id", "version")]
        assignments = ", ".join(f"{name} = %s" for name in columns)
        values = [self._value(name, changes[name]) for name in columns]
        set_clause = f"{assignments}, version = version + 1" if assignments else "version = version + 1"

        with self.postgres.transaction() as cur:
            cur.execute(
                f"UPDATE {table} SET {set_clause} "
                f"WHERE id = %s AND version = %s AND is_active RETURNING *",
                self.postgres.convert_params(tuple(values) + (record_id, expected_version)),
            )
            row = cur.fetchone()
            if row is None:
                cur.execute(
                    f"SELECT version FROM {table} WHERE id = %s AND is_active",
                    self.postgres.convert_params((record_id,)),
                )
                current = cur.fetchone()
                if current is None:
                    return None
                raise VersionConflict(collection, record_id, expected_version, current["version"])

            if history_entry is not None:
                self._append_history(cur, collection, record_id, history_entry)
            return dict(row)

    def _append_history(self, cur, collection: str, record_id: UUID, entry: dict[str, Any]) -> None:
        history_table = HISTORY_TABLES.get(collection)
        if history_table is None:
            raise ValueError(f"{collection} does not keep history")
        cur.execute(
            f"""
            INSERT INTO {history_table} (lead_id, sequence, stage, occurred_at, notes, actor_id)
            SELECT %s, COALESCE(MAX(sequence), 0) + 1, %s, %s, %s, %s
            FROM {history_table} WHERE lead_id = %s
            """,
            self.postgres.convert_params((
                record_id, entry["stage"], entry["date"], entry.get("notes"),
                entry["user_id"], record_id,
            )),
        )

    def history(self, collection, record_id):
        return self.histories(collection, [record_id]).get(record_id, [])

    def histories(self, collection, record_ids):
        history_table = HISTORY_TABLES.get(collection)
        if history_table is None or not record_ids:
            return {rid: [] for rid in record_ids}

        rows = self.postgres.execute(
            f"""
            SELECT lead_id, sequence, stage, occurred_at, notes, actor_id
            FROM {history_table}
            WHERE lead_id = ANY(%s::uuid[])
            ORDER BY lead_id, sequence
            """,
            (list(record_ids),),
        )
        grouped: dict[UUID, list[dict[str, Any]]] = {rid: [] for rid in record_ids}
        for row in rows:
            lead_id = row["lead_id"] if isinstance(row["lead_id"], UUID) else UUID(str(row["lead_id"]))
            grouped.setdefault(lead_id, []).append(self._history_row(row))
        return grouped

    def find(self, collection, predicate, sort, page):
        table = self._table(collection)
        where, params = self._where(collection, predicate)
        order_column = self._column(collection, sort.field)
        direction = "DESC" if sort.descending else "ASC"

        total = self.postgres.execute_scalar(
            f"SELECT COUNT(*) AS total FROM {table} WHERE {where}",
            tuple(params),
        ) or 0
        rows = self.postgres.execute(
            f"SELECT * FROM {table} WHERE {where} "
            f"ORDER BY {order_column} {direction} NULLS LAST, id "
            f"LIMIT %s OFFSET %s",
            tuple(params) + (page.size, page.offset),
        )
        return rows, int(total)

    def scan(self, collection, predicate):
        table = self._table(collection)
        where, params = self._where(collection, predicate)
        return self.postgres.execute(f"SELECT * FROM {table} WHERE {where}", tuple(params))
