"""PostgreSQL persistence for leads, daily picks and the intelligence log."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2 import extras, pool, sql

from leadintel.core.config import Settings, get_settings
from leadintel.etl.normalize import dedup_key

logger = logging.getLogger(__name__)

LEAD_COLUMNS = (
    "business_name",
    "category",
    "address",
    "city",
    "state",
    "phone",
    "email",
    "google_rating",
    "review_count",
    "has_website",
    "website_url",
    "website_quality",
    "lead_score",
    "status",
    "call_outcome",
    "callback_date",
    "last_called_at",
    "tags",
    "claimed_by",
    "google_place_id",
    "google_maps_url",
    "audit_data",
    "audit_date",
    "phone_script",
)
DAILY_PICK_COLUMNS = (
    "business_name",
    "category",
    "address",
    "city",
    "state",
    "phone",
    "google_rating",
    "review_count",
    "has_website",
    "website_url",
    "google_maps_url",
    "lead_score",
)
OUTREACH_COLUMNS = ("lead_id", "email_subject", "email_body", "email_type", "status")
_JSON_COLUMNS = {"audit_data"}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS leads (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    business_name text NOT NULL,
    category text,
    address text NOT NULL DEFAULT '',
    city text NOT NULL DEFAULT '',
    state text NOT NULL DEFAULT '',
    phone text,
    email text,
    google_rating double precision,
    review_count integer NOT NULL DEFAULT 0 CHECK (review_count >= 0),
    has_website boolean NOT NULL DEFAULT false,
    website_url text,
    website_quality text NOT NULL DEFAULT 'none',
    lead_score integer NOT NULL DEFAULT 0 CHECK (lead_score BETWEEN 0 AND 100),
    status text NOT NULL DEFAULT 'new',
    call_outcome text,
    callback_date date,
    last_called_at timestamptz,
    tags text[] NOT NULL DEFAULT '{}',
    claimed_by text,
    google_place_id text,
    google_maps_url text,
    audit_data jsonb,
    audit_date timestamptz,
    phone_script text,
    version integer NOT NULL DEFAULT 1,
    scraped_at timestamptz NOT NULL DEFAULT NOW()
);
CREATE UNIQUE INDEX IF NOT EXISTS leads_dedup_key_idx
    ON leads (lower(btrim(business_name)), lower(btrim(city)));

CREATE TABLE IF NOT EXISTS daily_picks (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    business_name text NOT NULL,
    category text,
    address text,
    city text,
    state text,
    phone text,
    google_rating double precision,
    review_count integer,
    has_website boolean,
    website_url text,
    google_maps_url text,
    lead_score integer,
    created_at timestamptz NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS intelligence_log (
    id bigserial PRIMARY KEY,
    action_type text NOT NULL,
    industry text,
    lead_id uuid,
    metadata jsonb NOT NULL DEFAULT '{}',
    outcome text,
    created_at timestamptz NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS intelligence_log_action_created_idx
    ON intelligence_log (action_type, created_at DESC);

CREATE TABLE IF NOT EXISTS outreach (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    lead_id uuid NOT NULL REFERENCES leads (id) ON DELETE CASCADE,
    email_subject text,
    email_body text NOT NULL,
    email_type text NOT NULL DEFAULT 'initial',
    status text NOT NULL DEFAULT 'draft',
    created_at timestamptz NOT NULL DEFAULT NOW()
);
"""


def create_pool(settings: Optional[Settings] = None, minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Create a connection pool for the configured database."""
    settings = settings or get_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is required for database connections")
    connection_pool = pool.SimpleConnectionPool(
        minconn,
        maxconn,
        dsn=settings.database_url,
        connect_timeout=10,
    )
    logger.info("Database connection pool initialised")
    return connection_pool


def _adapt(column: str, value: Any) -> Any:
    if column in _JSON_COLUMNS and value is not None:
        return extras.Json(value)
    if column == "tags" and value is not None:
        return sorted(value)
    return value


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresRepository:
    """Lead repository backed by a psycopg2 connection pool."""

    def __init__(self, connection_pool: pool.SimpleConnectionPool) -> None:
        self._pool = connection_pool

    @contextmanager
    def _connection(self):
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    def _fetch_all(self, query, params=None) -> List[Dict[str, Any]]:
        with self._connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(row) for row in cur.fetchall()]

    def _fetch_one_and_commit(self, query, params=None) -> Optional[Dict[str, Any]]:
        with self._connection() as conn:
            try:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise
        return dict(row) if row else None

    def init_schema(self) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
        logger.info("Database schema ensured")

    def find_by_key(self, business_name: str, city: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all(
            "SELECT * FROM leads WHERE lower(btrim(business_name)) = %s AND lower(btrim(city)) = %s LIMIT 1",
            ((business_name or "").strip().lower(), (city or "").strip().lower()),
        )
        return rows[0] if rows else None

    def saved_index(self) -> Dict[str, str]:
        rows = self._fetch_all("SELECT id, business_name, city FROM leads")
        return {dedup_key(row["business_name"], row["city"]): str(row["id"]) for row in rows}

    def get_lead(self, lead_id: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch_all("SELECT * FROM leads WHERE id = %s", (lead_id,))
        return rows[0] if rows else None

    def insert_lead(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        columns = [column for column in LEAD_COLUMNS if column in row]
        query = sql.SQL(
            "INSERT INTO leads ({columns}) VALUES ({values}) ON CONFLICT DO NOTHING RETURNING *"
        ).format(
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in columns),
            values=sql.SQL(", ").join(sql.Placeholder(column) for column in columns),
        )
        params = {column: _adapt(column, row[column]) for column in columns}
        stored = self._fetch_one_and_commit(query, params)
        if stored is None:
            logger.debug("Lead %s in %s already exists", row.get("business_name"), row.get("city"))
        return stored

    def update_lead(
        self, lead_id: str, changes: Dict[str, Any], expected_version: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        columns = [column for column in LEAD_COLUMNS if column in changes]
        unknown = set(changes) - set(columns)
        if unknown:
            raise ValueError(f"unknown lead columns: {', '.join(sorted(unknown))}")

        assignments = [sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder(c)) for c in columns]
        assignments.append(sql.SQL("version = version + 1"))
        condition = sql.SQL("id = {}").format(sql.Placeholder("_id"))
        if expected_version is not None:
            condition = sql.SQL("{} AND version = {}").format(condition, sql.Placeholder("_expected_version"))

        query = sql.SQL("UPDATE leads SET {assignments} WHERE {condition} RETURNING *").format(
            assignments=sql.SQL(", ").join(assignments),
            condition=condition,
        )
        params = {column: _adapt(column, changes[column]) for column in columns}
        params["_id"] = lead_id
        params["_expected_version"] = expected_version
        return self._fetch_one_and_commit(query, params)

    def claim_counts(self, members: Sequence[str]) -> Dict[str, int]:
        counts = {member: 0 for member in members}
        if not members:
            return counts
        rows = self._fetch_all(
            "SELECT claimed_by, count(*) AS total FROM leads WHERE claimed_by = ANY(%s) GROUP BY claimed_by",
            (list(members),),
        )
        for row in rows:
            counts[row["claimed_by"]] = int(row["total"])
        return counts

    def insert_outreach(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = sql.SQL("INSERT INTO outreach ({columns}) VALUES ({values}) RETURNING *").format(
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in OUTREACH_COLUMNS),
            values=sql.SQL(", ").join(sql.Placeholder(column) for column in OUTREACH_COLUMNS),
        )
        stored = self._fetch_one_and_commit(query, {column: row.get(column) for column in OUTREACH_COLUMNS})
        if stored is None:
            raise RuntimeError(f"outreach insert for lead {row.get('lead_id')} returned no row")
        for name in ("id", "lead_id"):
            if stored.get(name) is not None:
                stored[name] = str(stored[name])
        if hasattr(stored.get("created_at"), "isoformat"):
            stored["created_at"] = stored["created_at"].isoformat()
        return stored

    def append_log(self, entry: Dict[str, Any]) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "INSERT INTO intelligence_log (action_type, industry, lead_id, metadata, outcome) "
                    "VALUES (%(action_type)s, %(industry)s, %(lead_id)s, %(metadata)s, %(outcome)s)",
                    {
                        "action_type": entry["action_type"],
                        "industry": entry.get("industry"),
                        "lead_id": entry.get("lead_id"),
                        "metadata": extras.Json(entry.get("metadata") or {}),
                        "outcome": entry.get("outcome"),
                    },
                )
            conn.commit()

    def recent_log_entries(self, action_type: str, industry: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self._fetch_all(
            "SELECT action_type, industry, lead_id, metadata, outcome, created_at FROM intelligence_log "
            "WHERE action_type = %s AND industry ILIKE %s ORDER BY created_at DESC LIMIT %s",
            (action_type, f"%{_escape_like(industry)}%", limit),
        )

    def replace_daily_picks(self, rows: Sequence[Dict[str, Any]]) -> None:
        values = [tuple(row.get(column) for column in DAILY_PICK_COLUMNS) for row in rows]
        with self._connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM daily_picks")
                    if values:
                        extras.execute_values(
                            cur,
                            f"INSERT INTO daily_picks ({', '.join(DAILY_PICK_COLUMNS)}) VALUES %s",
                            values,
                        )
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise
        logger.info("Replaced daily picks with %d rows", len(values))
