"""SQLiteStore — single-file store for one worker process.

Timestamps are stored as fixed-width ISO-8601 UTC text so SQL string
comparison orders them chronologically. Foreign keys are enforced and
cascade, so deleting a pull request removes its checks, reviews and metrics.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, fields
from datetime import datetime, timezone

from prsignal_store.base import BaseStore
from prsignal_store.models import (
    CICheck,
    HealthScore,
    PrMetrics,
    ProviderAccount,
    PullRequest,
    Repository,
    Review,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS provider_accounts (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    provider                TEXT NOT NULL,
    label                   TEXT NOT NULL,
    access_token_encrypted  BLOB NOT NULL,
    auth_username           TEXT,
    instance_url            TEXT,
    created_at              TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS repositories (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    provider                TEXT NOT NULL,
    owner                   TEXT NOT NULL,
    name                    TEXT NOT NULL,
    provider_account_id     INTEGER NOT NULL REFERENCES provider_accounts (id),
    poll_interval_seconds   INTEGER NOT NULL CHECK (poll_interval_seconds > 0),
    last_polled_at          TEXT,
    created_at              TEXT NOT NULL,
    UNIQUE (provider, owner, name)
);

CREATE TABLE IF NOT EXISTS pull_requests (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id       INTEGER NOT NULL REFERENCES repositories (id) ON DELETE CASCADE,
    number              INTEGER NOT NULL,
    provider_id         TEXT NOT NULL,
    title               TEXT NOT NULL,
    description         TEXT,
    url                 TEXT NOT NULL,
    state               TEXT NOT NULL,
    source_branch       TEXT NOT NULL,
    target_branch       TEXT NOT NULL,
    author              TEXT NOT NULL,
    author_avatar_url   TEXT,
    is_draft            INTEGER NOT NULL DEFAULT 0,
    is_mergeable        INTEGER,
    has_conflicts       INTEGER NOT NULL DEFAULT 0,
    additions           INTEGER NOT NULL DEFAULT 0,
    deletions           INTEGER NOT NULL DEFAULT 0,
    changed_files       INTEGER NOT NULL DEFAULT 0,
    commits_count       INTEGER NOT NULL DEFAULT 0,
    comments_count      INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    merged_at           TEXT,
    closed_at           TEXT,
    last_synced_at      TEXT NOT NULL,
    UNIQUE (repository_id, number)
);
CREATE INDEX IF NOT EXISTS idx_pull_requests_state ON pull_requests (repository_id, state);

CREATE TABLE IF NOT EXISTS ci_checks (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    pull_request_id     INTEGER NOT NULL REFERENCES pull_requests (id) ON DELETE CASCADE,
    name                TEXT NOT NULL,
    status              TEXT NOT NULL,
    conclusion          TEXT,
    url                 TEXT,
    started_at          TEXT,
    completed_at        TEXT,
    duration_seconds    INTEGER
);
CREATE INDEX IF NOT EXISTS idx_ci_checks_pr ON ci_checks (pull_request_id);

CREATE TABLE IF NOT EXISTS reviews (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    pull_request_id     INTEGER NOT NULL REFERENCES pull_requests (id) ON DELETE CASCADE,
    reviewer            TEXT NOT NULL,
    reviewer_avatar_url TEXT,
    state               TEXT NOT NULL,
    body                TEXT,
    submitted_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reviews_pr ON reviews (pull_request_id);

CREATE TABLE IF NOT EXISTS pr_metrics (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    pull_request_id         INTEGER NOT NULL UNIQUE REFERENCES pull_requests (id) ON DELETE CASCADE,
    repository_id           INTEGER NOT NULL REFERENCES repositories (id) ON DELETE CASCADE,
    time_to_first_review    INTEGER,
    time_to_approval        INTEGER,
    time_to_merge           INTEGER,
    review_rounds           INTEGER NOT NULL DEFAULT 0,
    comments_count          INTEGER NOT NULL DEFAULT 0,
    is_bot                  INTEGER NOT NULL DEFAULT 0,
    merged_at               TEXT NOT NULL,
    recorded_at             TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_pr_metrics_repo ON pr_metrics (repository_id, merged_at);

CREATE TABLE IF NOT EXISTS health_scores (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id       INTEGER NOT NULL REFERENCES repositories (id) ON DELETE CASCADE,
    score               INTEGER NOT NULL,
    avg_time_to_merge   INTEGER,
    avg_review_time     INTEGER,
    stale_pr_count      INTEGER NOT NULL DEFAULT 0,
    pr_throughput       INTEGER NOT NULL DEFAULT 0,
    calculated_at       TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_health_scores_repo ON health_scores (repository_id, calculated_at);
"""

_PR_BOOL_COLUMNS = ("is_draft", "has_conflicts")
_DATETIME_COLUMNS = {
    "created_at",
    "updated_at",
    "merged_at",
    "closed_at",
    "last_synced_at",
    "last_polled_at",
    "started_at",
    "completed_at",
    "submitted_at",
    "recorded_at",
    "calculated_at",
}


def _to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


def _params(record, exclude: tuple[str, ...] = ("id",)) -> dict:
    """Dataclass → named SQL parameters with datetimes serialised."""
    params = {}
    for key, value in asdict(record).items():
        if key in exclude:
            continue
        params[key] = _to_db(value) if key in _DATETIME_COLUMNS else value
    return params


def _insert_sql(table: str, params: dict) -> str:
    columns = ", ".join(params)
    placeholders = ", ".join(f":{c}" for c in params)
    return f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"


def _row_to(cls, row: sqlite3.Row):
    kwargs = {}
    for f in fields(cls):
        value = row[f.name]
        if f.name in _DATETIME_COLUMNS:
            value = _from_db(value)
        kwargs[f.name] = value
    return cls(**kwargs)


class SQLiteStore(BaseStore):
    """Stores repositories, pull requests and their derived data in a local SQLite file.

    The database path defaults to `.prsignal.db` in the current working
    directory. Configure via .prsignal.yml: `store_path: /path/to/prsignal.db`.
    Pass ":memory:" for a throwaway database.
    """

    def __init__(self, db_path: str = ".prsignal.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Accounts and repositories                                           #
    # ------------------------------------------------------------------ #

    def add_provider_account(self, account: ProviderAccount) -> ProviderAccount:
        params = _params(account)
        with self._conn:
            cursor = self._conn.execute(_insert_sql("provider_accounts", params), params)
        account.id = cursor.lastrowid
        return account

    def get_provider_account(self, account_id: int) -> ProviderAccount | None:
        row = self._conn.execute("SELECT * FROM provider_accounts WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            return None
        account = _row_to(ProviderAccount, row)
        account.access_token_encrypted = bytes(account.access_token_encrypted)
        return account

    def add_repository(self, repository: Repository) -> Repository:
        if repository.poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive, got {repository.poll_interval_seconds}")
        params = _params(repository)
        try:
            with self._conn:
                cursor = self._conn.execute(_insert_sql("repositories", params), params)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Repository {repository.provider}:{repository.full_name} is already watched") from e
        repository.id = cursor.lastrowid
        return repository

    def get_repository(self, repository_id: int) -> Repository | None:
        row = self._conn.execute("SELECT * FROM repositories WHERE id = ?", (repository_id,)).fetchone()
        return _row_to(Repository, row) if row else None

    def find_repository(self, provider: str, owner: str, name: str) -> Repository | None:
        row = self._conn.execute(
            "SELECT * FROM repositories WHERE provider = ? AND owner = ? AND name = ?",
            (provider, owner, name),
        ).fetchone()
        return _row_to(Repository, row) if row else None

    def list_repositories(self, limit: int | None = None) -> list[Repository]:
        # NULLs first: a never-polled repository is the stalest possible.
        sql = "SELECT * FROM repositories ORDER BY last_polled_at IS NOT NULL, last_polled_at, id"
        if limit is not None:
            rows = self._conn.execute(sql + " LIMIT ?", (limit,)).fetchall()
        else:
            rows = self._conn.execute(sql).fetchall()
        return [_row_to(Repository, r) for r in rows]

    def update_last_polled_at(self, repository_id: int, polled_at: datetime) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE repositories SET last_polled_at = ? WHERE id = ?",
                (_to_db(polled_at), repository_id),
            )

    # ------------------------------------------------------------------ #
    # Pull requests, checks, reviews                                      #
    # ------------------------------------------------------------------ #

    def upsert_pull_request(self, pull_request: PullRequest) -> PullRequest:
        params = _params(pull_request)
        updates = ", ".join(
            f"{c} = excluded.{c}" for c in params if c not in ("repository_id", "number", "created_at")
        )
        with self._conn:
            self._conn.execute(
                _insert_sql("pull_requests", params) + f" ON CONFLICT (repository_id, number) DO UPDATE SET {updates}",
                params,
            )
        row = self._conn.execute(
            "SELECT * FROM pull_requests WHERE repository_id = ? AND number = ?",
            (pull_request.repository_id, pull_request.number),
        ).fetchone()
        return self._row_to_pull_request(row)

    def get_pull_request(self, pull_request_id: int) -> PullRequest | None:
        row = self._conn.execute("SELECT * FROM pull_requests WHERE id = ?", (pull_request_id,)).fetchone()
        return self._row_to_pull_request(row) if row else None

    def list_pull_requests(self, repository_id: int, state: str | None = None) -> list[PullRequest]:
        if state is not None:
            rows = self._conn.execute(
                "SELECT * FROM pull_requests WHERE repository_id = ? AND state = ? ORDER BY number",
                (repository_id, state),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM pull_requests WHERE repository_id = ? ORDER BY number",
                (repository_id,),
            ).fetchall()
        return [self._row_to_pull_request(r) for r in rows]

    def mark_closed(self, pull_request_id: int, closed_at: datetime) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE pull_requests SET state = 'closed', closed_at = ? WHERE id = ?",
                (_to_db(closed_at), pull_request_id),
            )

    def replace_ci_checks(self, pull_request_id: int, checks: list[CICheck]) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM ci_checks WHERE pull_request_id = ?", (pull_request_id,))
            for check in checks:
                params = _params(check)
                params["pull_request_id"] = pull_request_id
                self._conn.execute(_insert_sql("ci_checks", params), params)

    def list_ci_checks(self, pull_request_id: int) -> list[CICheck]:
        rows = self._conn.execute(
            "SELECT * FROM ci_checks WHERE pull_request_id = ? ORDER BY id",
            (pull_request_id,),
        ).fetchall()
        return [_row_to(CICheck, r) for r in rows]

    def replace_reviews(self, pull_request_id: int, reviews: list[Review]) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM reviews WHERE pull_request_id = ?", (pull_request_id,))
            for review in reviews:
                params = _params(review)
                params["pull_request_id"] = pull_request_id
                self._conn.execute(_insert_sql("reviews", params), params)

    def list_reviews(self, pull_request_id: int) -> list[Review]:
        rows = self._conn.execute(
            "SELECT * FROM reviews WHERE pull_request_id = ? ORDER BY submitted_at, id",
            (pull_request_id,),
        ).fetchall()
        return [_row_to(Review, r) for r in rows]

    def count_stale_pull_requests(self, repository_id: int, created_before: datetime) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM pull_requests WHERE repository_id = ? AND state = 'open' AND created_at < ?",
            (repository_id, _to_db(created_before)),
        ).fetchone()
        return row[0]

    def delete_closed_pull_requests(self, closed_before: datetime) -> int:
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM pull_requests WHERE state != 'open' AND closed_at IS NOT NULL AND closed_at < ?",
                (_to_db(closed_before),),
            )
        return cursor.rowcount

    # ------------------------------------------------------------------ #
    # Metrics and health scores                                           #
    # ------------------------------------------------------------------ #

    def list_merged_without_metrics(self) -> list[PullRequest]:
        rows = self._conn.execute(
            """
            SELECT pr.* FROM pull_requests pr
            LEFT JOIN pr_metrics m ON m.pull_request_id = pr.id
            WHERE pr.state = 'merged' AND pr.merged_at IS NOT NULL AND m.id IS NULL
            ORDER BY pr.merged_at
            """
        ).fetchall()
        return [self._row_to_pull_request(r) for r in rows]

    def insert_pr_metrics(self, metrics: PrMetrics) -> PrMetrics:
        params = _params(metrics)
        try:
            with self._conn:
                cursor = self._conn.execute(_insert_sql("pr_metrics", params), params)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Metrics already recorded for pull request {metrics.pull_request_id}") from e
        metrics.id = cursor.lastrowid
        return metrics

    def list_pr_metrics(self, repository_id: int, merged_since: datetime) -> list[PrMetrics]:
        rows = self._conn.execute(
            "SELECT * FROM pr_metrics WHERE repository_id = ? AND merged_at >= ? ORDER BY merged_at",
            (repository_id, _to_db(merged_since)),
        ).fetchall()
        metrics = []
        for row in rows:
            m = _row_to(PrMetrics, row)
            m.is_bot = bool(m.is_bot)
            metrics.append(m)
        return metrics

    def insert_health_score(self, score: HealthScore) -> HealthScore:
        params = _params(score)
        with self._conn:
            cursor = self._conn.execute(_insert_sql("health_scores", params), params)
        score.id = cursor.lastrowid
        return score

    def list_health_scores(self, repository_id: int, limit: int | None = None) -> list[HealthScore]:
        sql = "SELECT * FROM health_scores WHERE repository_id = ? ORDER BY calculated_at DESC, id DESC"
        if limit is not None:
            rows = self._conn.execute(sql + " LIMIT ?", (repository_id, limit)).fetchall()
        else:
            rows = self._conn.execute(sql, (repository_id,)).fetchall()
        return [_row_to(HealthScore, r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_pull_request(row: sqlite3.Row) -> PullRequest:
        pr = _row_to(PullRequest, row)
        for column in _PR_BOOL_COLUMNS:
            setattr(pr, column, bool(getattr(pr, column)))
        if pr.is_mergeable is not None:
            pr.is_mergeable = bool(pr.is_mergeable)
        return pr
