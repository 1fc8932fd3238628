"""Article stores keyed by URL — local SQLite and Notion.

Both implement upsert: a second write for the same URL updates the publish
date, generated date, sentiment and summary in place. Read/write failures
raise :class:`PersistenceError`; nothing is swallowed, because a failed write
must not look like a success.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from newsdigest.core.config import StoreSettings
from newsdigest.core.errors import PersistenceError
from newsdigest.core.logger import logger
from newsdigest.models.datatypes import PersistedRecord, Sentiment
from newsdigest.providers.base import ArticleStore


def format_display_date(value: datetime, offset_hours: int = 8) -> str:
    """Render a timestamp in the fixed display offset, e.g. ``2026-10-17T14:00:00+08:00``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone(timedelta(hours=offset_hours))).isoformat(timespec="seconds")


# ── SQLite ────────────────────────────────────────────────────────────────────

class SQLiteArticleStore(ArticleStore):
    """SQLite-backed document store with ``url`` as primary key."""

    def __init__(self, db_path: str = "output/articles.db") -> None:
        """
        Initialize the SQLite store.

        Args:
            db_path (str): Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, check_same_thread=False)

    def _init_db(self) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS articles (
                    url TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    company TEXT NOT NULL,
                    title TEXT NOT NULL,
                    publish_date TEXT NOT NULL,
                    generated_date TEXT NOT NULL,
                    sentiment TEXT NOT NULL,
                    summary TEXT NOT NULL
                )
                """
            )

    def exists(self, url: str) -> bool:
        try:
            with self._get_connection() as conn:
                row = conn.execute("SELECT 1 FROM articles WHERE url = ?", (url,)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"SQLiteArticleStore: exists query failed for {url}: {e}")
            raise PersistenceError(f"exists query failed for {url}: {e}") from e
        return row is not None

    def upsert(self, record: PersistedRecord) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO articles
                        (url, symbol, company, title, publish_date, generated_date, sentiment, summary)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(url) DO UPDATE SET
                        publish_date = excluded.publish_date,
                        generated_date = excluded.generated_date,
                        sentiment = excluded.sentiment,
                        summary = excluded.summary
                    """,
                    (
                        record.url,
                        record.symbol,
                        record.company,
                        record.title,
                        record.publish_date.isoformat(),
                        record.generated_date.isoformat(),
                        record.sentiment.value,
                        record.summary,
                    ),
                )
        except sqlite3.Error as e:
            logger.error(f"SQLiteArticleStore: upsert failed for {record.url}: {e}")
            raise PersistenceError(f"upsert failed for {record.url}: {e}") from e
        logger.info(f"SQLiteArticleStore: upserted {record.url}")

    def get(self, url: str) -> Optional[PersistedRecord]:
        """Return the stored record for ``url``, or None."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT url, symbol, company, title, publish_date, generated_date, "
                    "sentiment, summary FROM articles WHERE url = ?",
                    (url,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"get failed for {url}: {e}") from e
        if row is None:
            return None
        return PersistedRecord(
            url=row[0],
            symbol=row[1],
            company=row[2],
            title=row[3],
            publish_date=datetime.fromisoformat(row[4]),
            generated_date=datetime.fromisoformat(row[5]),
            sentiment=Sentiment(row[6]),
            summary=row[7],
        )

    def count(self) -> int:
        try:
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM articles").fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"count failed: {e}") from e


# ── Notion ────────────────────────────────────────────────────────────────────

_NOTION_API = "https://api.notion.com/v1"
_NOTION_VERSION = "2022-06-28"
_RICH_TEXT_LIMIT = 2000

# Database property names
PROP_SYMBOL = "Symbol"
PROP_URL = "ArticleURL"
PROP_ARTICLE_DATE = "ArticleDate"
PROP_GENERATED_DATE = "GeneratedDate"
PROP_SENTIMENT = "Sentiment"
PROP_SUMMARY = "Summary"


class NotionArticleStore(ArticleStore):
    """Notion database as the article store, over the public REST API.

    Args:
        api_key: Notion integration secret.
        database_id: Target database ID.
        display_utc_offset_hours: Fixed offset dates are rendered in.
        session: Optional pre-configured ``requests.Session``.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str,
        database_id: str,
        display_utc_offset_hours: int = 8,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ) -> None:
        self.database_id = database_id
        self.offset_hours = display_utc_offset_hours
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": _NOTION_VERSION,
            "Content-Type": "application/json",
        })

    def exists(self, url: str) -> bool:
        return self.find_page_id(url) is not None

    def find_page_id(self, url: str) -> Optional[str]:
        """Return the ID of the page whose ArticleURL equals ``url``."""
        data = self._request(
            "POST",
            f"/databases/{self.database_id}/query",
            {"filter": {"property": PROP_URL, "url": {"equals": url}}, "page_size": 1},
        )
        results = data.get("results") or []
        return results[0]["id"] if results else None

    def upsert(self, record: PersistedRecord) -> None:
        page_id = self.find_page_id(record.url)
        if page_id:
            self._request("PATCH", f"/pages/{page_id}", {"properties": self._update_properties(record)})
            logger.info(f"NotionArticleStore: updated page {page_id} for {record.url}")
        else:
            properties = {
                PROP_SYMBOL: {"title": [{"text": {"content": record.symbol}}]},
                PROP_URL: {"url": record.url},
                **self._update_properties(record),
            }
            self._request("POST", "/pages", {"parent": {"database_id": self.database_id}, "properties": properties})
            logger.info(f"NotionArticleStore: created page for {record.url}")

    def _update_properties(self, record: PersistedRecord) -> Dict[str, Any]:
        return {
            PROP_ARTICLE_DATE: {"date": {"start": format_display_date(record.publish_date, self.offset_hours)}},
            PROP_GENERATED_DATE: {"date": {"start": format_display_date(record.generated_date, self.offset_hours)}},
            PROP_SENTIMENT: {"select": {"name": record.sentiment.label}},
            PROP_SUMMARY: {"rich_text": rich_text_chunks(record.summary)},
        }

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.request(method, f"{_NOTION_API}{path}", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"NotionArticleStore: {method} {path} failed: {exc}")
            raise PersistenceError(f"Notion {method} {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            logger.error(f"NotionArticleStore: {method} {path} HTTP {resp.status_code}: {resp.text[:200]}")
            raise PersistenceError(f"Notion {method} {path} HTTP {resp.status_code}: {resp.text[:200]}")
        return resp.json()


def rich_text_chunks(text: str, limit: int = _RICH_TEXT_LIMIT) -> List[Dict[str, Any]]:
    """Split text into Notion rich-text objects of at most ``limit`` characters each."""
    if not text:
        return [{"text": {"content": ""}}]
    return [{"text": {"content": text[i:i + limit]}} for i in range(0, len(text), limit)]


def build_store(settings: StoreSettings) -> ArticleStore:
    """Instantiate the configured store backend."""
    if settings.backend == "notion":
        return NotionArticleStore(
            api_key=settings.notion_api_key or "",
            database_id=settings.notion_database_id or "",
            display_utc_offset_hours=settings.display_utc_offset_hours,
        )
    if settings.backend == "sqlite":
        return SQLiteArticleStore(settings.sqlite_path)
    raise ValueError(f"Unknown store backend '{settings.backend}'")
