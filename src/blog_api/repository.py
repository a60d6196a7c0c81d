"""
SQL for users, pages and contacts.

Every statement is parameterized; ids are passed as parameters even after
the path rules have checked them.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

import psycopg2
from psycopg2 import errors as pg_errors

from blog_api.db import Database
from blog_api.errors import Conflict, StorageUnavailable

logger = logging.getLogger(__name__)

_PAGE_SUMMARY_COLUMNS = "pageId, path, title, description, publishedDate, active"

_PAGE_DETAIL_SELECT = """
    SELECT
        p.pageId, p.path, p.title, p.description, p.content,
        c.categoryId, c.name AS categoryName,
        p.publishedDate, p.active
    FROM pages p
    INNER JOIN categories c ON p.categoryId = c.categoryId
    WHERE p.pageId = %s
"""


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Map driver errors to StorageUnavailable, logging the real cause."""
    try:
        yield
    except psycopg2.Error as exc:
        logger.error("Database error while %s: %s", action, exc)
        raise StorageUnavailable() from exc


def _camel_case_row(row: Dict[str, Any]) -> Dict[str, Any]:
    # Unquoted identifiers come back lower-cased from PostgreSQL.
    keys = {
        "pageid": "pageId",
        "categoryid": "categoryId",
        "categoryname": "categoryName",
        "publisheddate": "publishedDate",
        "firstname": "firstName",
        "lastname": "lastName",
    }
    return {keys.get(k.lower(), k): v for k, v in row.items()}


class Repository:
    """Data access for the API, backed by a pooled ``Database``."""

    def __init__(self, db: Database):
        self.db = db

    # ---- users ----

    # PUBLIC_INTERFACE
    def get_password_hash(self, username: str) -> Optional[str]:
        """Return the stored password hash for ``username``, or None."""
        with _storage_errors("reading user"):
            row = self.db.fetch_one("SELECT password FROM users WHERE username = %s", [username])
        return row["password"] if row else None

    # PUBLIC_INTERFACE
    def create_user(self, username: str, password_hash: str) -> int:
        """Insert a user; a duplicate username raises Conflict."""
        with _storage_errors("creating user"):
            try:
                row = self.db.execute_returning_one(
                    "INSERT INTO users (username, password) VALUES (%s, %s) RETURNING id",
                    [username, password_hash],
                )
            except pg_errors.UniqueViolation as exc:
                raise Conflict("Username already exists") from exc
        return row["id"]

    # ---- pages ----

    # PUBLIC_INTERFACE
    def list_pages(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        """Page summaries, newest first."""
        where = "" if include_inactive else "WHERE active = 'yes'"
        with _storage_errors("listing pages"):
            rows = self.db.fetch_all(
                f"SELECT {_PAGE_SUMMARY_COLUMNS} FROM pages {where} ORDER BY publishedDate DESC"
            )
        return [_camel_case_row(r) for r in rows]

    # PUBLIC_INTERFACE
    def get_page(self, page_id: int, include_inactive: bool = False) -> Optional[Dict[str, Any]]:
        """A single page joined with its category, or None."""
        query = _PAGE_DETAIL_SELECT if include_inactive else _PAGE_DETAIL_SELECT + " AND p.active = 'yes'"
        with _storage_errors("reading page"):
            row = self.db.fetch_one(query, [page_id])
        return _camel_case_row(row) if row else None

    # PUBLIC_INTERFACE
    def create_page(
        self,
        path: str,
        title: str,
        content: str,
        description: str,
        category_id: int,
        published_date: date,
        active: str,
    ) -> int:
        with _storage_errors("creating page"):
            row = self.db.execute_returning_one(
                """
                INSERT INTO pages (path, title, content, description, categoryId, publishedDate, active)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING pageId
                """,
                [path, title, content, description, category_id, published_date.isoformat(), active],
            )
        return _camel_case_row(row)["pageId"]

    # PUBLIC_INTERFACE
    def update_page(
        self,
        page_id: int,
        path: str,
        title: str,
        content: str,
        description: str,
        category_id: int,
        published_date: date,
        active: str,
    ) -> int:
        """Returns the number of rows updated (0 when the page does not exist)."""
        with _storage_errors("updating page"):
            return self.db.execute(
                """
                UPDATE pages
                SET path = %s, title = %s, content = %s, description = %s,
                    categoryId = %s, publishedDate = %s, active = %s
                WHERE pageId = %s
                """,
                [path, title, content, description, category_id, published_date.isoformat(), active, page_id],
            )

    # PUBLIC_INTERFACE
    def delete_page(self, page_id: int) -> int:
        with _storage_errors("deleting page"):
            return self.db.execute("DELETE FROM pages WHERE pageId = %s", [page_id])

    # ---- contacts ----

    # PUBLIC_INTERFACE
    def list_contacts(self) -> List[Dict[str, Any]]:
        with _storage_errors("listing contacts"):
            rows = self.db.fetch_all("SELECT * FROM contacts ORDER BY created_at DESC")
        return [_camel_case_row(r) for r in rows]

    # PUBLIC_INTERFACE
    def create_contact(self, first_name: str, last_name: str, email: str, comments: str) -> None:
        with _storage_errors("saving contact"):
            self.db.execute(
                "INSERT INTO contacts (firstName, lastName, email, comments) VALUES (%s, %s, %s, %s)",
                [first_name, last_name, email, comments],
            )

    # PUBLIC_INTERFACE
    def ping(self) -> bool:
        return self.db.ping()
