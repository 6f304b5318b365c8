import logging
import os
import sqlite3
from typing import Any

# Fix bug with pymysql
if "USER" not in os.environ:
    os.environ["USER"] = "tools.usercontribs-backend"
import pymysql
from pydantic import BaseModel, ConfigDict
from pymysql.cursors import DictCursor

import config
from models.errors import BackendUnavailable
from models.query import MYSQL, ComposedQuery, Dialect, in_list
from models.revision import ContributionRow, decode

logger = logging.getLogger(__name__)

DATABASE_ERRORS = (pymysql.MySQLError, sqlite3.Error)


class Read(BaseModel):
    """
    Access to the wiki replicas.

    db is the "contributions" replica, which may carry extra user based
    indexes or be partitioned by user. It only serves the listing query.
    secondary_db is any regular replica and serves the lookups that are not
    by user, so they do not distort the index choice of the main query.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    db: Any = None
    secondary_db: Any = None
    dialect: Dialect = MYSQL

    @staticmethod
    def open_connection(host: str):
        return pymysql.connect(
            host=host,
            user=os.environ.get("TOOL_REPLICA_USER"),
            password=os.environ.get("TOOL_REPLICA_PASSWORD"),
            database=config.DB_NAME,
            charset="utf8mb4",
            cursorclass=DictCursor,
        )

    def connect(self):
        # Opens the DB connections on first use
        try:
            if self.db is None:
                self.db = self.open_connection(config.CONTRIBUTIONS_DB_HOST)
            if self.secondary_db is None:
                if config.DB_HOST == config.CONTRIBUTIONS_DB_HOST:
                    self.secondary_db = self.db
                else:
                    self.secondary_db = self.open_connection(config.DB_HOST)
        except DATABASE_ERRORS as e:
            logger.error(f"Could not connect to the replicas: {e}")
            raise BackendUnavailable() from e
        return self.db

    def execute(self, db, sql: str, params: list) -> list[dict[str, Any]]:
        if self.dialect.placeholder != "%s":
            sql = sql.replace("%s", self.dialect.placeholder)
        cursor = db.cursor()
        try:
            cursor.execute(sql, params)
            columns = [d[0] for d in cursor.description]
            return [
                row if isinstance(row, dict) else dict(zip(columns, row))
                for row in cursor.fetchall()
            ]
        except DATABASE_ERRORS as e:
            logger.error(f"Query failed: {e}")
            raise BackendUnavailable() from e
        finally:
            cursor.close()

    def fetch_contributions(self, query: ComposedQuery) -> list[ContributionRow]:
        self.connect()
        sql, params = query.to_sql(self.dialect)
        rows = self.execute(self.db, sql, params)
        logger.debug(f"Fetched {len(rows)} contribution rows")
        return [ContributionRow(**row) for row in rows]

    def fetch_user_ids(self, names: list[str]) -> list[int]:
        """Ids of the accounts among names. Names without an account are left out."""
        self.connect()
        condition, params = in_list("user_name", names)
        rows = self.execute(self.secondary_db, f"SELECT user_id FROM user WHERE {condition}", params)
        return [int(row["user_id"]) for row in rows]

    def fetch_parent_lengths(self, rev_ids: list[int]) -> dict[int, int]:
        """Map parent revision id to its length, for the size differences of a page of results"""
        rev_ids = sorted(set(rev_ids))
        if not rev_ids:
            return {}
        self.connect()
        condition, params = in_list("rev_id", rev_ids)
        rows = self.execute(
            self.secondary_db,
            f"SELECT rev_id, rev_len FROM {config.REVISION_TABLE} WHERE {condition}",
            params,
        )
        return {int(row["rev_id"]): int(decode(row["rev_len"]) or 0) for row in rows}

    def close(self):
        if self.secondary_db is not None and self.secondary_db is not self.db:
            self.secondary_db.close()
        if self.db is not None:
            self.db.close()
        self.db = None
        self.secondary_db = None
