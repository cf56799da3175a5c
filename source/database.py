import json
import logging
import os
import sqlite3
from typing import Optional

logger = logging.getLogger(__name__)


class ConfigStoreError(Exception):
    pass


class ConfigDatabase:
    """
    The gateway settings database. Every add-on keeps its config as a JSON
    document in the settings table, under the key `addons.config.<addon id>`.
    """

    def __init__(self, path: str, addon_id: str):
        self.path = path
        self.addon_id = addon_id
        self.conn: Optional[sqlite3.Connection] = None

    @property
    def key(self) -> str:
        return f"addons.config.{self.addon_id}"

    def open(self):
        if self.conn is not None:
            return
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.conn = sqlite3.connect(self.path)
            self.conn.execute(
                "CREATE TABLE IF NOT EXISTS settings (key TEXT PRIMARY KEY, value TEXT)"
            )
            self.conn.commit()
        except (OSError, sqlite3.Error) as exc:
            self.conn = None
            raise ConfigStoreError(f"Unable to open the database {self.path}") from exc

    def close(self):
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise ConfigStoreError("The database is not open")
        return self.conn

    def load_config(self) -> dict:
        """
        Returns:
            dict: The stored config, empty if none was saved yet.
        """
        conn = self._connection()
        try:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?", (self.key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise ConfigStoreError(f"Unable to read {self.key}") from exc

        if row is None or row[0] is None:
            return {}

        try:
            config = json.loads(row[0])
        except ValueError as exc:
            raise ConfigStoreError(f"The stored {self.key} is not valid JSON") from exc

        if not isinstance(config, dict):
            raise ConfigStoreError(f"The stored {self.key} is not a JSON object")
        return config

    def save_config(self, config: dict):
        conn = self._connection()
        try:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                    (self.key, json.dumps(config)),
                )
        except (sqlite3.Error, TypeError) as exc:
            raise ConfigStoreError(f"Unable to save {self.key}") from exc
        logger.debug(f"Saved {self.key}")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()
