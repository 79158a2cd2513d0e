# database.py
import sqlite3
from datetime import datetime


class Database:
    """
    Small SQLite store for client-side state that outlives one run,
    such as the last selected branch.
    """
    def __init__(self, db_name: str = "pos.db"):
        self.conn = sqlite3.connect(db_name)
        self.conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self):
        cur = self.conn.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT
        )
        """)
        self.conn.commit()

    def get_setting(self, key: str, default=None):
        """Fetch a stored value, or default when the key is missing."""
        cur = self.conn.cursor()
        cur.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cur.fetchone()
        return row['value'] if row else default

    def set_setting(self, key: str, value):
        """Insert or overwrite a value; None deletes the key."""
        if value is None:
            self.delete_setting(key)
            return
        cur = self.conn.cursor()
        ts = datetime.now().isoformat(timespec='seconds')
        cur.execute("""
        INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """, (key, str(value), ts))
        self.conn.commit()

    def delete_setting(self, key: str):
        cur = self.conn.cursor()
        cur.execute("DELETE FROM settings WHERE key = ?", (key,))
        self.conn.commit()
        return cur.rowcount > 0

    def close(self):
        self.conn.close()
