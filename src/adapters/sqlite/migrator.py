import logging
import os
import sqlite3

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = os.path.join(os.path.dirname(__file__), "migrations")

# Everything after this marker is the rollback script and is never applied
DOWN_MARKER = "-- Down"


class SQLiteMigrator:
    """Applies the numbered .sql scripts in migrations_dir, oldest first."""

    def __init__(
        self,
        db_path: str,
        migrations_dir: str = DEFAULT_MIGRATIONS_DIR,
        timeout: float = 5.0,
    ):
        self.db_path = db_path
        self.migrations_dir = migrations_dir
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        return sqlite3.connect(self.db_path, timeout=self.timeout)

    def _migration_files(self) -> list[str]:
        return sorted(f for f in os.listdir(self.migrations_dir) if f.endswith(".sql"))

    def _applied(self, conn: sqlite3.Connection) -> set[str]:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT UNIQUE NOT NULL,
                applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
        """)
        return {row[0] for row in conn.execute("SELECT filename FROM _migrations")}

    def pending_migrations(self) -> list[str]:
        conn = self._connect()
        try:
            applied = self._applied(conn)
        finally:
            conn.close()
        return [f for f in self._migration_files() if f not in applied]

    def run_migrations(self) -> list[str]:
        """Apply all pending migrations. Returns the filenames applied."""
        conn = self._connect()
        try:
            applied = self._applied(conn)
            pending = [f for f in self._migration_files() if f not in applied]
            for filename in pending:
                logger.info("Applying migration %s to %s", filename, self.db_path)
                self._apply(conn, filename)
            return pending
        finally:
            conn.close()

    def _apply(self, conn: sqlite3.Connection, filename: str) -> None:
        path = os.path.join(self.migrations_dir, filename)
        with open(path, encoding="utf-8") as f:
            script = f.read().split(DOWN_MARKER, 1)[0]

        # Schema change and its _migrations row commit together or not at all
        recorded = filename.replace("'", "''")
        wrapped = (
            f"BEGIN;\n{script}\n;\n"
            f"INSERT INTO _migrations (filename) VALUES ('{recorded}');\n"
            "COMMIT;"
        )

        try:
            conn.executescript(wrapped)
        except sqlite3.Error as e:
            conn.rollback()
            raise RuntimeError(f"Migration {filename} failed: {e}") from e
