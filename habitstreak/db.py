import asyncio
import logging
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from fncli import cli

from . import config
from .core.errors import ConstraintViolation, NotInitializedError
from .lib.errors import echo

__all__ = ["Store", "close", "get_store", "init", "load_migrations", "run"]

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "_migrations"

Migration = tuple[str, str]


def connect(db_path: Path, check_same_thread: bool = True) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=check_same_thread)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_backup(db_path: Path) -> Path:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    mig_dir = config.BACKUP_DIR / "migrations"
    mig_dir.mkdir(parents=True, exist_ok=True)
    backup_path = mig_dir / f"habitstreak.{timestamp}.backup"
    src = sqlite3.connect(db_path, timeout=30)
    dst = sqlite3.connect(backup_path)
    try:
        src.backup(dst)
    except Exception:
        dst.close()
        src.close()
        if backup_path.exists():
            backup_path.unlink()
        raise
    else:
        dst.close()
        src.close()
    return backup_path


def _restore_backup(backup_path: Path, conn: sqlite3.Connection) -> None:
    src = sqlite3.connect(backup_path)
    try:
        src.backup(conn)
    finally:
        src.close()


def _table_count(conn: sqlite3.Connection, table: str) -> int:
    try:
        return conn.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]  # noqa: S608
    except sqlite3.OperationalError:
        return 0


def _check_data_loss(conn: sqlite3.Connection, before: dict[str, int]) -> None:
    for table, count in before.items():
        after = _table_count(conn, table)
        if after < count:
            raise ValueError(f"migration data loss: {table} had {count} rows, now {after}")


def load_migrations() -> list[Migration]:
    migrations_dir = Path(__file__).parent / "migrations"
    if not migrations_dir.exists():
        return []
    return [
        (sql_file.stem, sql_file.read_text()) for sql_file in sorted(migrations_dir.glob("*.sql"))
    ]


def _apply_migrations(conn: sqlite3.Connection, db_path: Path) -> None:
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} "
        "(id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL UNIQUE, applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
    )
    conn.commit()

    applied = {row[0] for row in conn.execute(f"SELECT name FROM {MIGRATIONS_TABLE}").fetchall()}  # noqa: S608
    pending = [(n, m) for n, m in load_migrations() if n not in applied]

    if not pending:
        return

    backup_path: Path | None = None
    has_data = bool(applied)

    for name, migration in pending:
        if has_data and backup_path is None:
            backup_path = _create_backup(db_path)

        tables = [
            row[0]
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name != ? AND name NOT LIKE 'sqlite_%'",
                (MIGRATIONS_TABLE,),
            ).fetchall()
        ]
        before = {t: _table_count(conn, t) for t in tables}

        try:
            conn.executescript(migration)
            _check_data_loss(conn, before)
            conn.execute(f"INSERT OR IGNORE INTO {MIGRATIONS_TABLE} (name) VALUES (?)", (name,))  # noqa: S608
            conn.commit()
            logger.info("applied migration %s", name)
        except Exception:
            conn.rollback()
            if backup_path:
                _restore_backup(backup_path, conn)
            raise

    if backup_path and backup_path.exists():
        backup_path.unlink()


def init(db_path: Path | None = None) -> None:
    db_path = db_path if db_path else config.DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    try:
        _apply_migrations(conn, db_path)
    finally:
        conn.close()


class Store:
    """Owned handle on the one shared connection.

    `open()` may be awaited any number of times from any number of tasks; the
    first caller starts setup and everyone else waits on the same future.
    Every `run()` body executes in a worker thread inside a single transaction.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._opening: asyncio.Future[sqlite3.Connection] | None = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _connect(self) -> sqlite3.Connection:
        init(self.db_path)
        conn = connect(self.db_path, check_same_thread=False)
        logger.debug("opened %s", self.db_path)
        return conn

    async def open(self) -> "Store":
        if self._conn is not None:
            return self
        if self._opening is None:
            self._opening = asyncio.ensure_future(asyncio.to_thread(self._connect))
        opening = self._opening
        try:
            conn = await asyncio.shield(opening)
        except Exception:
            if self._opening is opening:
                self._opening = None
            raise
        if self._conn is None:
            self._conn = conn
        return self

    def _transact(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._lock:
            conn = self._conn
            if conn is None:
                raise NotInitializedError("store is closed")
            try:
                result = fn(conn, *args)
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ConstraintViolation(str(e)) from e
            except Exception:
                conn.rollback()
                raise
            return result

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self._conn is None:
            raise NotInitializedError(f"store {self.db_path} used before open()")
        return await asyncio.to_thread(self._transact, fn, *args)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
            self._conn = None
            self._opening = None


_store: Store | None = None


async def get_store() -> Store:
    global _store
    if _store is None or _store.db_path != config.DB_PATH:
        if _store is not None:
            _store.close()
        _store = Store(config.DB_PATH)
    return await _store.open()


async def run(fn: Callable[..., Any], *args: Any) -> Any:
    store = await get_store()
    return await store.run(fn, *args)


def close() -> None:
    global _store
    if _store is not None:
        _store.close()
    _store = None


@cli("habitstreak db", name="migrate")
def db_migrate():
    """Run pending database migrations"""
    init()
    echo("migrations applied")
