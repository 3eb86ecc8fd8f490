"""Re-export the singleton engine from imgsearch.db and register WAL pragmas."""
from sqlalchemy import event
from imgsearch.db import engine          # singleton; created once at imgsearch.db import
import imgsearch.models  # noqa: F401   # registers all ORM table mappers


def _set_wal_mode(dbapi_conn, _):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL")
    cur.execute("PRAGMA synchronous=NORMAL")
    cur.close()


if engine.dialect.name == "sqlite":
    event.listen(engine, "connect", _set_wal_mode)

__all__ = ["engine"]
