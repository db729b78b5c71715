"""RethinkConnectionManager — asyncio driver connection lifecycle."""

from __future__ import annotations

from typing import Any

from rethinkdb import RethinkDB
from rethinkdb.errors import ReqlDriverError

from .exceptions import RethinkConnectionError

# Shared ReQL entry point; terms built from it run on any connection.
r = RethinkDB()


class RethinkConnectionManager:
    """Wrap a RethinkDB asyncio connection with lifecycle helpers."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 28015,
        *,
        db: str = "polystore",
        user: str = "admin",
        password: str = "",
        timeout: int = 20,
    ) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._user = user
        self._password = password
        self._timeout = timeout
        self._conn: Any = None

    @property
    def db(self) -> str:
        return self._db

    async def connect(self) -> Any:
        """Open and cache the connection. Idempotent."""
        if self._conn is not None:
            return self._conn
        r.set_loop_type("asyncio")
        try:
            self._conn = await r.connect(
                host=self._host,
                port=self._port,
                db=self._db,
                user=self._user,
                password=self._password,
                timeout=self._timeout,
            )
        except (ReqlDriverError, OSError) as e:
            raise RethinkConnectionError(str(e)) from e
        return self._conn

    @property
    def connection(self) -> Any:
        """Return the open connection; raises if not connected."""
        if self._conn is None:
            raise RethinkConnectionError("Not connected; call connect() first")
        return self._conn

    async def close(self) -> None:
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()
