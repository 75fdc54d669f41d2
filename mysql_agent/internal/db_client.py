from __future__ import annotations

import contextlib
import logging
import threading
import time
from typing import Callable

import MySQLdb
from MySQLdb.connections import Connection
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_delay,
    wait_fixed,
)

from mysql_agent import constants

logger = logging.getLogger(__name__)


class DatabaseClient:
    """
    A single lazily opened connection to MySQL, either over TCP or over the Unix socket.
    """
    def __init__(self, user:str, password:str, host:str|None=None, port:int|str=3306, unix_socket:str|None=None, connect_timeout:float|None=None, read_timeout:float|None=None, autocommit:bool=True):
        self._connection_instance: Connection | None = None
        if not host and not unix_socket:
            raise ValueError("either host or unix_socket is required")
        self.host = host
        self.port:int = int(port) if isinstance(port, str) else port
        self.unix_socket = unix_socket
        self.user = user
        self.password = password or ""
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.autocommit = autocommit
        self.created_at = time.monotonic()

    @property
    def address(self) -> str:
        return self.unix_socket if self.unix_socket else f"{self.host}:{self.port}"

    @property
    def _connection(self) -> Connection:
        if not self._connection_instance:
            kwargs = {
                "user": self.user,
                "passwd": self.password,
                "autocommit": self.autocommit,
            }
            if self.unix_socket:
                kwargs["unix_socket"] = self.unix_socket
            else:
                # In case of localhost, the client try to connect to the local socket
                kwargs["host"] = "127.0.0.1" if self.host == "localhost" else self.host
                kwargs["port"] = self.port
            # MySQLdb only accepts whole seconds
            if self.connect_timeout:
                kwargs["connect_timeout"] = max(1, int(self.connect_timeout))
            if self.read_timeout:
                kwargs["read_timeout"] = max(1, int(self.read_timeout))
            self._connection_instance = Connection(**kwargs)
        return self._connection_instance

    def connect(self) -> "DatabaseClient":
        _ = self._connection
        return self

    @property
    def is_connected(self) -> bool:
        return self._connection_instance is not None

    def ping(self):
        """Raises MySQLdb.OperationalError when the server went away (e.g. restarted after CLONE)."""
        try:
            self._connection.ping()
        except Exception as e:
            self.close()
            raise e

    def close(self):
        if self._connection_instance:
            with contextlib.suppress(Exception):
                self._connection_instance.close()
            self._connection_instance = None

    def __enter__(self):
        return self

    def __del__(self):
        self.close()

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def query(self, query: str, params: tuple|None = None) -> list[dict]:
        """
        Execute a single query and return the rows as dictionaries (column_name: value).
        Parameters are interpolated client side, so a literal `%` must be written as `%%`
        whenever params are passed.
        """
        try:
            with self._connection.cursor() as cursor:
                cursor.execute(query, params)
                columns = [desc[0] for desc in cursor.description] if cursor.description else []
                rows = cursor.fetchall() if columns else []
                return [dict(zip(columns, row)) for row in rows]
        except Exception as e:
            self.close()
            raise e

    def query_one(self, query: str, params: tuple|None = None) -> dict|None:
        rows = self.query(query, params)
        return rows[0] if rows else None

    def execute(self, query: str, params: tuple|None = None):
        try:
            with self._connection.cursor() as cursor:
                cursor.execute(query, params)
        except Exception as e:
            self.close()
            raise e


class DatabasePool:
    """
    Process wide pool of connections to the local instance.
    At most one idle connection is kept. Idle connections that exceed
    the idle time or the max lifetime are discarded instead of reused.
    """
    def __init__(self, factory:Callable[[], DatabaseClient], max_idle_time:float, max_lifetime:float, clock:Callable[[], float]=time.monotonic):
        self.factory = factory
        self.max_idle_time = max_idle_time
        self.max_lifetime = max_lifetime
        self._clock = clock
        self._lock = threading.Lock()
        self._idle: DatabaseClient | None = None
        self._idle_since:float = 0.0

    def _take_idle(self) -> DatabaseClient | None:
        with self._lock:
            client, self._idle = self._idle, None
        if client is None:
            return None
        now = self._clock()
        if self.max_idle_time and now - self._idle_since > self.max_idle_time:
            client.close()
            return None
        if self.max_lifetime and now - client.created_at > self.max_lifetime:
            client.close()
            return None
        try:
            client.ping()
        except MySQLdb.MySQLError as e:
            logger.info(f"discarding idle connection to {client.address}: {e}")
            client.close()
            return None
        return client

    def _put_idle(self, client:DatabaseClient):
        if not client.is_connected:
            return
        with self._lock:
            if self._idle is None:
                self._idle = client
                self._idle_since = self._clock()
                return
        client.close()

    @contextlib.contextmanager
    def client(self):
        client = self._take_idle() or self.factory()
        try:
            yield client
        except Exception:
            client.close()
            raise
        else:
            self._put_idle(client)

    def close(self):
        with self._lock:
            client, self._idle = self._idle, None
        if client:
            client.close()


def error_code(e:BaseException) -> int|None:
    if isinstance(e, MySQLdb.MySQLError) and e.args and isinstance(e.args[0], int):
        return e.args[0]
    return None


def is_access_denied(e:BaseException) -> bool:
    return error_code(e) == constants.ER_ACCESS_DENIED_ERROR


def is_restart_failed(e:BaseException) -> bool:
    return error_code(e) == constants.ER_CLONE_RESTART_FAILED


class ConnectCancelled(Exception):
    pass


def connect_with_retry(factory:Callable[[], DatabaseClient], timeout:float, interval:float=1.0, cancelled:Callable[[], bool]|None=None) -> DatabaseClient:
    """
    Opens a connection built by `factory`, retrying every `interval` seconds until `timeout`.
    Access denied is never retried. Raises the last connect error once the timeout elapses,
    or ConnectCancelled if `cancelled` returns True between attempts.
    """
    def attempt():
        if cancelled and cancelled():
            raise ConnectCancelled("connect cancelled")
        client = factory()
        try:
            return client.connect()
        except Exception as e:
            client.close()
            logger.debug(f"failed to connect to {client.address}: {e}")
            raise

    def should_retry(e:BaseException) -> bool:
        return isinstance(e, MySQLdb.MySQLError) and not is_access_denied(e)

    retrying = Retrying(
        retry=retry_if_exception(should_retry),
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        reraise=True,
    )
    return retrying(attempt)
