import re
import time

import grpc
import MySQLdb

from mysql_agent import constants
from mysql_agent.internal.metrics import AgentMetrics

PASSWORDS = {user: f"{user}-password" for user in constants.PASSWORD_ENVS}


class FakeDB:
    """
    Stands in for DatabaseClient.
    Statements are recorded in order; responses are matched by regex against the SQL,
    the most recently registered match wins. A response is a list of rows, an exception
    to raise, or a callable taking (sql, params).
    """
    def __init__(self):
        self.statements: list[tuple[str, tuple|None]] = []
        self._responses: list[tuple[re.Pattern, object]] = []
        self.closed = False
        self.created_at = time.monotonic()
        self.address = "fake:3306"

    def on(self, pattern:str, result):
        self._responses.append((re.compile(pattern, re.IGNORECASE), result))
        return self

    @property
    def sql(self) -> list[str]:
        return [sql for sql, _ in self.statements]

    def _respond(self, sql, params):
        self.statements.append((sql, params))
        for pattern, result in reversed(self._responses):
            if pattern.search(sql):
                if callable(result):
                    result = result(sql, params)
                if isinstance(result, BaseException):
                    raise result
                return result
        return []

    def query(self, query, params=None):
        return list(self._respond(query, params) or [])

    def query_one(self, query, params=None):
        rows = self.query(query, params)
        return rows[0] if rows else None

    def execute(self, query, params=None):
        self._respond(query, params)

    def connect(self):
        self.closed = False
        return self

    def ping(self):
        if self.closed:
            raise MySQLdb.OperationalError(2006, "MySQL server has gone away")

    @property
    def is_connected(self):
        return not self.closed

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class FakeContext(grpc.ServicerContext):
    """Records the status set by a servicer instead of sending it to a peer."""
    def __init__(self, active:bool=True):
        self._code = None
        self._details = None
        self.active = active

    def abort(self, code, details):
        self._code = code
        self._details = details
        raise grpc.RpcError(details)

    def abort_with_status(self, status):
        raise grpc.RpcError(status.details)

    def set_code(self, code): self._code = code
    def set_details(self, details): self._details = details
    def code(self): return self._code
    def details(self): return self._details
    def is_active(self): return self.active
    def time_remaining(self): return None
    def add_callback(self, callback): return True
    def invocation_metadata(self): return []
    def peer(self): return "fake-peer"
    def peer_identities(self): return []
    def peer_identity_key(self): return ""
    def auth_context(self): return {}
    def set_compression(self, compression_algorithm): pass
    def cancel(self): pass
    def send_initial_metadata(self, initial_metadata): pass
    def set_trailing_metadata(self, trailing_metadata): pass
    def trailing_metadata(self): return []


def sample(metrics:AgentMetrics, name:str, labels:dict|None=None) -> float|None:
    return metrics.registry.get_sample_value(name, {"cluster_name": "test", **(labels or {})})
