import MySQLdb
import pytest

from mysql_agent.internal.db_client import (
    ConnectCancelled,
    DatabaseClient,
    DatabasePool,
    connect_with_retry,
    is_access_denied,
    is_restart_failed,
)


@pytest.fixture
def connection_cls(mocker):
    return mocker.patch("mysql_agent.internal.db_client.Connection")


def test_tcp_client_maps_localhost(connection_cls):
    client = DatabaseClient(host="localhost", port=33062, user="u", password="p", connect_timeout=3, read_timeout=30)
    client.connect()
    connection_cls.assert_called_once_with(
        user="u", passwd="p", autocommit=True,
        host="127.0.0.1", port=33062,
        connect_timeout=3, read_timeout=30,
    )


def test_socket_client_has_no_deadlines(connection_cls):
    client = DatabaseClient(unix_socket="/run/mysqld.sock", user="u", password="p")
    client.connect()
    connection_cls.assert_called_once_with(user="u", passwd="p", autocommit=True, unix_socket="/run/mysqld.sock")


def test_client_requires_a_target():
    with pytest.raises(ValueError):
        DatabaseClient(user="u", password="p")


def test_query_returns_dicts(connection_cls):
    cursor = connection_cls.return_value.cursor.return_value.__enter__.return_value
    cursor.description = (("state",), ("count",))
    cursor.fetchall.return_value = (("Completed", 1),)

    client = DatabaseClient(host="db", user="u", password="p")
    assert client.query("SELECT state, count FROM t WHERE x=%s", ("a",)) == [{"state": "Completed", "count": 1}]
    cursor.execute.assert_called_once_with("SELECT state, count FROM t WHERE x=%s", ("a",))
    assert client.query_one("SELECT 1") == {"state": "Completed", "count": 1}


def test_query_error_closes_connection(connection_cls):
    cursor = connection_cls.return_value.cursor.return_value.__enter__.return_value
    cursor.execute.side_effect = MySQLdb.OperationalError(2013, "Lost connection")

    client = DatabaseClient(host="db", user="u", password="p")
    with pytest.raises(MySQLdb.OperationalError):
        client.execute("SELECT 1")
    assert not client.is_connected
    connection_cls.return_value.close.assert_called_once()


def test_error_classification():
    assert is_access_denied(MySQLdb.OperationalError(1045, "Access denied"))
    assert not is_access_denied(MySQLdb.OperationalError(2002, "Can't connect"))
    assert is_restart_failed(MySQLdb.OperationalError(3707, "Restart server failed"))
    assert not is_restart_failed(ValueError(3707))


class StubClient:
    def __init__(self, created_at=0.0):
        self.created_at = created_at
        self.closed = False
        self.is_connected = True
        self.address = "stub:3306"
        self.ping_error = None

    def ping(self):
        if self.ping_error:
            raise self.ping_error

    def close(self):
        self.closed = True
        self.is_connected = False


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_pool_reuses_one_idle_client():
    created = []

    def factory():
        created.append(StubClient())
        return created[-1]

    pool = DatabasePool(factory, max_idle_time=60, max_lifetime=600, clock=Clock())
    with pool.client() as first:
        pass
    with pool.client() as second:
        pass
    assert first is second
    assert len(created) == 1


def test_pool_discards_expired_clients():
    clock = Clock()
    created = []

    def factory():
        created.append(StubClient(created_at=clock.now))
        return created[-1]

    pool = DatabasePool(factory, max_idle_time=60, max_lifetime=600, clock=clock)
    with pool.client():
        pass

    clock.now = 61
    with pool.client() as client:
        pass
    assert created[0].closed
    assert client is created[1]

    assert len(created) == 2


def test_pool_discards_clients_past_max_lifetime():
    clock = Clock()
    created = []

    def factory():
        created.append(StubClient(created_at=clock.now))
        return created[-1]

    pool = DatabasePool(factory, max_idle_time=0, max_lifetime=600, clock=clock)
    with pool.client():
        pass
    clock.now = 601
    with pool.client():
        pass
    assert created[0].closed
    assert len(created) == 2


def test_pool_closes_client_on_error():
    client = StubClient()
    pool = DatabasePool(lambda: client, max_idle_time=60, max_lifetime=600, clock=Clock())
    with pytest.raises(RuntimeError):
        with pool.client():
            raise RuntimeError("boom")
    assert client.closed
    assert pool._idle is None


def test_pool_keeps_at_most_one_idle_client():
    clients = [StubClient(), StubClient()]
    pool = DatabasePool(lambda: clients.pop(0), max_idle_time=60, max_lifetime=600, clock=Clock())
    with pool.client() as first:
        with pool.client() as second:
            pass
    assert pool._idle is second
    assert first.closed


class FlakyClient:
    def __init__(self, error=None):
        self.error = error
        self.address = "fake"

    def connect(self):
        if self.error:
            raise self.error
        return self

    def close(self):
        pass


def test_connect_with_retry_retries_until_success():
    attempts = [
        FlakyClient(MySQLdb.OperationalError(2002, "Can't connect")),
        FlakyClient(MySQLdb.OperationalError(2002, "Can't connect")),
        FlakyClient(),
    ]
    client = connect_with_retry(lambda: attempts.pop(0), timeout=5, interval=0)
    assert client.error is None
    assert attempts == []


def test_connect_with_retry_stops_on_access_denied():
    calls = []

    def factory():
        calls.append(1)
        return FlakyClient(MySQLdb.OperationalError(1045, "Access denied"))

    with pytest.raises(MySQLdb.OperationalError) as e:
        connect_with_retry(factory, timeout=5, interval=0)
    assert e.value.args[0] == 1045
    assert len(calls) == 1


def test_connect_with_retry_gives_up_after_timeout():
    with pytest.raises(MySQLdb.OperationalError):
        connect_with_retry(lambda: FlakyClient(MySQLdb.OperationalError(2002, "Can't connect")), timeout=0.05, interval=0.01)


def test_connect_with_retry_honours_cancellation():
    with pytest.raises(ConnectCancelled):
        connect_with_retry(lambda: FlakyClient(), timeout=5, interval=0, cancelled=lambda: True)


def test_pool_replaces_idle_client_after_server_restart():
    created = []

    def factory():
        created.append(StubClient())
        return created[-1]

    pool = DatabasePool(factory, max_idle_time=60, max_lifetime=600, clock=Clock())
    with pool.client():
        pass
    created[0].ping_error = MySQLdb.OperationalError(2006, "MySQL server has gone away")

    with pool.client() as client:
        pass
    assert created[0].closed
    assert client is created[1]


def test_ping_closes_dead_connection(connection_cls):
    connection_cls.return_value.ping.side_effect = MySQLdb.OperationalError(2013, "Lost connection")
    client = DatabaseClient(host="db", user="u", password="p")
    with pytest.raises(MySQLdb.OperationalError):
        client.ping()
    assert not client.is_connected
