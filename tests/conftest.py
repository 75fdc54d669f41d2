import pytest
from prometheus_client import CollectorRegistry

from mysql_agent.domain.mysql import MySQL
from mysql_agent.internal.config import AgentConfig
from mysql_agent.internal.db_client import DatabasePool
from mysql_agent.internal.metrics import AgentMetrics
from tests.fakes import PASSWORDS, FakeContext, FakeDB


@pytest.fixture
def passwords():
    return dict(PASSWORDS)


@pytest.fixture
def config(tmp_path):
    return AgentConfig(
        pod_name="mysql-cluster-2",
        cluster_name="test",
        log_dir=str(tmp_path),
        mysql_socket_path=str(tmp_path / "mysqld.sock"),
        clone_boot_grace=0,
        passwords=dict(PASSWORDS),
    )


@pytest.fixture
def metrics():
    return AgentMetrics("test", registry=CollectorRegistry())


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def mysql(config, fake_db):
    pool = DatabasePool(factory=lambda: fake_db, max_idle_time=0, max_lifetime=0)
    return MySQL(config, pool=pool)


@pytest.fixture
def context():
    return FakeContext()
