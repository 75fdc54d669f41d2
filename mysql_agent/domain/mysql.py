import logging

from mysql_agent import constants
from mysql_agent.domain import status
from mysql_agent.internal.config import AgentConfig
from mysql_agent.internal.db_client import DatabaseClient, DatabasePool

logger = logging.getLogger(__name__)


class MySQL:
    """
    The local MySQL instance as seen by the agent.
    Status reads and light administrative statements go through the pooled TCP connection
    as the agent user. Long running statements (CLONE) use a dedicated socket connection.
    """
    def __init__(self, config:AgentConfig, pool:DatabasePool|None=None):
        self.config = config
        self.pool = pool or DatabasePool(
            factory=self.tcp_client,
            max_idle_time=config.conn_max_idle_time,
            max_lifetime=config.conn_max_lifetime,
        )
        self._server_version: tuple[int, ...] = ()

    def tcp_client(self) -> DatabaseClient:
        return DatabaseClient(
            host=self.config.mysql_admin_host,
            port=self.config.mysql_admin_port,
            user=constants.AGENT_USER,
            password=self.config.agent_password,
            connect_timeout=self.config.connection_timeout,
            read_timeout=self.config.read_timeout,
        )

    def socket_client(self, user:str, password:str) -> DatabaseClient:
        """Socket connection without I/O deadlines."""
        return DatabaseClient(
            unix_socket=self.config.mysql_socket_path,
            user=user,
            password=password,
        )

    def ping(self) -> str:
        with self.pool.client() as db:
            row = db.query_one("SELECT VERSION() AS version")
        return row["version"]

    def get_global_variables(self) -> status.GlobalVariables:
        with self.pool.client() as db:
            return status.get_global_variables(db)

    def server_version(self, db:DatabaseClient) -> tuple[int, ...]:
        """Detected on first use and kept for the life of the agent."""
        if not self._server_version:
            self._server_version = status.get_server_version(db)
        return self._server_version

    def get_primary_status(self) -> status.PrimaryStatus:
        with self.pool.client() as db:
            mysql84 = self.server_version(db)[:2] == (8, 4)
            return status.get_primary_status(db, mysql84=mysql84)

    def get_replica_status(self) -> status.ReplicaStatus|None:
        with self.pool.client() as db:
            version = self.server_version(db)
            legacy = bool(version) and version < status.REPLICA_STATUS_SINCE
            return status.get_replica_status(db, legacy=legacy)

    def get_clone_state(self) -> str|None:
        with self.pool.client() as db:
            return status.get_clone_state(db)

    def get_applied_transaction_timestamps(self) -> status.TransactionTimestamps:
        with self.pool.client() as db:
            return status.get_applied_transaction_timestamps(db)

    def set_clone_valid_donor_list(self, host:str, port:int):
        with self.pool.client() as db:
            db.execute("SET GLOBAL clone_valid_donor_list = %s", (f"{host}:{port}",))

    def clone_instance(self, host:str, port:int, user:str, password:str):
        """
        Runs CLONE INSTANCE over the socket as the agent user.
        On success MySQL restarts itself, so the statement normally fails with ER_CLONE_RESTART_FAILED.
        """
        with self.socket_client(constants.AGENT_USER, self.config.agent_password) as db:
            logger.info(f"cloning from {host}:{port}")
            db.execute("CLONE INSTANCE FROM %s@%s:%s IDENTIFIED BY %s", (user, host, port, password))

    def flush_logs(self):
        with self.pool.client() as db:
            db.execute("FLUSH LOCAL ERROR LOGS, SLOW LOGS")

    def close(self):
        self.pool.close()
