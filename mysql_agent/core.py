import logging
import signal
import threading

from prometheus_client import start_http_server

from mysql_agent import constants
from mysql_agent.domain import initializer
from mysql_agent.domain.clone import CloneOrchestrator
from mysql_agent.domain.mysql import MySQL
from mysql_agent.internal.config import AgentConfig, split_address
from mysql_agent.internal.cron import CronScheduler
from mysql_agent.internal.db_client import DatabaseClient, connect_with_retry
from mysql_agent.internal.metrics import AgentMetrics
from mysql_agent.monitor.health import ProbeEvaluator, ProbeServer
from mysql_agent.monitor.log_rotation import LogRotator

logger = logging.getLogger(__name__)


class GracefulShutdown:
    def __init__(self):
        self.shutdown_event = threading.Event()

    def signal_handler(self, signum, frame):
        logging.info(f"Received signal {signum}, shutting down...")
        self.shutdown_event.set()


class Agent:
    """
    Everything one agent process owns: the pooled connection to the local instance,
    the clone orchestrator, the probes, the log rotator and the metric handles.
    """
    def __init__(self, config:AgentConfig, metrics:AgentMetrics|None=None, mysql:MySQL|None=None):
        self.config = config
        self.metrics = metrics or AgentMetrics(config.cluster_name)
        self.mysql = mysql or MySQL(config)
        self.orchestrator = CloneOrchestrator(self.mysql, config, self.metrics)
        self.probes = ProbeEvaluator(self.mysql, config, self.metrics)
        self.log_rotator = LogRotator(self.mysql, self.metrics, config.log_dir)

    def initialize(self) -> bool:
        """Initializes the instance unless a previous run already did."""
        return initializer.bootstrap(
            self.config.passwords,
            connect_root=lambda: DatabaseClient(unix_socket=self.config.mysql_socket_path, user="root", password=""),
            connect_admin=lambda: self.mysql.socket_client(constants.ADMIN_USER, self.config.admin_password),
            timeout=self.config.init_timeout,
        )

    def wait_for_mysql(self, timeout:float):
        """Blocks until the agent user can log in over TCP."""
        db = connect_with_retry(self.mysql.tcp_client, timeout=timeout)
        db.close()

    def close(self):
        self.mysql.close()


def run(config:AgentConfig, skip_init:bool=False) -> int:
    shutdown_handler = GracefulShutdown()
    signal.signal(signal.SIGINT, shutdown_handler.signal_handler)
    signal.signal(signal.SIGTERM, shutdown_handler.signal_handler)

    logger.info(f"starting agent for {config.pod_name} (cluster={config.cluster_name}, server_id={config.server_id})")
    agent = Agent(config)
    if not skip_init:
        agent.initialize()
    agent.wait_for_mysql(timeout=config.init_timeout)

    from mysql_agent.internal.server import init_server

    grpc_server = init_server(config, agent.orchestrator, agent.mysql)
    probe_server = ProbeServer(agent.probes, config.probe_address)
    rotation = CronScheduler(config.log_rotation_schedule, agent.log_rotator.rotate, name="log-rotation")

    metrics_host, metrics_port = split_address(config.metrics_address)
    start_http_server(metrics_port, addr=metrics_host or "0.0.0.0", registry=agent.metrics.registry)
    logger.info(f"metrics server started on port {metrics_port}")

    grpc_server.start()
    logger.info(f"gRPC server started on {config.grpc_address}")
    probe_server.start()
    rotation.start()

    try:
        while not shutdown_handler.shutdown_event.is_set():
            shutdown_handler.shutdown_event.wait(1.0)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        logger.info("Cleaning up...")
        rotation.stop(grace=5.0)
        probe_server.stop()
        grpc_server.stop(grace=5.0).wait()
        agent.close()
        logger.info("Shutdown complete")
    return 0
