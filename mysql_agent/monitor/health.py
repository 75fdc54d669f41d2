import logging
import threading
import time
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable

import MySQLdb

from mysql_agent import constants
from mysql_agent.domain.mysql import MySQL
from mysql_agent.internal.config import AgentConfig, split_address
from mysql_agent.internal.metrics import AgentMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    status:int
    message:str = ""

    @property
    def ok(self) -> bool:
        return self.status == HTTPStatus.OK


READY = ProbeResult(HTTPStatus.OK)


def _unavailable(message:str) -> ProbeResult:
    return ProbeResult(HTTPStatus.SERVICE_UNAVAILABLE, message)


class ProbeEvaluator:
    """
    Liveness and readiness verdicts for the local instance.

    Readiness cascade:
        1. a clone that has not completed -> 503
        2. read_only=OFF (primary) -> 200
        3. replica without a channel, with stopped threads or with errors -> 503
        4. within the transaction queueing wait after the agent started -> 503
        5. applied transaction delay >= max delay -> 503
    """
    def __init__(self, mysql:MySQL, config:AgentConfig, metrics:AgentMetrics, started_at:float|None=None, clock:Callable[[], float]=time.monotonic):
        self.mysql = mysql
        self.config = config
        self.metrics = metrics
        self._clock = clock
        self.started_at = clock() if started_at is None else started_at

    def liveness(self) -> ProbeResult:
        try:
            self.mysql.ping()
        except MySQLdb.MySQLError as e:
            logger.error(f"liveness check failed: {e}")
            return _unavailable(f"failed to connect to the instance: {e}")
        return READY

    def readiness(self) -> ProbeResult:
        try:
            return self._readiness()
        except MySQLdb.MySQLError as e:
            logger.error(f"readiness check failed: {e}")
            return ProbeResult(HTTPStatus.INTERNAL_SERVER_ERROR, f"failed to check readiness: {e}")

    def _readiness(self) -> ProbeResult:
        clone_state = self.mysql.get_clone_state()
        if clone_state is not None and clone_state != constants.CLONE_STATUS_COMPLETED:
            return _unavailable("the instance is under cloning")

        global_variables = self.mysql.get_global_variables()
        if not global_variables.read_only:
            self.metrics.unregister_replication_delay()
            return READY

        replica_status = self.mysql.get_replica_status()
        if replica_status is None:
            return _unavailable("the instance is under reconciling: read_only=true, but not works as a replica")
        if not replica_status.threads_running:
            return _unavailable(
                f"replication thread are stopped: io={replica_status.io_running}, sql={replica_status.sql_running}"
            )
        if replica_status.has_error:
            return _unavailable(
                f"the instance has replication error(s): io_errno={replica_status.last_io_errno}, "
                f"sql_errno={replica_status.last_sql_errno}"
            )

        waited = self._clock() - self.started_at
        if waited < self.config.transaction_queueing_wait:
            return _unavailable(
                f"waiting for queued transactions to be applied: {waited:.1f}s/{self.config.transaction_queueing_wait}s"
            )

        threshold = self.config.max_delay_threshold
        if not threshold:
            return READY

        delay = self.mysql.get_applied_transaction_timestamps().delay_seconds
        self.metrics.register_replication_delay(self.config.pod_name, self.config.pod_index).set(delay)
        if delay >= threshold:
            logger.info(f"the instance delays from the primary: threshold={threshold}s, delayed={delay}s")
            return _unavailable(f"the instance delays from the primary: threshold={threshold}s, delayed={delay}s")
        return READY


class ProbeRequestHandler(BaseHTTPRequestHandler):
    evaluator: ProbeEvaluator

    def _probes(self) -> dict[str, Callable[[], ProbeResult]]:
        return {
            "/healthz": self.evaluator.liveness,
            "/readyz": self.evaluator.readiness,
        }

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        probe = self._probes().get(path)
        if probe is None:
            self._reply(ProbeResult(HTTPStatus.NOT_FOUND, "not found"))
            return
        try:
            result = probe()
        except Exception as e:
            logger.exception(f"{path} failed")
            result = ProbeResult(HTTPStatus.INTERNAL_SERVER_ERROR, str(e))
        self._reply(result)

    def _method_not_allowed(self):
        self._reply(ProbeResult(HTTPStatus.METHOD_NOT_ALLOWED, "method not allowed"))

    do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = _method_not_allowed

    def _reply(self, result:ProbeResult):
        body = result.message.encode()
        self.send_response(result.status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")


class ProbeServer:
    """HTTP server exposing /healthz and /readyz."""
    def __init__(self, evaluator:ProbeEvaluator, address:str):
        host, port = split_address(address)
        handler = type("BoundProbeRequestHandler", (ProbeRequestHandler,), {"evaluator": evaluator})
        self.httpd = ThreadingHTTPServer((host, port), handler)
        self.httpd.daemon_threads = True
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self.httpd.server_address[1]

    def start(self):
        self._thread = threading.Thread(target=self.httpd.serve_forever, name="probe-server", daemon=True)
        self._thread.start()
        logger.info(f"probe server started on port {self.port}")

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()
        if self._thread:
            self._thread.join(timeout=5.0)
