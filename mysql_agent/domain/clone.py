import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

import MySQLdb

from mysql_agent import constants
from mysql_agent.domain import initializer
from mysql_agent.domain.mysql import MySQL
from mysql_agent.exceptions import (
    BootTimeoutError,
    CloneInProgressError,
    InvalidCloneRequest,
    RecipientNotEmptyError,
)
from mysql_agent.internal.config import AgentConfig
from mysql_agent.internal.db_client import (
    ConnectCancelled,
    connect_with_retry,
    is_access_denied,
    is_restart_failed,
)
from mysql_agent.internal.metrics import AgentMetrics

logger = logging.getLogger(__name__)


@dataclass
class CloneRequest:
    host:str
    port:int
    user:str
    password:str
    boot_timeout:float
    init_user:str = ""
    init_password:str = ""

    def validate(self):
        if not self.host:
            raise InvalidCloneRequest("invalid donor host name")
        if not 0 < self.port < 65536:
            raise InvalidCloneRequest("invalid donor port")
        if not self.user:
            raise InvalidCloneRequest("invalid donor user name")
        if self.boot_timeout <= 0:
            raise InvalidCloneRequest("boot timeout must be positive")
        if self.init_user and not self.init_password:
            raise InvalidCloneRequest("init password is required with init user")

    @property
    def is_external(self) -> bool:
        return bool(self.init_user)


class CloneOrchestrator:
    """
    Copies the dataset of a donor into the local instance with CLONE INSTANCE.
    Only one clone may run per process; a second caller is rejected immediately.
    """
    def __init__(self, mysql:MySQL, config:AgentConfig, metrics:AgentMetrics, sleep:Callable[[float], None]=time.sleep):
        self.mysql = mysql
        self.config = config
        self.metrics = metrics
        self._sleep = sleep
        self._slot = threading.Lock()

    def clone(self, request:CloneRequest, cancelled:Callable[[], bool]|None=None):
        request.validate()

        if not self._slot.acquire(blocking=False):
            raise CloneInProgressError()
        try:
            primary_status = self.mysql.get_primary_status()
            if primary_status.executed_gtid_set:
                raise RecipientNotEmptyError(primary_status.executed_gtid_set)
            self._clone(request, cancelled)
        finally:
            self._slot.release()

    def _clone(self, request:CloneRequest, cancelled:Callable[[], bool]|None):
        start = time.monotonic()
        self.metrics.clone_count.inc()
        self.metrics.clone_in_progress.set(1)
        try:
            self.mysql.set_clone_valid_donor_list(request.host, request.port)
            try:
                self.mysql.clone_instance(request.host, request.port, request.user, request.password)
            except MySQLdb.MySQLError as e:
                if not is_restart_failed(e):
                    self.metrics.clone_failure_count.inc()
                    logger.error(f"failed to clone from {request.host}:{request.port}: {e}")
                    raise
            logger.info(f"clone from {request.host}:{request.port} finished, waiting for the restart")

            # MySQL needs a moment to begin its shutdown
            self._sleep(self.config.clone_boot_grace)
            self._wait_and_reinit(request, cancelled)
        finally:
            self.metrics.clone_in_progress.set(0)
            self.metrics.clone_duration_seconds.observe(time.monotonic() - start)

    def _wait_and_reinit(self, request:CloneRequest, cancelled:Callable[[], bool]|None):
        if request.is_external:
            user, password = request.init_user, request.init_password
        else:
            user, password = constants.AGENT_USER, self.config.agent_password

        try:
            db = connect_with_retry(
                lambda: self.mysql.socket_client(user, password),
                timeout=request.boot_timeout,
                interval=1.0,
                cancelled=cancelled,
            )
        except ConnectCancelled as e:
            raise BootTimeoutError("cancelled while waiting for the instance to boot") from e
        except MySQLdb.MySQLError as e:
            if is_access_denied(e):
                raise
            raise BootTimeoutError(f"the instance did not come back within {request.boot_timeout}s: {e}") from e

        with db:
            if request.is_external:
                initializer.init_external(db, self.config.passwords)
        logger.info("the instance is up after the clone")
