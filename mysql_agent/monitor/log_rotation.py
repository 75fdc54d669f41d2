import logging
import os
import time

import MySQLdb

from mysql_agent import constants
from mysql_agent.domain.mysql import MySQL
from mysql_agent.internal.metrics import AgentMetrics

logger = logging.getLogger(__name__)


class LogRotator:
    def __init__(self, mysql:MySQL, metrics:AgentMetrics, log_dir:str):
        self.mysql = mysql
        self.metrics = metrics
        self.log_dir = log_dir

    @property
    def log_files(self) -> list[str]:
        return [
            os.path.join(self.log_dir, constants.MYSQL_ERROR_LOG_NAME),
            os.path.join(self.log_dir, constants.MYSQL_SLOW_LOG_NAME),
        ]

    def rotate(self) -> bool:
        """
        Moves mysql.err and mysql.slow aside as *.0 and makes MySQL reopen them.
        Failures are counted and logged, never raised.
        """
        self.metrics.log_rotation_count.inc()
        start = time.monotonic()

        for path in self.log_files:
            try:
                os.replace(path, path + ".0")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"failed to rotate {path}: {e}")
                self.metrics.log_rotation_failure_count.inc()
                return False

        try:
            # LOCAL keeps the flush out of the binary log
            self.mysql.flush_logs()
        except MySQLdb.MySQLError as e:
            logger.error(f"failed to flush logs: {e}")
            self.metrics.log_rotation_failure_count.inc()
            return False

        self.metrics.log_rotation_duration_seconds.observe(time.monotonic() - start)
        return True
