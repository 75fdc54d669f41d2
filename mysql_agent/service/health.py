import logging

import grpc
import MySQLdb
from grpc_health.v1 import health_pb2, health_pb2_grpc

from mysql_agent import constants
from mysql_agent.domain.mysql import MySQL

logger = logging.getLogger(__name__)


class HealthService(health_pb2_grpc.HealthServicer):
    """
    grpc.health.v1.Health backed by the replication threads and the clone state.
    NOT_SERVING responses also carry UNAVAILABLE with the reason flags as details.
    """
    def __init__(self, mysql:MySQL):
        self.mysql = mysql

    def Check(self, request, context):
        try:
            replica_status = self.mysql.get_replica_status()
            clone_state = self.mysql.get_clone_state()
        except MySQLdb.MySQLError as e:
            logger.error(f"health check failed: {e}")
            context.set_code(grpc.StatusCode.INTERNAL)
            context.set_details(f"failed to get the instance status: {e}")
            return health_pb2.HealthCheckResponse(status=health_pb2.HealthCheckResponse.UNKNOWN)

        has_io_thread_error = replica_status is not None and (
            replica_status.last_io_errno != 0 or replica_status.io_running != "Yes"
        )
        has_sql_thread_error = replica_status is not None and (
            replica_status.last_sql_errno != 0 or replica_status.sql_running != "Yes"
        )
        is_under_cloning = clone_state is not None and clone_state != constants.CLONE_STATUS_COMPLETED

        if has_io_thread_error or has_sql_thread_error or is_under_cloning:
            context.set_code(grpc.StatusCode.UNAVAILABLE)
            context.set_details(
                f"hasIOThreadError={has_io_thread_error}, hasSQLThreadError={has_sql_thread_error}, "
                f"isUnderCloning={is_under_cloning}"
            )
            return health_pb2.HealthCheckResponse(status=health_pb2.HealthCheckResponse.NOT_SERVING)
        return health_pb2.HealthCheckResponse(status=health_pb2.HealthCheckResponse.SERVING)
