import logging

import grpc

from mysql_agent.domain.clone import CloneOrchestrator, CloneRequest
from mysql_agent.exceptions import (
    BootTimeoutError,
    CloneInProgressError,
    InvalidCloneRequest,
    RecipientNotEmptyError,
)
from mysql_agent.generated import agent_pb2, agent_pb2_grpc

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    InvalidCloneRequest: grpc.StatusCode.INVALID_ARGUMENT,
    CloneInProgressError: grpc.StatusCode.RESOURCE_EXHAUSTED,
    RecipientNotEmptyError: grpc.StatusCode.FAILED_PRECONDITION,
    BootTimeoutError: grpc.StatusCode.DEADLINE_EXCEEDED,
}


class CloneService(agent_pb2_grpc.CloneServiceServicer):
    def __init__(self, orchestrator:CloneOrchestrator):
        self.orchestrator = orchestrator

    def Clone(self, request, context):
        boot_timeout = request.boot_timeout.ToTimedelta().total_seconds() if request.HasField("boot_timeout") else 0
        clone_request = CloneRequest(
            host=request.host,
            port=request.port,
            user=request.user,
            password=request.password,
            init_user=request.init_user,
            init_password=request.init_password,
            boot_timeout=boot_timeout,
        )
        try:
            self.orchestrator.clone(clone_request, cancelled=lambda: not context.is_active())
        except tuple(_STATUS_CODES) as e:
            logger.warning(f"clone from {request.host}:{request.port} rejected: {e}")
            context.set_code(_STATUS_CODES[type(e)])
            context.set_details(str(e))
        except Exception as e:
            logger.exception(f"clone from {request.host}:{request.port} failed")
            context.set_code(grpc.StatusCode.INTERNAL)
            context.set_details(str(e))
        return agent_pb2.CloneResponse()
