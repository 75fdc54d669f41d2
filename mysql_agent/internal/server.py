from concurrent import futures

import grpc
from grpc_health.v1 import health_pb2_grpc

from mysql_agent.domain.clone import CloneOrchestrator
from mysql_agent.domain.mysql import MySQL
from mysql_agent.generated import agent_pb2_grpc
from mysql_agent.internal.config import AgentConfig, split_address
from mysql_agent.internal.interceptors import LoggingInterceptor
from mysql_agent.service.clone import CloneService
from mysql_agent.service.health import HealthService


def init_server(config:AgentConfig, orchestrator:CloneOrchestrator, mysql:MySQL) -> grpc.Server:
    server = grpc.server(
        futures.ThreadPoolExecutor(max_workers=config.grpc_max_workers),
        interceptors=[LoggingInterceptor()],
    )
    agent_pb2_grpc.add_CloneServiceServicer_to_server(CloneService(orchestrator), server)
    health_pb2_grpc.add_HealthServicer_to_server(HealthService(mysql), server)

    host, port = split_address(config.grpc_address)
    if not host:
        host = "[::]"
    elif ":" in host:
        host = f"[{host}]"
    server.add_insecure_port(f"{host}:{port}")
    return server
