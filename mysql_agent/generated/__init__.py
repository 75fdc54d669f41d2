"""
Protobuf messages and gRPC stubs compiled at import time from mysql_agent/proto/agent.proto.
"""
import grpc

agent_pb2, agent_pb2_grpc = grpc.protos_and_services("mysql_agent/proto/agent.proto")

__all__ = ["agent_pb2", "agent_pb2_grpc"]
