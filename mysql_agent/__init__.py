from mysql_agent.internal.config import AgentConfig

__all__ = ["AgentConfig"]
