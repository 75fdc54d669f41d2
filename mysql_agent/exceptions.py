class AgentError(Exception):
    pass


class ConfigError(AgentError):
    pass


class InitializationError(AgentError):
    """
    Raised when bringing the instance to its managed state fails.
    `sql` holds the statement that failed (without secrets), if any.
    """
    def __init__(self, message:str, sql:str|None=None):
        super().__init__(message)
        self.sql = sql

    def __str__(self):
        message = super().__str__()
        if self.sql:
            return f"{message} (sql: {self.sql})"
        return message


class MissingPasswordError(InitializationError):
    pass


class CloneError(AgentError):
    pass


class InvalidCloneRequest(CloneError):
    pass


class CloneInProgressError(CloneError):
    def __init__(self, message:str="another request is under processing"):
        super().__init__(message)


class RecipientNotEmptyError(CloneError):
    def __init__(self, gtid:str):
        super().__init__(f"recipient is not empty: gtid={gtid}")
        self.gtid = gtid


class BootTimeoutError(CloneError):
    pass
