"""
Observations of the local MySQL instance.

Every function runs exactly one statement on the given client.
Nothing is cached: callers get a fresh view of MySQL on every call.
"""
import re
from dataclasses import dataclass
from datetime import datetime

from mysql_agent.internal.db_client import DatabaseClient

# SHOW REPLICA STATUS and the Replica_*/Source_* columns
REPLICA_STATUS_SINCE = (8, 0, 22)


@dataclass(frozen=True)
class GlobalVariables:
    read_only:bool
    super_read_only:bool


@dataclass(frozen=True)
class PrimaryStatus:
    executed_gtid_set:str
    file:str = ""
    position:int = 0
    binlog_do_db:str = ""
    binlog_ignore_db:str = ""


@dataclass(frozen=True)
class ReplicaStatus:
    io_running:str
    sql_running:str
    last_io_errno:int = 0
    last_io_error:str = ""
    last_sql_errno:int = 0
    last_sql_error:str = ""
    retrieved_gtid_set:str = ""
    executed_gtid_set:str = ""
    source_host:str = ""
    seconds_behind_source:int|None = None

    @property
    def threads_running(self) -> bool:
        return self.io_running == "Yes" and self.sql_running == "Yes"

    @property
    def has_error(self) -> bool:
        return self.last_io_errno != 0 or self.last_sql_errno != 0


@dataclass(frozen=True)
class TransactionTimestamps:
    original_commit:datetime|None
    end_apply:datetime|None

    @property
    def delay_seconds(self) -> float:
        # Zero dates (nothing applied yet) are returned as None by MySQLdb
        if self.original_commit is None or self.end_apply is None:
            return 0.0
        return (self.end_apply - self.original_commit).total_seconds()


def _pick(row:dict, *names, default=None):
    for name in names:
        if name in row and row[name] is not None:
            return row[name]
    return default


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def get_global_variables(db:DatabaseClient) -> GlobalVariables:
    row = db.query_one("SELECT @@read_only AS read_only, @@super_read_only AS super_read_only")
    return GlobalVariables(
        read_only=bool(int(row["read_only"])),
        super_read_only=bool(int(row["super_read_only"])),
    )


def is_mysql84(db:DatabaseClient) -> bool:
    row = db.query_one("SELECT SUBSTRING_INDEX(VERSION(), '.', 2) AS version")
    return row is not None and _text(row["version"]) == "8.4"


def parse_version(version:str) -> tuple[int, ...]:
    """'8.0.36-log' -> (8, 0, 36). Returns an empty tuple when nothing can be parsed."""
    match = re.match(r"(\d+)\.(\d+)(?:\.(\d+))?", version)
    if not match:
        return ()
    return tuple(int(part) for part in match.groups() if part is not None)


def get_server_version(db:DatabaseClient) -> tuple[int, ...]:
    row = db.query_one("SELECT VERSION() AS version")
    if row is None:
        return ()
    return parse_version(_text(row["version"]))


def get_primary_status(db:DatabaseClient, mysql84:bool=False) -> PrimaryStatus:
    row = db.query_one("SHOW BINARY LOG STATUS" if mysql84 else "SHOW MASTER STATUS")
    if row is None:
        # binary logging disabled
        return PrimaryStatus(executed_gtid_set="")
    return PrimaryStatus(
        executed_gtid_set=_text(row.get("Executed_Gtid_Set")).replace("\n", ""),
        file=_text(row.get("File")),
        position=int(row.get("Position") or 0),
        binlog_do_db=_text(row.get("Binlog_Do_DB")),
        binlog_ignore_db=_text(row.get("Binlog_Ignore_DB")),
    )


def get_replica_status(db:DatabaseClient, legacy:bool=False) -> ReplicaStatus|None:
    """
    Returns None when no replication is configured.
    Servers older than 8.0.22 only know SHOW SLAVE STATUS, which reports Slave_*/Master_* columns.
    """
    row = db.query_one("SHOW SLAVE STATUS" if legacy else "SHOW REPLICA STATUS")
    if row is None:
        return None
    return ReplicaStatus(
        io_running=_text(_pick(row, "Replica_IO_Running", "Slave_IO_Running", default="")),
        sql_running=_text(_pick(row, "Replica_SQL_Running", "Slave_SQL_Running", default="")),
        last_io_errno=int(_pick(row, "Last_IO_Errno", default=0)),
        last_io_error=_text(row.get("Last_IO_Error")),
        last_sql_errno=int(_pick(row, "Last_SQL_Errno", default=0)),
        last_sql_error=_text(row.get("Last_SQL_Error")),
        retrieved_gtid_set=_text(row.get("Retrieved_Gtid_Set")),
        executed_gtid_set=_text(row.get("Executed_Gtid_Set")),
        source_host=_text(_pick(row, "Source_Host", "Master_Host", default="")),
        seconds_behind_source=_pick(row, "Seconds_Behind_Source", "Seconds_Behind_Master"),
    )


def get_clone_state(db:DatabaseClient) -> str|None:
    """Returns None when no clone has ever run on this instance."""
    row = db.query_one("SELECT state FROM performance_schema.clone_status")
    if row is None or row["state"] is None:
        return None
    return _text(row["state"])


def get_applied_transaction_timestamps(db:DatabaseClient) -> TransactionTimestamps:
    """
    Timestamps of the most recently applied transaction across all applier workers.
    Idle workers keep the timestamps of whatever they applied last, so the first row is not enough.
    """
    rows = db.query(
        "SELECT LAST_APPLIED_TRANSACTION_ORIGINAL_COMMIT_TIMESTAMP AS original_commit, "
        "LAST_APPLIED_TRANSACTION_END_APPLY_TIMESTAMP AS end_apply "
        "FROM performance_schema.replication_applier_status_by_worker"
    )
    applied = [row for row in rows if row["end_apply"] is not None]
    if not applied:
        return TransactionTimestamps(original_commit=None, end_apply=None)
    latest = max(applied, key=lambda row: row["end_apply"])
    return TransactionTimestamps(original_commit=latest["original_commit"], end_apply=latest["end_apply"])
