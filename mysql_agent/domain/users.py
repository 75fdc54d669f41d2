from dataclasses import dataclass, field

from mysql_agent import constants


@dataclass(frozen=True)
class UserSetting:
    name:str
    privileges:tuple[str, ...]
    revoke_privileges:dict[str, tuple[str, ...]] = field(default_factory=dict)
    with_grant_option:bool = False
    proxy_admin:bool = False


@dataclass(frozen=True)
class PluginSetting:
    name:str
    soname:str


USERS: tuple[UserSetting, ...] = (
    UserSetting(
        name=constants.ADMIN_USER,
        privileges=("ALL",),
        with_grant_option=True,
        proxy_admin=True,
    ),
    UserSetting(
        name=constants.AGENT_USER,
        privileges=(
            "BINLOG_ADMIN",
            "CLONE_ADMIN",
            "RELOAD",
            "REPLICATION CLIENT",
            "SELECT",
            "SERVICE_CONNECTION_ADMIN",
            "SYSTEM_VARIABLES_ADMIN",
        ),
    ),
    UserSetting(
        name=constants.REPLICATION_USER,
        privileges=(
            "REPLICATION CLIENT",
            "REPLICATION SLAVE",
        ),
    ),
    UserSetting(
        name=constants.CLONE_DONOR_USER,
        privileges=(
            "BACKUP_ADMIN",
            "SERVICE_CONNECTION_ADMIN",
        ),
    ),
    UserSetting(
        name=constants.EXPORTER_USER,
        privileges=(
            "PROCESS",
            "REPLICATION CLIENT",
            "SELECT",
        ),
    ),
    UserSetting(
        name=constants.BACKUP_USER,
        privileges=(
            "BACKUP_ADMIN",
            "EVENT",
            "RELOAD",
            "SELECT",
            "SHOW VIEW",
            "TRIGGER",
            "REPLICATION CLIENT",
            "REPLICATION SLAVE",
            "SERVICE_CONNECTION_ADMIN",
        ),
    ),
    UserSetting(
        name=constants.READONLY_USER,
        privileges=(
            "PROCESS",
            "REPLICATION CLIENT",
            "REPLICATION SLAVE",
            "SELECT",
            "SHOW DATABASES",
            "SHOW VIEW",
        ),
    ),
    UserSetting(
        name=constants.WRITABLE_USER,
        privileges=(
            "ALTER",
            "ALTER ROUTINE",
            "CREATE",
            "CREATE ROLE",
            "CREATE ROUTINE",
            "CREATE TEMPORARY TABLES",
            "CREATE USER",
            "CREATE VIEW",
            "DELETE",
            "DROP",
            "DROP ROLE",
            "EVENT",
            "EXECUTE",
            "INDEX",
            "INSERT",
            "LOCK TABLES",
            "PROCESS",
            "REFERENCES",
            "REPLICATION CLIENT",
            "REPLICATION SLAVE",
            "SELECT",
            "SHOW DATABASES",
            "SHOW VIEW",
            "TRIGGER",
            "UPDATE",
        ),
        revoke_privileges={
            "mysql.*": (
                "CREATE",
                "CREATE ROUTINE",
                "CREATE TEMPORARY TABLES",
                "CREATE VIEW",
                "DELETE",
                "DROP",
                "EVENT",
                "EXECUTE",
                "INDEX",
                "INSERT",
                "LOCK TABLES",
                "REFERENCES",
                "TRIGGER",
                "UPDATE",
            ),
        },
        with_grant_option=True,
    ),
)

PLUGINS: tuple[PluginSetting, ...] = (
    PluginSetting(name="rpl_semi_sync_master", soname="semisync_master.so"),
    PluginSetting(name="rpl_semi_sync_slave", soname="semisync_slave.so"),
    PluginSetting(name="clone", soname="mysql_clone.so"),
)
