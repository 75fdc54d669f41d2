import logging
from typing import Callable

import MySQLdb

from mysql_agent.domain import status
from mysql_agent.domain.users import PLUGINS, USERS, PluginSetting, UserSetting
from mysql_agent.exceptions import InitializationError, MissingPasswordError
from mysql_agent.internal.db_client import DatabaseClient, connect_with_retry, is_access_denied

logger = logging.getLogger(__name__)


def _execute(db:DatabaseClient, step:str, sql:str, params:tuple|None=None):
    try:
        db.execute(sql, params)
    except MySQLdb.MySQLError as e:
        raise InitializationError(f"failed to {step}: {e}", sql=sql) from e


def _query_count(db:DatabaseClient, step:str, sql:str, params:tuple|None=None) -> int:
    try:
        row = db.query_one(sql, params)
    except MySQLdb.MySQLError as e:
        raise InitializationError(f"failed to {step}: {e}", sql=sql) from e
    return int(next(iter(row.values()))) if row else 0


def check_passwords(passwords:dict[str, str]):
    missing = [user.name for user in USERS if not passwords.get(user.name)]
    if missing:
        raise MissingPasswordError(f"password is not set for: {', '.join(missing)}")


def ensure_user(db:DatabaseClient, user:UserSetting, password:str, reset:bool=False):
    """
    Creates `user`@'%' with its grants and revokes unless it already exists.
    An existing user is left untouched, or re-identified with `password` when `reset` is set.
    """
    count = _query_count(
        db, f"check user {user.name}",
        "SELECT COUNT(*) AS count FROM mysql.user WHERE user=%s AND host='%%'",
        (user.name,),
    )
    if count == 1:
        if reset:
            _execute(db, f"reset password of {user.name}", "ALTER USER %s@'%%' IDENTIFIED BY %s", (user.name, password))
        return

    _execute(db, f"create user {user.name}", "CREATE USER IF NOT EXISTS %s@'%%' IDENTIFIED BY %s", (user.name, password))

    grant = f"GRANT {', '.join(user.privileges)} ON *.* TO %s@'%%'"
    if user.with_grant_option:
        grant += " WITH GRANT OPTION"
    _execute(db, f"grant privileges to {user.name}", grant, (user.name,))

    if user.proxy_admin:
        _execute(db, f"grant proxy to {user.name}", "GRANT PROXY ON ''@'' TO %s@'%%' WITH GRANT OPTION", (user.name,))

    for schema, privileges in user.revoke_privileges.items():
        _execute(
            db, f"revoke privileges on {schema} from {user.name}",
            f"REVOKE {', '.join(privileges)} ON {schema} FROM %s@'%%'",
            (user.name,),
        )
    logger.info(f"created user {user.name}")


def ensure_plugin(db:DatabaseClient, plugin:PluginSetting):
    count = _query_count(
        db, f"check plugin {plugin.name}",
        "SELECT COUNT(*) AS count FROM information_schema.plugins WHERE PLUGIN_NAME=%s AND PLUGIN_STATUS='ACTIVE'",
        (plugin.name,),
    )
    if count > 0:
        return
    _execute(db, f"install plugin {plugin.name}", f"INSTALL PLUGIN {plugin.name} SONAME %s", (plugin.soname,))
    logger.info(f"installed plugin {plugin.name}")


def ensure_users(db:DatabaseClient, passwords:dict[str, str], reset:bool=False):
    for user in USERS:
        ensure_user(db, user, passwords[user.name], reset=reset)


def ensure_plugins(db:DatabaseClient):
    for plugin in PLUGINS:
        ensure_plugin(db, plugin)


def init_instance(db:DatabaseClient, passwords:dict[str, str], connect_admin:Callable[[], DatabaseClient], reconnect_timeout:float=60):
    """
    Brings a freshly started instance to the managed state:
    users and plugins in place, root@localhost dropped, binary log reset and super_read_only on.

    :param db: connection with enough privileges to create the users (root@localhost on first boot)
    :param connect_admin: factory of a socket connection as the admin user, used once the users exist
    """
    check_passwords(passwords)

    _execute(db, "disable read_only", "SET GLOBAL read_only=OFF")
    _execute(db, "enable partial_revokes", "SET GLOBAL partial_revokes='ON'")
    ensure_users(db, passwords)
    ensure_plugins(db)

    try:
        admin = connect_with_retry(connect_admin, timeout=reconnect_timeout)
    except MySQLdb.MySQLError as e:
        raise InitializationError(f"failed to connect as the admin user: {e}") from e

    with admin:
        _execute(admin, "drop root@localhost", "DROP USER IF EXISTS 'root'@'localhost'")
        _execute(admin, "flush privileges", "FLUSH PRIVILEGES")
        try:
            mysql84 = status.is_mysql84(admin)
        except MySQLdb.MySQLError as e:
            raise InitializationError(f"failed to get version: {e}") from e
        if mysql84:
            _execute(admin, "reset binary logs", "RESET BINARY LOGS AND GTIDS")
        else:
            _execute(admin, "reset master", "RESET MASTER")
        _execute(admin, "enable super_read_only", "SET GLOBAL super_read_only=ON")
    logger.info("initialized the instance")


def init_external(db:DatabaseClient, passwords:dict[str, str]):
    """
    Re-creates the users after cloning from an instance of another cluster.
    Runs without binary logging and keeps the cloned GTID history.
    """
    check_passwords(passwords)

    _execute(db, "disable binary logging", "SET sql_log_bin=OFF")
    _execute(db, "disable read_only", "SET GLOBAL read_only=OFF")
    ensure_users(db, passwords, reset=True)
    ensure_plugins(db)
    _execute(db, "enable super_read_only", "SET GLOBAL super_read_only=ON")
    _execute(db, "enable binary logging", "SET sql_log_bin=ON")
    logger.info("re-initialized the instance after an external clone")


def bootstrap(passwords:dict[str, str], connect_root:Callable[[], DatabaseClient], connect_admin:Callable[[], DatabaseClient], timeout:float=60) -> bool:
    """
    Runs init_instance as root@localhost (empty password) on first boot.
    Returns False without touching anything when root@localhost is rejected,
    which means a previous run already initialized the instance.
    """
    check_passwords(passwords)
    try:
        root = connect_with_retry(connect_root, timeout=timeout)
    except MySQLdb.MySQLError as e:
        if is_access_denied(e):
            logger.info("root@localhost is not accessible, the instance is already initialized")
            return False
        raise InitializationError(f"failed to connect to the instance: {e}") from e

    with root:
        init_instance(root, passwords, connect_admin, reconnect_timeout=timeout)
    return True
