# Users created on every managed instance
ADMIN_USER = "cluster-admin"
AGENT_USER = "cluster-agent"
REPLICATION_USER = "cluster-repl"
CLONE_DONOR_USER = "cluster-clone-donor"
EXPORTER_USER = "cluster-exporter"
BACKUP_USER = "cluster-backup"
READONLY_USER = "cluster-readonly"
WRITABLE_USER = "cluster-writable"

# Environment variables
POD_NAME_ENV = "POD_NAME"
CLUSTER_NAME_ENV = "CLUSTER_NAME"
MYSQL_SOCKET_PATH_ENV = "MYSQL_SOCKET_PATH"

ADMIN_PASSWORD_ENV = "ADMIN_PASSWORD"
AGENT_PASSWORD_ENV = "AGENT_PASSWORD"
REPLICATION_PASSWORD_ENV = "REPLICATION_PASSWORD"
CLONE_DONOR_PASSWORD_ENV = "CLONE_DONOR_PASSWORD"
EXPORTER_PASSWORD_ENV = "EXPORTER_PASSWORD"
BACKUP_PASSWORD_ENV = "BACKUP_PASSWORD"
READONLY_PASSWORD_ENV = "READONLY_PASSWORD"
WRITABLE_PASSWORD_ENV = "WRITABLE_PASSWORD"

# user -> env var holding its password
PASSWORD_ENVS = {
    ADMIN_USER: ADMIN_PASSWORD_ENV,
    AGENT_USER: AGENT_PASSWORD_ENV,
    REPLICATION_USER: REPLICATION_PASSWORD_ENV,
    CLONE_DONOR_USER: CLONE_DONOR_PASSWORD_ENV,
    EXPORTER_USER: EXPORTER_PASSWORD_ENV,
    BACKUP_USER: BACKUP_PASSWORD_ENV,
    READONLY_USER: READONLY_PASSWORD_ENV,
    WRITABLE_USER: WRITABLE_PASSWORD_ENV,
}

# MySQL layout inside the pod
MYSQL_ADMIN_PORT = 33062
MYSQL_SOCKET_PATH = "/run/mysqld.sock"
MYSQL_DATA_PATH = "/var/lib/mysql"
MYSQL_LOG_DIR = "/var/log/mysql"
MYSQL_ERROR_LOG_NAME = "mysql.err"
MYSQL_SLOW_LOG_NAME = "mysql.slow"

# Values of performance_schema.clone_status.state
CLONE_STATUS_NOT_STARTED = "Not Started"
CLONE_STATUS_IN_PROGRESS = "In Progress"
CLONE_STATUS_COMPLETED = "Completed"
CLONE_STATUS_FAILED = "Failed"

# MySQL error numbers
ER_ACCESS_DENIED_ERROR = 1045
ER_CLONE_RESTART_FAILED = 3707

METRICS_NAMESPACE = "mysql_agent"
