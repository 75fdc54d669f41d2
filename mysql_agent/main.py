import argparse
import logging
import sys

from mysql_agent.exceptions import AgentError
from mysql_agent.internal.config import AgentConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mysql-agent", description="Sidecar agent of a managed MySQL instance")
    parser.add_argument("--config", help="JSON file with configuration keys")
    parser.add_argument("--address", dest="grpc_address", help="gRPC listen address (default :9080)")
    parser.add_argument("--probe-address", dest="probe_address", help="probe listen address (default :9081)")
    parser.add_argument("--metrics-address", dest="metrics_address", help="metrics listen address (default :8080)")
    parser.add_argument("--conn-max-idle-time", dest="conn_max_idle_time", help="idle time of the pooled connection (default 30m)")
    parser.add_argument("--conn-max-lifetime", dest="conn_max_lifetime", help="max lifetime of the pooled connection (default 30m)")
    parser.add_argument("--connection-timeout", dest="connection_timeout", help="dial timeout (default 3s)")
    parser.add_argument("--read-timeout", dest="read_timeout", help="read timeout (default 30s)")
    parser.add_argument("--log-rotation-schedule", dest="log_rotation_schedule", help="cron expression of the log rotation (default */5 * * * *)")
    parser.add_argument("--max-delay", dest="max_delay_threshold", help="max acceptable replication delay, 0 disables the check (default 1m)")
    parser.add_argument("--transaction-queueing-wait", dest="transaction_queueing_wait", help="how long a replica stays unready after the agent starts (default 0)")
    parser.add_argument("--clone-boot-grace", dest="clone_boot_grace", help="pause between CLONE INSTANCE and the boot wait (default 100ms)")
    parser.add_argument("--init-timeout", dest="init_timeout", help="how long to wait for MySQL during startup (default 1m)")
    parser.add_argument("--server-id-base", dest="server_id_base", type=int, help="base of the server id (default 1000)")
    parser.add_argument("--admin-port", dest="mysql_admin_port", type=int, help="MySQL admin port (default 33062)")
    parser.add_argument("--socket-path", dest="mysql_socket_path", help="MySQL unix socket (default /run/mysqld.sock)")
    parser.add_argument("--log-dir", dest="log_dir", help="MySQL log directory (default /var/log/mysql)")
    parser.add_argument("--skip-init", action="store_true", help="do not initialize the instance on startup")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv:list[str]|None=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    overrides = {
        k: v for k, v in vars(args).items()
        if k not in ("config", "skip_init", "log_level")
    }
    try:
        config = AgentConfig.load(config_file=args.config, **overrides)
        config.validate()
    except AgentError as e:
        logging.error(f"invalid configuration: {e}")
        sys.exit(2)

    from mysql_agent.core import run

    try:
        exit_code = run(config, skip_init=args.skip_init)
    except AgentError as e:
        logging.error(f"Fatal error: {e}")
        exit_code = 1
    except Exception as e:
        logging.exception(f"Fatal error: {e}")
        exit_code = 1
    if exit_code != 0:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
