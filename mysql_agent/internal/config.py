import json
import os
import re

from mysql_agent import constants
from mysql_agent.exceptions import ConfigError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value:str|int|float) -> float:
    """
    Parses a duration into seconds.
    Accepts plain numbers (seconds) and strings like `30m`, `3s`, `100ms` or `1m30s`.
    """
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"negative duration: {value}")
        return float(value)

    text = str(value).strip()
    if not text:
        raise ConfigError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds < 0:
            raise ConfigError(f"negative duration: {value}")
        return seconds

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position == 0 or position != len(text):
        raise ConfigError(f"invalid duration: {value!r}")
    return total


def parse_pod_index(pod_name:str) -> int:
    """Returns N of a pod name shaped like `<name>-<N>`."""
    if not pod_name or "-" not in pod_name:
        raise ConfigError(f"invalid pod name: {pod_name!r}")
    ordinal = pod_name.rsplit("-", 1)[1]
    if not ordinal.isdigit():
        raise ConfigError(f"invalid pod name: {pod_name!r}")
    return int(ordinal)


def split_address(address:str) -> tuple[str, int]:
    """`:9080` -> ("", 9080), `0.0.0.0:9080` -> ("0.0.0.0", 9080)"""
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ConfigError(f"invalid listen address: {address!r}")
    return host.strip("[]"), int(port)


class AgentConfig:
    # identity
    pod_name:str = ""
    cluster_name:str = ""
    mysql_admin_host:str = "localhost"
    mysql_admin_port:int = constants.MYSQL_ADMIN_PORT
    mysql_socket_path:str = constants.MYSQL_SOCKET_PATH
    log_dir:str = constants.MYSQL_LOG_DIR

    # listen addresses
    grpc_address:str = ":9080"
    probe_address:str = ":9081"
    metrics_address:str = ":8080"
    grpc_max_workers:int = 10

    # pooled connection (seconds)
    conn_max_idle_time:float = 30 * 60
    conn_max_lifetime:float = 30 * 60
    connection_timeout:float = 3
    read_timeout:float = 30

    # behavior (seconds)
    log_rotation_schedule:str = "*/5 * * * *"
    max_delay_threshold:float = 60
    transaction_queueing_wait:float = 0
    clone_boot_grace:float = 0.1
    init_timeout:float = 60
    server_id_base:int = 1000

    # passwords of the managed users, keyed by user name
    passwords:dict[str, str]

    _duration_fields = (
        "conn_max_idle_time",
        "conn_max_lifetime",
        "connection_timeout",
        "read_timeout",
        "max_delay_threshold",
        "transaction_queueing_wait",
        "clone_boot_grace",
        "init_timeout",
    )

    def __init__(self, **overrides):
        self.passwords = {user: "" for user in constants.PASSWORD_ENVS}
        self.update(overrides)

    def update(self, values:dict):
        for key, value in values.items():
            if value is None:
                continue
            if key.startswith("_") or not hasattr(self, key):
                raise ConfigError(f"unknown config key: {key}")
            if key in self._duration_fields:
                value = parse_duration(value)
            elif key == "passwords":
                value = {**self.passwords, **value}
            setattr(self, key, value)

    @classmethod
    def load(cls, config_file:str|None=None, environ:dict|None=None, **overrides) -> "AgentConfig":
        """
        Builds the configuration: defaults < JSON config file < environment < overrides.
        """
        config = cls()
        if config_file:
            if not os.path.exists(config_file):
                raise ConfigError(f"config file not found: {config_file}")
            with open(config_file, 'r') as f:
                try:
                    config.update(json.load(f))
                except json.JSONDecodeError as e:
                    raise ConfigError(f"failed to parse {config_file}: {e}") from e
        config.load_environment(os.environ if environ is None else environ)
        config.update(overrides)
        return config

    def load_environment(self, environ):
        if environ.get(constants.POD_NAME_ENV):
            self.pod_name = environ[constants.POD_NAME_ENV]
        if environ.get(constants.CLUSTER_NAME_ENV):
            self.cluster_name = environ[constants.CLUSTER_NAME_ENV]
        if environ.get(constants.MYSQL_SOCKET_PATH_ENV):
            self.mysql_socket_path = environ[constants.MYSQL_SOCKET_PATH_ENV]
        for user, env in constants.PASSWORD_ENVS.items():
            if environ.get(env):
                self.passwords[user] = environ[env]

    def validate(self):
        if not self.pod_name:
            raise ConfigError(f"{constants.POD_NAME_ENV} is not set")
        if not self.cluster_name:
            raise ConfigError(f"{constants.CLUSTER_NAME_ENV} is not set")
        if not self.passwords.get(constants.AGENT_USER):
            raise ConfigError(f"{constants.AGENT_PASSWORD_ENV} is not set")
        parse_pod_index(self.pod_name)
        for address in (self.grpc_address, self.probe_address, self.metrics_address):
            split_address(address)

    @property
    def pod_index(self) -> int:
        return parse_pod_index(self.pod_name)

    @property
    def server_id(self) -> int:
        return self.server_id_base + self.pod_index

    @property
    def agent_password(self) -> str:
        return self.passwords.get(constants.AGENT_USER, "")

    @property
    def admin_password(self) -> str:
        return self.passwords.get(constants.ADMIN_USER, "")
