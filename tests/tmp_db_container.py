import time

import docker
from docker import DockerClient

from mysql_agent.internal.db_client import DatabaseClient


class TmpDBContainer:
    """Disposable MySQL server in a docker container, root without a password."""
    def __init__(self, tag:str="8.0", auto_start:bool=False):
        self._docker_client: DockerClient|None = docker.from_env()
        self._id = None
        self._image: str = "mysql"
        self._tag: str = tag
        self._ip: str|None = None
        self._port: int = 3306
        if auto_start:
            self.start()
            self.wait_for_db_ready(timeout=120)

    @property
    def host(self) -> str|None:
        return self._ip

    @property
    def port(self) -> int:
        return self._port

    def start(self):
        if self._id:
            raise RuntimeError("Container is already running or has been started.")

        res = self._docker_client.containers.run(
            image=f"{self._image}:{self._tag}",
            environment={"MYSQL_ALLOW_EMPTY_PASSWORD": "yes"},
            command=["--gtid-mode=ON", "--enforce-gtid-consistency=ON"],
            detach=True,
        )
        self._id = res.id
        container_info = self._docker_client.containers.get(self._id)
        self._ip = container_info.attrs['NetworkSettings']['IPAddress']

    def wait_for_db_ready(self, timeout:int=120):
        # The entrypoint starts a temporary server first, wait for the final one
        end_time = time.time() + timeout
        while time.time() < end_time:
            if "ready for connections" in self.get_logs() and "init process done" in self.get_logs().lower():
                if self.is_reachable():
                    return True
            time.sleep(1)
        raise TimeoutError(f"Database not ready within {timeout} seconds.")

    def is_reachable(self) -> bool:
        try:
            with self.get_db() as db:
                db.query("SELECT 1")
            return True
        except Exception:
            return False

    def get_logs(self) -> str:
        if not self._docker_client or not self._id:
            raise RuntimeError("Container is not running or has not been started.")
        container = self._docker_client.containers.get(self._id)
        return container.logs().decode('utf-8')

    def get_db(self, username:str="root", password:str="") -> DatabaseClient:
        return DatabaseClient(host=self._ip, port=self._port, user=username, password=password, connect_timeout=3)

    def cleanup(self):
        if self._docker_client:
            try:
                if self._id:
                    self._docker_client.containers.get(self._id).remove(force=True, v=True)
                self._docker_client.close()
            except Exception as e:
                print(f"Error during cleanup: {e}")

        self._docker_client = None
        self._id = None

    def __enter__(self) -> "TmpDBContainer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
