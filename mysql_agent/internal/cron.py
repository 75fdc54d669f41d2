import logging
import threading
from datetime import datetime
from typing import Callable

from croniter import croniter

from mysql_agent.exceptions import ConfigError

logger = logging.getLogger(__name__)


class CronScheduler:
    """
    Runs `job` in a background thread every time `expression` fires.
    Runs never overlap; a run that takes longer than the interval skips the missed fire times.
    """
    def __init__(self, expression:str, job:Callable[[], None], name:str="cron", now:Callable[[], datetime]=datetime.now):
        if not croniter.is_valid(expression):
            raise ConfigError(f"invalid cron expression: {expression!r}")
        self.expression = expression
        self.job = job
        self.name = name
        self._now = now
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def next_fire_time(self, after:datetime|None=None) -> datetime:
        return croniter(self.expression, after or self._now()).get_next(datetime)

    def start(self):
        if self._thread:
            raise RuntimeError(f"{self.name} scheduler is already started")
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def _run(self):
        logger.info(f"{self.name} scheduled with '{self.expression}'")
        while not self._stop_event.is_set():
            wait_seconds = (self.next_fire_time() - self._now()).total_seconds()
            if self._stop_event.wait(max(0.0, wait_seconds)):
                break
            try:
                self.job()
            except Exception as e:
                logger.error(f"{self.name} job failed: {e}")

    def stop(self, grace:float=5.0) -> bool:
        """
        Stops the scheduler and waits up to `grace` seconds for a running job.
        Returns False if the job is still running after the grace period.
        """
        self._stop_event.set()
        if not self._thread:
            return True
        self._thread.join(timeout=grace)
        if self._thread.is_alive():
            logger.warning(f"{self.name} job did not finish within {grace}s")
            return False
        return True
