import math
import threading
import time
from collections import deque

from prometheus_client import CollectorRegistry, Counter, Gauge
from prometheus_client.core import SummaryMetricFamily
from prometheus_client.registry import Collector

from mysql_agent.constants import METRICS_NAMESPACE

SUMMARY_QUANTILES = (0.5, 0.9, 0.99)


class QuantileSummary(Collector):
    """
    Summary that exports quantiles computed over a sliding window of observations.
    prometheus_client's Summary only exports count and sum.
    """
    def __init__(self, name:str, documentation:str, labels:dict[str, str], max_age:float=600, max_samples:int=500, clock=time.monotonic):
        self.name = name
        self.documentation = documentation
        self.labels = labels
        self.max_age = max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._samples: deque[tuple[float, float]] = deque(maxlen=max_samples)
        self._count = 0
        self._sum = 0.0

    def observe(self, value:float):
        with self._lock:
            self._samples.append((self._clock(), value))
            self._count += 1
            self._sum += value

    def quantiles(self) -> dict[float, float]:
        with self._lock:
            deadline = self._clock() - self.max_age
            while self._samples and self._samples[0][0] < deadline:
                self._samples.popleft()
            values = sorted(v for _, v in self._samples)
        if not values:
            return {q: math.nan for q in SUMMARY_QUANTILES}
        return {q: values[min(len(values) - 1, int(math.ceil(round(q * len(values), 6))) - 1)] for q in SUMMARY_QUANTILES}

    def collect(self):
        label_names = list(self.labels)
        label_values = list(self.labels.values())
        family = SummaryMetricFamily(self.name, self.documentation, labels=label_names)
        with self._lock:
            count, total = self._count, self._sum
        family.add_metric(label_values, count_value=count, sum_value=total)
        for q, value in self.quantiles().items():
            family.add_sample(self.name, dict(zip(label_names, label_values), quantile=str(q)), value)
        yield family

    def describe(self):
        return [SummaryMetricFamily(self.name, self.documentation, labels=list(self.labels))]


class AgentMetrics:
    """
    Metric handles of one agent, pre-labeled with the cluster name.
    Everything is registered on `registry` so tests can use a private one.
    """
    def __init__(self, cluster_name:str, registry:CollectorRegistry|None=None):
        self.cluster_name = cluster_name
        self.registry = registry if registry is not None else CollectorRegistry()
        labels = ["cluster_name"]

        self._clone_count = Counter("clone_count", "The clone operation count", labels, namespace=METRICS_NAMESPACE, registry=self.registry)
        self._clone_failure_count = Counter("clone_failure_count", "The clone operation failure count", labels, namespace=METRICS_NAMESPACE, registry=self.registry)
        self._clone_in_progress = Gauge("clone_in_progress", "Whether the clone operation is in progress or not", labels, namespace=METRICS_NAMESPACE, registry=self.registry)
        self._log_rotation_count = Counter("log_rotation_count", "The log rotation operation count", labels, namespace=METRICS_NAMESPACE, registry=self.registry)
        self._log_rotation_failure_count = Counter("log_rotation_failure_count", "The log rotation operation failure count", labels, namespace=METRICS_NAMESPACE, registry=self.registry)

        self.clone_count = self._clone_count.labels(cluster_name)
        self.clone_failure_count = self._clone_failure_count.labels(cluster_name)
        self.clone_in_progress = self._clone_in_progress.labels(cluster_name)
        self.log_rotation_count = self._log_rotation_count.labels(cluster_name)
        self.log_rotation_failure_count = self._log_rotation_failure_count.labels(cluster_name)

        self.clone_duration_seconds = QuantileSummary(
            f"{METRICS_NAMESPACE}_clone_duration_seconds",
            "The time took to clone operation",
            {"cluster_name": cluster_name},
        )
        self.log_rotation_duration_seconds = QuantileSummary(
            f"{METRICS_NAMESPACE}_log_rotation_duration_seconds",
            "The time took to log rotation operation",
            {"cluster_name": cluster_name},
        )
        self.registry.register(self.clone_duration_seconds)
        self.registry.register(self.log_rotation_duration_seconds)

        self._replication_delay: Gauge | None = None
        self._replication_delay_lock = threading.Lock()

    def register_replication_delay(self, name:str, index:int) -> Gauge:
        """Registers replication_delay_seconds if it is not registered yet and returns the labeled child."""
        with self._replication_delay_lock:
            if self._replication_delay is None:
                self._replication_delay = Gauge(
                    "replication_delay_seconds",
                    "The replication delay of this instance from the primary",
                    ["cluster_name", "name", "index"],
                    namespace=METRICS_NAMESPACE,
                    registry=self.registry,
                )
            return self._replication_delay.labels(self.cluster_name, name, str(index))

    def unregister_replication_delay(self):
        with self._replication_delay_lock:
            if self._replication_delay is not None:
                self.registry.unregister(self._replication_delay)
                self._replication_delay = None

    @property
    def replication_delay_registered(self) -> bool:
        return self._replication_delay is not None
