import math
from typing import List, NamedTuple, Union

from errors import BenchError


class Success(NamedTuple):
    latency: float  # Seconds, connect through fully drained body


class Failure(NamedTuple):
    cause: BenchError


RequestOutcome = Union[Success, Failure]


class BenchStats:
    """Running counters and latencies for one benchmark run.

    Owned by the caller, written only by the benchmark loop, read by the
    reporter once total_duration has been set.
    """

    def __init__(self):
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.total_duration = 0.0
        # Sentinels until the first success; never reported as numbers.
        self.min_latency = float('inf')
        self.max_latency = 0.0
        self.latencies: List[float] = []

    def add_success(self, latency: float):
        self.total_requests += 1
        self.successful_requests += 1
        self.latencies.append(latency)

        if latency < self.min_latency:
            self.min_latency = latency
        if latency > self.max_latency:
            self.max_latency = latency

    def add_failure(self):
        self.total_requests += 1
        self.failed_requests += 1

    def record(self, outcome: RequestOutcome):
        if isinstance(outcome, Success):
            self.add_success(outcome.latency)
        else:
            self.add_failure()

    @property
    def has_latencies(self) -> bool:
        return bool(self.latencies)

    def avg_latency(self) -> float:
        if not self.latencies:
            return 0.0
        return sum(self.latencies) / len(self.latencies)

    def percentile(self, p: float) -> float:
        """Nearest-rank percentile, p in [0, 100]. No interpolation."""
        if not self.latencies:
            return 0.0
        sorted_latencies = sorted(self.latencies)
        idx = max(math.ceil(len(sorted_latencies) * p / 100.0) - 1, 0)
        idx = min(idx, len(sorted_latencies) - 1)
        return sorted_latencies[idx]

    def requests_per_second(self) -> float:
        # Failures count: this is the attempted request rate.
        if self.total_duration <= 0:
            return 0.0
        return self.total_requests / self.total_duration
