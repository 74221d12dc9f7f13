import logging
import sys
import time
from typing import NamedTuple, Optional, TextIO, Union

from config import PROGRESS_INTERVAL
from metrics import BenchStats, Failure
from reporter import format_banner, format_completion, format_diagnostic, format_progress, format_summary
from request_executor import DiagnosticResponse, RequestSpec, execute, execute_diagnostic
from transport import Connector

logger = logging.getLogger(__name__)


class TerminationPolicy(NamedTuple):
    duration: Optional[float] = None  # Seconds; None selects single-shot mode
    max_requests: Optional[int] = None  # None means unbounded by count

    @property
    def single_shot(self) -> bool:
        return self.duration is None

    def should_continue(self, elapsed: float, total_requests: int) -> bool:
        # Checked only between requests; a stalled request can overrun the duration.
        if self.duration is None or elapsed >= self.duration:
            return False
        return self.max_requests is None or total_requests < self.max_requests


async def run_benchmark(connector: Connector, spec: RequestSpec, policy: TerminationPolicy,
                        stats: BenchStats, out: Optional[TextIO] = None,
                        request_timeout: Optional[float] = None,
                        progress_interval: int = PROGRESS_INTERVAL) -> BenchStats:
    """Issue requests one at a time until the first bound is reached.

    Per-request failures are logged and counted; they never stop the loop.
    """
    if policy.single_shot:
        raise ValueError("run_benchmark needs a duration; use run_single_shot instead")
    out = out or sys.stdout

    out.write(format_banner(spec, policy.duration, policy.max_requests))
    logger.info(f"Starting benchmark: {spec.method} {spec.target.origin}{spec.target.path}, "
                f"duration={policy.duration}s, max_requests={policy.max_requests}")

    bench_start = time.perf_counter()
    while policy.should_continue(time.perf_counter() - bench_start, stats.total_requests):
        outcome = await execute(connector, spec, timeout=request_timeout)
        stats.record(outcome)
        if isinstance(outcome, Failure):
            logger.error(f"Request failed: {outcome.cause}")

        if progress_interval and stats.total_requests % progress_interval == 0:
            out.write(format_progress(stats.total_requests, time.perf_counter() - bench_start))
            out.flush()

    stats.total_duration = time.perf_counter() - bench_start
    logger.info(f"Benchmark finished in {stats.total_duration:.2f}s: "
                f"{stats.successful_requests} ok, {stats.failed_requests} failed")

    out.write("\n\n")
    out.write(format_summary(stats))
    out.flush()
    return stats


async def run_single_shot(connector: Connector, spec: RequestSpec, out: Optional[TextIO] = None,
                          err: Optional[TextIO] = None,
                          request_timeout: Optional[float] = None) -> Union[DiagnosticResponse, Failure]:
    """Send exactly one request and dump the full response. A failure is terminal."""
    out = out or sys.stdout
    err = err or sys.stderr
    result = await execute_diagnostic(connector, spec, timeout=request_timeout)
    if isinstance(result, Failure):
        err.write(f"Request failed: {result.cause}\n")
        err.flush()
        return result

    out.write(format_diagnostic(result))
    out.write(format_completion(result.latency))
    out.flush()
    return result
