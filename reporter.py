from typing import List, Optional

from metrics import BenchStats
from request_executor import DiagnosticResponse, RequestSpec

REPORTED_PERCENTILES = (50, 90, 95, 99)


def _ms(seconds: float) -> str:
    return f"{seconds * 1000:.3f}ms"


def _seconds(value: float) -> str:
    # Whole numbers print without ".0"; never exponent notation.
    if float(value).is_integer():
        return str(int(value))
    return f"{value:f}".rstrip('0')


def _header_value_text(value: bytes) -> str:
    # Only visible ASCII (plus space/tab) prints as text.
    if all(b == 0x09 or 0x20 <= b <= 0x7e for b in value):
        return value.decode('ascii')
    return "<binary>"


def format_banner(spec: RequestSpec, duration: float, max_requests: Optional[int]) -> str:
    lines = [f"Starting benchmark for {_seconds(duration)} seconds..."]
    if max_requests is not None:
        lines.append(f"Request limit: {max_requests}")
    lines.append(f"URL: {spec.target.origin}{spec.target.path}")
    lines.append(f"Method: {spec.method}")
    if spec.body is not None:
        lines.append("Body: <provided>")
    lines.append("")
    return "\n".join(lines) + "\n"


def format_progress(total_requests: int, elapsed: float) -> str:
    # Carriage return so successive progress lines overwrite each other on a terminal.
    return f"\rRequests: {total_requests} | Elapsed: {elapsed:.1f}s"


def format_summary(stats: BenchStats) -> str:
    lines: List[str] = [
        "=== Benchmark Results ===",
        f"Total Duration: {stats.total_duration:.3f}s",
        f"Total Requests: {stats.total_requests}",
        f"Successful: {stats.successful_requests}",
        f"Failed: {stats.failed_requests}",
        f"Requests/sec: {stats.requests_per_second():.2f}",
    ]

    if stats.has_latencies:
        lines += [
            "",
            "=== Latency Statistics ===",
            f"Min: {_ms(stats.min_latency)}",
            f"Max: {_ms(stats.max_latency)}",
            f"Avg: {_ms(stats.avg_latency())}",
        ]
        lines += [f"P{p}: {_ms(stats.percentile(p))}" for p in REPORTED_PERCENTILES]

    return "\n".join(lines) + "\n"


def format_diagnostic(response: DiagnosticResponse) -> str:
    lines = [f"Response Status: {response.status} {response.reason}".rstrip(), "Response Headers:"]
    lines += [f"  {name}: {_header_value_text(value)}" for name, value in response.headers]
    lines += ["", "Response Body:", response.body.decode('utf-8', errors='replace'), ""]
    return "\n".join(lines) + "\n"


def format_completion(latency: float) -> str:
    return f"Request completed in: {latency:.3f}s ({int(latency * 1000)}ms)\n"
