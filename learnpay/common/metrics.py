"""Prometheus metric definitions shared across apps."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payment_requests_total = Counter("payment_requests_total", "Total payment requests", ["service", "operation"])
payment_success_total = Counter("payment_success_total", "Total successful payments", ["service", "method"])
payment_failure_total = Counter("payment_failure_total", "Total failed payments", ["service", "reason"])
payment_latency_seconds = Histogram(
    "payment_latency_seconds",
    "Payment handler latency seconds",
    ["service", "operation"],
)
ledger_writes_total = Counter(
    "ledger_writes_total",
    "Ledger record_outcome results by action",
    ["service", "action", "status"],
)
ledger_regressions_total = Counter(
    "ledger_regressions_total",
    "Rejected attempts to move a successful entry to failed",
    ["service"],
)
retries_total = Counter("retries_total", "Retry count", ["service", "dependency"])
signature_failures_total = Counter(
    "signature_failures_total",
    "Payment callbacks rejected for an invalid HMAC signature",
    ["service"],
)
free_bypass_refused_total = Counter(
    "free_bypass_refused_total",
    "Free-enrollment order ids presented with a nonzero amount",
    ["service"],
)
gateway_errors_total = Counter("gateway_errors_total", "Payment gateway call failures", ["service"])
email_sent_total = Counter("email_sent_total", "Emails sent by outcome", ["service", "outcome"])


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
