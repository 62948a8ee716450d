"""
Prometheus metrics for assessment attempts.
Expose with: start_metrics_server(port=9109)
"""
from prometheus_client import Counter, start_http_server

# Attempt hydration by source (cache, network, error)
hydrations_total = Counter(
    "assessment_hydrations_total",
    "Attempt hydrations by source",
    ["source"],
)

# Per-question autosave calls (ok, fail)
autosaves_total = Counter(
    "assessment_autosaves_total",
    "Autosave calls by result",
    ["result"],
)

# Submit attempts by trigger (manual, auto) and result (ok, fail, skipped)
submits_total = Counter(
    "assessment_submits_total",
    "Submit calls by trigger and result",
    ["trigger", "result"],
)

# Timer expiries that reached the expiry callback
timer_expiries_total = Counter(
    "assessment_timer_expiries_total",
    "Attempt timers that reached zero",
)

def start_metrics_server(port: int = 9109) -> None:
    """Start Prometheus metrics HTTP server on the given port."""
    start_http_server(port)

def mark_hydration(source: str) -> None:
    """Increment the hydration counter for a source (cache, network, error)."""
    hydrations_total.labels(source=source).inc()

def mark_autosave(result: str) -> None:
    """Increment the autosave counter with its result."""
    autosaves_total.labels(result=result).inc()

def mark_submit(trigger: str, result: str) -> None:
    """Increment the submit counter for a trigger and result."""
    submits_total.labels(trigger=trigger, result=result).inc()

def mark_expiry() -> None:
    """Count one timer expiry."""
    timer_expiries_total.inc()
