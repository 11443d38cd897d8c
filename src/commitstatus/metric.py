from prometheus_client import Counter

event_counter = Counter(
    "commitstatus_events_total",
    "Total number of handled controller events",
    labelnames=["kind", "result"],
)

upsert_counter = Counter(
    "commitstatus_upsert_total",
    "Commit status upserts by outcome",
    labelnames=["action"],
)

notify_counter = Counter(
    "commitstatus_notify_total",
    "Commit status notifications",
    labelnames=["state", "result"],
)

handler_error_counter = Counter(
    "commitstatus_handler_error_total",
    "Errors raised by event handlers",
    labelnames=["kind"],
)

conflict_retry_counter = Counter(
    "commitstatus_conflict_retry_total",
    "Commit status writes retried after a concurrent modification",
)

store_write_total = Counter(
    "commitstatus_store_write_total",
    "Commit status store writes",
    labelnames=["op", "result"],
)

scheduler_counter = Counter(
    "commitstatus_scheduler_total",
    "Keyed scheduler decisions",
    labelnames=["result"],
)
