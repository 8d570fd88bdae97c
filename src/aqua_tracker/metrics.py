from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

TRACKER_REQUESTS = Counter(
    "aqua_tracker_requests",
    "Tracker HTTP round trips by classified outcome",
    ["method", "outcome"],
    registry=registry,
)

TOKEN_EVENTS = Counter(
    "aqua_tracker_token_events",
    "Token lifecycle transitions",
    ["event"],
    registry=registry,
)

LOCKED_UPDATES = Counter(
    "aqua_tracker_locked_updates",
    "Locked item updates by final result",
    ["result"],
    registry=registry,
)
