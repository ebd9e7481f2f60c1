from prometheus_client import Counter, Histogram, Gauge, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # already registered, reuse the existing collector
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "rhythm_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "rhythm_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

INTENTS_PARSED_TOTAL = get_or_create_metric(
    "rhythm_intents_parsed_total",
    "Intents produced by the parser",
    Counter,
    labelnames=["kind"],
)

FLOW_OUTCOMES_TOTAL = get_or_create_metric(
    "rhythm_flow_outcomes_total",
    "Utterances that reached a terminal flow state",
    Counter,
    labelnames=["outcome"],
)

OPEN_TASKS = get_or_create_metric(
    "rhythm_open_tasks", "Tasks not yet done", Gauge
)
