from prometheus_client import Counter, Histogram

HTTP_REQUESTS_TOTAL = Counter(
    "compass_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_class"],
)

CHAT_SESSIONS_TOTAL = Counter(
    "compass_chat_sessions_total",
    "Assistant streaming sessions by outcome",
    ["outcome"],  # completed | error | transport_error | cancelled
)
CHAT_TTFT_SECONDS = Histogram(
    "compass_chat_ttft_seconds",
    "Time from session start to first appended token",
)
CHAT_FRAMES_DROPPED_TOTAL = Counter(
    "compass_chat_frames_dropped_total",
    "Stream records discarded as malformed",
)

ITEM_MUTATIONS_TOTAL = Counter(
    "compass_item_mutations_total",
    "Item persistence requests by field and outcome",
    ["field", "outcome"],  # success | failure
)
ITEM_MUTATION_SECONDS = Histogram(
    "compass_item_mutation_seconds",
    "Duration of item persistence requests in seconds",
    ["field"],
)
NOTES_COALESCED_TOTAL = Counter(
    "compass_notes_coalesced_total",
    "Notes edits superseded inside the debounce window",
)
