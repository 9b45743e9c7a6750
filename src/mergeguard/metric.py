from prometheus_client import Counter, Gauge

request_counter = Counter(
    "mergeguard_num_req", "Total number of requests", labelnames=["path"]
)
webhook_counter = Counter(
    "mergeguard_num_webhook", "Total number of webhooks", labelnames=["event"]
)
webhook_skipped_counter = Counter(
    "mergeguard_num_webhook_skipped",
    "Total number of skipped webhooks",
    labelnames=["event", "reason"],
)

queue_size = Gauge("mergeguard_queue_size", "Number of jobs waiting for refresh")

jobs_enqueued_counter = Counter(
    "mergeguard_num_jobs_enqueued", "Number of refresh jobs put onto the queue"
)
jobs_dispatched_counter = Counter(
    "mergeguard_num_jobs_dispatched",
    "Number of unique refresh jobs dispatched after deduplication",
)

error_counter = Counter(
    "mergeguard_error_counter", "Total number of errors", labelnames=["context"]
)

api_call_count = Counter(
    "mergeguard_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
)

check_run_post = Counter(
    "mergeguard_check_run_post",
    "Number of gate check run decisions",
    labelnames=["action"],
)

worker_error_count = Counter(
    "mergeguard_num_worker_error",
    "Number of errors encountered by the periodic refresh worker",
)
