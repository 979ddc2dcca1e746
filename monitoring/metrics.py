"""
Prometheus metrics for the sync core
"""

from prometheus_client import Counter, Gauge, Histogram, Info

sync_info = Info('sonichain_sync', 'Ledger sync core information')

# Read path
read_calls_total = Counter(
    'sonichain_read_calls_total', 'Read-only contract calls by outcome',
    ['function', 'outcome']
)
read_call_seconds = Histogram(
    'sonichain_read_call_seconds', 'Read-only contract call latency in seconds',
    ['function']
)

# Rate limiter
rate_limiter_queue_length = Gauge('sonichain_rate_limiter_queue_length', 'Requests waiting for admission')
rate_limiter_window_requests = Gauge('sonichain_rate_limiter_window_requests', 'Requests admitted in the current window')
rate_limiter_waits_total = Counter('sonichain_rate_limiter_waits_total', 'Times the limiter waited for the window to free up')

# Cache
cache_lookups_total = Counter(
    'sonichain_cache_lookups_total', 'Cache lookups by result',
    ['result']
)

# Sync
entity_fetches_total = Counter(
    'sonichain_entity_fetches_total', 'Entity fetches by outcome',
    ['outcome']
)

# Transactions
pending_transactions = Gauge('sonichain_pending_transactions', 'Tracked transactions still pending')

# Health
health_check_status = Gauge('sonichain_health_check_status', 'Health check status by component', ['component'])
