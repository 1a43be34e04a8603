"""Prometheus metrics exporters."""
from prometheus_client import Counter, Histogram, CollectorRegistry

# Create registry
registry = CollectorRegistry()

# ========== RUN METRICS ==========
price_check_runs = Counter(
    'price_check_runs_total',
    'Total number of price check runs',
    ['outcome'],
    registry=registry
)

# ========== MARKET DATA METRICS ==========
price_fetches = Counter(
    'price_fetches_total',
    'Total number of market data fetches',
    ['source'],
    registry=registry
)

price_fetch_time = Histogram(
    'price_fetch_seconds',
    'Market data fetch time in seconds',
    registry=registry
)

# ========== POST METRICS ==========
posts_classified = Counter(
    'posts_classified_total',
    'Posts by data validity classification',
    ['validity'],
    registry=registry
)

posts_closed = Counter(
    'posts_closed_total',
    'Total number of posts closed by evaluation',
    ['outcome'],
    registry=registry
)

# ========== PERSISTENCE METRICS ==========
persistence_fallbacks = Counter(
    'persistence_fallbacks_total',
    'Times batched writes fell back to row-by-row updates',
    registry=registry
)

# ========== HELPER FUNCTIONS ==========
def record_run(outcome: str):
    """Record a finished (or rejected) price check run."""
    price_check_runs.labels(outcome=outcome).inc()

def record_price_fetch(source: str, seconds: float):
    """Record a market data fetch and its latency."""
    price_fetches.labels(source=source).inc()
    price_fetch_time.observe(seconds)

def record_classification(validity: str):
    """Record a data validity classification."""
    posts_classified.labels(validity=validity).inc()

def record_post_closed(outcome: str):
    """Record a post closing."""
    posts_closed.labels(outcome=outcome).inc()

def record_persistence_fallback():
    """Record a fallback to individual writes."""
    persistence_fallbacks.inc()
