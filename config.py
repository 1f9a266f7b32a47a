"""Configuration constants for BlogBench."""

# Database settings
DB_PATH = "~/.blogbench/blogging.db"  # Database file location
DB_WAL_MODE = True  # Use WAL mode for concurrent access
DB_BUSY_TIMEOUT_MS = 5000  # SQLite busy timeout per connection

# Connection pool settings
POOL_CAPACITY = 4  # Number of pooled sessions
POOL_ACQUIRE_TIMEOUT = 5.0  # Seconds to wait for a free session
POOL_VALIDATE_ON_CHECKOUT = True  # Ping sessions before handing them out
POOL_WAIT_SLICE = 0.05  # Seconds between cancellation checks while waiting

# Query strategy settings
SPLIT_FETCH_THRESHOLD = 1000  # Estimated joined rows before switching to split fetch
CANCEL_CHECK_OPS = 1000  # SQLite VM instructions between cancellation checks

# Cache settings
QUERY_CACHE_TTL = None  # Seconds; None means explicit invalidation only
QUERY_CACHE_LOCK_STRIPES = 64  # Write locks shared by hash of fingerprint

# Seed settings
SEED_BLOGS = 1000  # Blogs seeded for benchmarks
SEED_POSTS_PER_BLOG = 9  # Posts seeded per blog for include/split scenarios
SEED_RANDOM_SEED = 42  # Seed for deterministic ratings
SEED_EPOCH = "2024-01-01T00:00:00"  # Creation date of blog 0; later blogs step back a day
SEED_MAX_RATING = 10  # Ratings are drawn from [0, SEED_MAX_RATING)

# Benchmark settings
BENCH_ITERATIONS = 50  # Timed iterations per variant
BENCH_WARMUP = 5  # Untimed iterations per variant
BENCH_KEYWORD = "Blog Name 1"  # Keyword used by the filtering scenario
