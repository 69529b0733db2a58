import os
import tempfile

# Module-level stores and the app limiter read their settings at import time.
os.environ.setdefault(
    "VERMAFARM_DB_PATH",
    os.path.join(tempfile.mkdtemp(prefix="vermafarm-tests-"), "vermafarm.sqlite3"),
)
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "100000")
