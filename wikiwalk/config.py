import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# -----------------------------
# Wikipedia endpoints
# -----------------------------
WIKI_API = os.getenv("WIKI_API", "https://en.wikipedia.org/w/api.php")
REST_SUMMARY_BASE = os.getenv("REST_SUMMARY_BASE", "https://en.wikipedia.org/api/rest_v1/page/summary/")
WIKI_PAGE_BASE = os.getenv("WIKI_PAGE_BASE", "https://en.wikipedia.org/wiki/")
USER_AGENT = os.getenv("WIKIWALK_USER_AGENT", "WikiWalk/1.0 (random walk explorer)")

# Wikipedia requests
HTTP_TIMEOUT_S = _env_int("WIKIWALK_HTTP_TIMEOUT", 15)
# Transport-level retries only. The walk itself never retries a failed step.
HTTP_RETRIES = _env_int("WIKIWALK_HTTP_RETRIES", 0)

# Pagination caps
MAX_LINKS = _env_int("WIKIWALK_MAX_LINKS", 800)
MAX_TAGS = _env_int("WIKIWALK_MAX_TAGS", 160)

# -----------------------------
# Walk
# -----------------------------
SIMILARITY_NEIGHBORS = _env_int("WIKIWALK_SIMILARITY_NEIGHBORS", 3)
MAX_LOG_ITEMS = _env_int("WIKIWALK_MAX_LOG_ITEMS", 50)
BRANCHING = _env_int("WIKIWALK_BRANCHING", 1)
MAX_BRANCHING = 50
EXPERIMENTAL_BRANCHING = 15
AVOID_VISITED = _env_bool("WIKIWALK_AVOID_VISITED", False)
FETCH_WORKERS = _env_int("WIKIWALK_FETCH_WORKERS", 8)

PLACEHOLDER_SUMMARY = "No summary available."
