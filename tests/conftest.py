import threading
from collections import Counter

import pytest

from wikiwalk.errors import FetchError
from wikiwalk.titles import canon
from wikiwalk.wikipedia import Summary


class FakeSource:
    """In-memory Link Source. Keys are canonicalized; calls are counted per (method, title)."""

    def __init__(self, links=None, tags=None, summaries=None, fail_tags=(), fail_links=()):
        self.links = {canon(k): {canon(v) for v in vs} for k, vs in (links or {}).items()}
        self.tags = {canon(k): set(vs) for k, vs in (tags or {}).items()}
        self.summaries = {canon(k): v for k, v in (summaries or {}).items()}
        self.fail_tags = {canon(t) for t in fail_tags}
        self.fail_links = {canon(t) for t in fail_links}
        self.calls = Counter()
        self._lock = threading.Lock()

    def _count(self, method, title):
        with self._lock:
            self.calls[(method, title)] += 1

    def resolve_links(self, title):
        self._count("links", title)
        if title in self.fail_links:
            raise FetchError(f"Wikipedia API error (503) for {title}")
        return set(self.links.get(title, ()))

    def resolve_tags(self, title):
        self._count("tags", title)
        if title in self.fail_tags:
            raise FetchError(f"Wikipedia API error (503) for {title}")
        return set(self.tags.get(title, ()))

    def resolve_summary(self, title):
        self._count("summary", title)
        return self.summaries.get(title)


class BlockingSource(FakeSource):
    """FakeSource whose resolve_links blocks for one title until released."""

    def __init__(self, block_on, **kwargs):
        super().__init__(**kwargs)
        self.block_on = canon(block_on)
        self.entered = threading.Event()
        self.release = threading.Event()

    def resolve_links(self, title):
        if title == self.block_on:
            self.entered.set()
            self.release.wait(5)
        return super().resolve_links(title)


@pytest.fixture
def make_source():
    return FakeSource


@pytest.fixture
def summary():
    return Summary(text="A test article.", canonical_url="https://en.wikipedia.org/wiki/Test")


@pytest.fixture
def blocking_source():
    return BlockingSource
