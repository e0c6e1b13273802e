"""Tests for the Wikipedia Link Source, with the HTTP session faked out."""

import pytest
import requests

from wikiwalk.errors import FetchError
from wikiwalk.wikipedia import Summary, WikipediaClient, is_generic_tag


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload if payload is not None else {}
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append({"url": url, "params": dict(params or {}), "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def page(**fields):
    return {"query": {"pages": {"123": dict(title="Test", **fields)}}}


def client(*responses, **kwargs):
    session = FakeSession(*responses)
    return WikipediaClient(session=session, **kwargs), session


class TestResolveLinks:
    def test_follows_continuation_and_drops_listings(self):
        first = page(links=[{"title": "Foo bar"}, {"title": "List of things"}])
        first["continue"] = {"plcontinue": "123|0|Next"}
        second = page(links=[{"title": "Baz"}])
        wiki, session = client(FakeResponse(first), FakeResponse(second))

        assert wiki.resolve_links("Test") == {"Foo_bar", "Baz"}
        assert session.requests[0]["params"]["prop"] == "links"
        assert session.requests[0]["params"]["plnamespace"] == 0
        assert "plcontinue" not in session.requests[0]["params"]
        assert session.requests[1]["params"]["plcontinue"] == "123|0|Next"

    def test_stops_at_cap(self):
        first = page(links=[{"title": "One"}, {"title": "Two"}])
        first["continue"] = {"plcontinue": "more"}
        wiki, session = client(FakeResponse(first), max_links=2)

        assert wiki.resolve_links("Test") == {"One", "Two"}
        assert len(session.requests) == 1

    def test_page_without_links(self):
        wiki, _ = client(FakeResponse(page()))
        assert wiki.resolve_links("Test") == set()


class TestResolveTags:
    def test_strips_prefix_and_generic_categories(self):
        payload = page(categories=[
            {"title": "Category:Programming languages"},
            {"title": "Category:Articles with short description"},
            {"title": "Category:CS1 errors: dates"},
            {"title": "Category:Use dmy dates from May 2020"},
            {"title": "Category:Good articles"},
        ])
        wiki, session = client(FakeResponse(payload))

        assert wiki.resolve_tags("Test") == {"Programming languages"}
        assert session.requests[0]["params"]["clshow"] == "!hidden"

    def test_follows_continuation(self):
        first = page(categories=[{"title": "Category:One"}])
        first["continue"] = {"clcontinue": "next"}
        second = page(categories=[{"title": "Category:Two"}])
        wiki, session = client(FakeResponse(first), FakeResponse(second))

        assert wiki.resolve_tags("Test") == {"One", "Two"}
        assert session.requests[1]["params"]["clcontinue"] == "next"


@pytest.mark.parametrize("name, generic", [
    ("Article with dead links", True),
    ("Articles containing video clips", True),
    ("Pages using infobox", True),
    ("Wikipedia semi-protected pages", True),
    ("Usenet", False),
    ("Mathematicians", False),
])
def test_is_generic_tag(name, generic):
    assert is_generic_tag(name) is generic


class TestResolveSummary:
    def test_extract_and_url(self):
        payload = {
            "extract": "Python is a programming language.",
            "content_urls": {"desktop": {"page": "https://en.wikipedia.org/wiki/Python"}},
        }
        wiki, session = client(FakeResponse(payload))

        assert wiki.resolve_summary("Python (language)") == Summary(
            text="Python is a programming language.",
            canonical_url="https://en.wikipedia.org/wiki/Python",
        )
        assert session.requests[0]["url"].endswith("Python%20%28language%29")

    def test_missing_page(self):
        wiki, _ = client(FakeResponse(status_code=404))
        assert wiki.resolve_summary("Nope") is None

    def test_transport_failure_is_not_fatal(self):
        wiki, _ = client(requests.ConnectionError("offline"))
        assert wiki.resolve_summary("Test") is None


class TestErrors:
    def test_http_error(self):
        wiki, _ = client(FakeResponse(status_code=503))
        with pytest.raises(FetchError):
            wiki.resolve_links("Test")

    def test_timeout(self):
        wiki, _ = client(requests.Timeout())
        with pytest.raises(FetchError, match="timed out"):
            wiki.resolve_tags("Test")

    def test_api_error_payload(self):
        wiki, _ = client(FakeResponse({"error": {"code": "invalidtitle", "info": "Bad title"}}))
        with pytest.raises(FetchError, match="Bad title"):
            wiki.resolve_links("Test")

    def test_retries_before_giving_up(self, monkeypatch):
        monkeypatch.setattr("wikiwalk.wikipedia.time.sleep", lambda s: None)
        wiki, session = client(requests.ConnectionError("flaky"), FakeResponse(page(links=[{"title": "X"}])),
                               retries=1)
        assert wiki.resolve_links("Test") == {"X"}
        assert len(session.requests) == 2
