import logging
import re
import time
from dataclasses import dataclass
from typing import Set, Dict, Any, Optional, Tuple
from urllib.parse import quote

import requests

from wikiwalk import config
from wikiwalk.errors import FetchError
from wikiwalk.titles import canon

logger = logging.getLogger(__name__)

# Maintenance categories that say nothing about an article's subject.
GENERIC_TAG_PATTERNS = [
    re.compile(r"^Articles? "),
    re.compile(r"^Use "),
    re.compile(r"^Pages "),
    re.compile(r"^CS1 "),
    re.compile(r"^Good articles"),
    re.compile(r"^Wikipedia "),
]

LISTING_PREFIX = "List_of_"


def is_generic_tag(name: str) -> bool:
    return any(p.match(name) for p in GENERIC_TAG_PATTERNS)


def is_listing(title: str) -> bool:
    return title.startswith(LISTING_PREFIX)


@dataclass(frozen=True)
class Summary:
    text: str
    canonical_url: Optional[str] = None


class WikipediaClient:
    """Link Source backed by the MediaWiki action API and the REST summary endpoint."""

    def __init__(self, api_url: str = config.WIKI_API,
                 summary_url: str = config.REST_SUMMARY_BASE,
                 user_agent: str = config.USER_AGENT,
                 timeout: int = config.HTTP_TIMEOUT_S,
                 retries: int = config.HTTP_RETRIES,
                 max_links: int = config.MAX_LINKS,
                 max_tags: int = config.MAX_TAGS,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.summary_url = summary_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.retries = retries
        self.max_links = max_links
        self.max_tags = max_tags
        self.session = session or requests.Session()

    def resolve_links(self, title: str) -> Set[str]:
        """
        Get the article-namespace links of a page as canonical titles, following
        continuation tokens until exhausted or until max_links have been collected.
        "List of ..." pages are excluded.
        """
        links: Set[str] = set()
        continue_token = None

        while True:
            batch_links, continue_token = self._fetch_links_batch(title, continue_token)
            for link in batch_links:
                normalized = canon(link)
                if normalized and not is_listing(normalized):
                    links.add(normalized)

            if continue_token is None or len(links) >= self.max_links:
                break

        return links

    def resolve_tags(self, title: str) -> Set[str]:
        """
        Get the visible categories of a page, without the "Category:" prefix and
        without maintenance categories.
        """
        tags: Set[str] = set()
        continue_token = None

        while True:
            params = {
                "action": "query",
                "format": "json",
                "titles": title,
                "prop": "categories",
                "cllimit": "max",
                "clshow": "!hidden",
            }
            if continue_token:
                params["clcontinue"] = continue_token

            response = self._make_api_request(params)
            page = self._first_page(response)
            if not page or "categories" not in page:
                break

            for category in page["categories"]:
                name = re.sub(r"^Category:", "", category["title"])
                if not is_generic_tag(name):
                    tags.add(name)

            continue_token = response.get("continue", {}).get("clcontinue")
            if continue_token is None or len(tags) >= self.max_tags:
                break

        return tags

    def resolve_summary(self, title: str) -> Optional[Summary]:
        """
        Fetch the lead extract and canonical URL of a page. A missing summary is not
        an error for the walk, so every failure here is logged and mapped to None.
        """
        url = self.summary_url + quote(title, safe="")
        try:
            response = self.session.get(url, headers=self._headers({"Accept": "application/json"}),
                                        timeout=self.timeout)
            if not response.ok:
                return None
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Summary request failed for {title!r}: {e}")
            return None

        text = (data.get("extract") or "").strip()
        page_url = data.get("content_urls", {}).get("desktop", {}).get("page")
        if not text and not page_url:
            return None
        return Summary(text=text, canonical_url=page_url)

    def _fetch_links_batch(self, page_title: str, continue_token: Optional[str] = None) -> Tuple[Set[str], Optional[str]]:
        """
        Fetch a batch of links from a Wikipedia page, handling pagination from the MediaWiki API.
        Returns the linked page titles and the continuation token for the next batch, if any.
        """
        params = {
            "action": "query",
            "format": "json",
            "titles": page_title,
            "prop": "links",
            "pllimit": "max",
            "plnamespace": 0,
        }

        if continue_token:
            params["plcontinue"] = continue_token

        response = self._make_api_request(params)

        links = set()
        page = self._first_page(response)
        if page:
            for link in page.get("links", []):
                links.add(link["title"])

        next_continue = response.get("continue", {}).get("plcontinue")

        return links, next_continue

    @staticmethod
    def _first_page(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        pages = response.get("query", {}).get("pages", {})
        return next(iter(pages.values()), None)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if extra:
            headers.update(extra)
        return headers

    def _make_api_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make a GET request to the MediaWiki API using a dictionary of parameters. Returns the JSON response.
        """
        last_err: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                response = self.session.get(self.api_url, params=params, headers=self._headers(),
                                            timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
                break
            except requests.Timeout as e:
                last_err = FetchError("Request to Wikipedia API timed out")
                last_err.__cause__ = e
            except (requests.RequestException, ValueError) as e:
                last_err = FetchError(f"Wikipedia API error: {e}")
                last_err.__cause__ = e
            if attempt < self.retries:
                time.sleep(0.45 * (attempt + 1))
        else:
            raise last_err  # type: ignore[misc]

        if "error" in data:
            info = data["error"].get("info") or "Wikipedia API returned an error."
            raise FetchError(info)
        return data
