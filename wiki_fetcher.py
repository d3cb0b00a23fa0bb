from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import List, Optional

import wikipedia
from wikipedia.exceptions import DisambiguationError

from config import Settings, settings
from console import status
from errors import ExternalServiceError, external_call

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 3


class WikiFetcher:
    """
    Search Wikipedia and return the full text of the top matching pages.

    Page fetches for one search run concurrently (at most MAX_SEARCH_RESULTS
    at a time); the joined text always follows search-result order.
    Each fetch gets its own worker threads, so a call that never returns
    only costs the turn it belongs to.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or settings
        wikipedia.set_lang(self.config.wiki_language)

    def _wait(self, future: Future, deadline: float, what: str):
        remaining = max(deadline - time.monotonic(), 0.0)
        try:
            return future.result(timeout=remaining)
        except FuturesTimeout as exc:
            future.cancel()
            raise ExternalServiceError(
                f"{what} timed out after {self.config.request_timeout:g}s"
            ) from exc

    @staticmethod
    def _page_text(title: str) -> Optional[str]:
        # auto_suggest would silently swap the title for a "did you mean" guess
        try:
            return wikipedia.page(title, auto_suggest=False).content
        except DisambiguationError:
            logger.debug("skipping disambiguation page %r", title)
            return None

    def _search_titles(self, pool: ThreadPoolExecutor, search_term: str) -> List[str]:
        what = f"Wikipedia search for '{search_term}'"
        deadline = time.monotonic() + self.config.request_timeout
        with external_call(what):
            future = pool.submit(wikipedia.search, search_term, results=MAX_SEARCH_RESULTS)
            titles = self._wait(future, deadline, what)
        return list(titles)[:MAX_SEARCH_RESULTS]

    def fetch(self, search_term: str) -> str:
        status(f"Searching wikipedia for {search_term}")
        pool = ThreadPoolExecutor(max_workers=MAX_SEARCH_RESULTS, thread_name_prefix="wiki")
        try:
            titles = self._search_titles(pool, search_term)
            if not titles:
                raise ExternalServiceError(f"No Wikipedia pages matched '{search_term}'")

            deadline = time.monotonic() + self.config.request_timeout
            futures = [pool.submit(self._page_text, title) for title in titles]
            contents: List[str] = []
            found: List[str] = []
            for title, future in zip(titles, futures):
                what = f"Fetching Wikipedia page '{title}'"
                with external_call(what):
                    text = self._wait(future, deadline, what)
                if text is not None:
                    contents.append(text)
                    found.append(title)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if not contents:
            raise ExternalServiceError(f"Only disambiguation pages matched '{search_term}'")

        logger.debug("fetched %d pages for %r: %s", len(found), search_term, found)
        status(f"Wikipedia search complete, found {', '.join(found)} results")
        return "\n".join(contents)
