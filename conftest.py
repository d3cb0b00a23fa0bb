"""
Shared fakes for the test suite: a scripted chat model, counting embeddings
and an in-process stand-in for the wikipedia package.
"""

import re
import threading
import time
from typing import Dict, List, Optional

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage
from wikipedia.exceptions import DisambiguationError

import wiki_fetcher
from config import Settings
from rag_core import WikiRAGPipeline
from wiki_fetcher import WikiFetcher


def reply(text: str = "") -> AIMessage:
    return AIMessage(content=text)


def search_reply(search_term: str, text: str = "") -> AIMessage:
    return AIMessage(
        content=text,
        tool_calls=[{"name": "wikipedia", "args": {"searchTerm": search_term}, "id": "call_1"}],
    )


class FakeChatModel:
    """Returns queued AIMessages in order and keeps every prompt it saw."""

    def __init__(self, replies: Optional[List[AIMessage]] = None) -> None:
        self.replies = list(replies or [])
        self.prompts: List[str] = []
        self.bound_tools: list = []

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = list(tools)
        return self

    def queue(self, *replies: AIMessage) -> None:
        self.replies.extend(replies)

    def invoke(self, prompt, **kwargs) -> AIMessage:
        self.prompts.append(str(prompt))
        if not self.replies:
            raise AssertionError(f"Unexpected model call with prompt: {prompt}")
        item = self.replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class CountingEmbeddings(Embeddings):
    """Bag-of-words vectors over a small vocabulary; counts every call."""

    def __init__(self) -> None:
        self.document_calls = 0
        self.query_calls = 0
        self.embedded_texts: List[str] = []
        self.vocabulary: Dict[str, int] = {}

    def _vector(self, text: str) -> List[float]:
        vector = [0.0] * 64
        vector[0] = 0.1
        for word in re.findall(r"[a-z]+", text.lower()):
            slot = self.vocabulary.setdefault(word, 1 + len(self.vocabulary) % 63)
            vector[slot] += 1.0
        return vector

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.document_calls += 1
        self.embedded_texts.extend(texts)
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> List[float]:
        self.query_calls += 1
        return self._vector(text)


class FakePage:
    def __init__(self, content: str) -> None:
        self.content = content


class FakeWikipedia:
    """Search results and page bodies keyed by term / title."""

    def __init__(self) -> None:
        self.results: Dict[str, List[str]] = {}
        self.pages: Dict[str, str] = {}
        self.delays: Dict[str, float] = {}
        self.ambiguous: Dict[str, List[str]] = {}
        self.searched: List[str] = []
        self.fetched: List[str] = []
        self._lock = threading.Lock()

    def search(self, query: str, results: int = 10, suggestion: bool = False) -> List[str]:
        self.searched.append(query)
        return list(self.results.get(query, []))

    def page(self, title: str, auto_suggest: bool = True) -> FakePage:
        with self._lock:
            self.fetched.append(title)
        time.sleep(self.delays.get(title, 0))
        if title in self.ambiguous:
            raise DisambiguationError(title, self.ambiguous[title])
        if title not in self.pages:
            raise LookupError(f"Page id \"{title}\" does not match any pages.")
        return FakePage(self.pages[title])


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        chunk_size=200,
        chunk_overlap=20,
        request_timeout=5,
        embedding_cache_size=4,
    )


@pytest.fixture
def fake_wiki(monkeypatch) -> FakeWikipedia:
    fake = FakeWikipedia()
    monkeypatch.setattr(wiki_fetcher.wikipedia, "search", fake.search)
    monkeypatch.setattr(wiki_fetcher.wikipedia, "page", fake.page)
    monkeypatch.setattr(wiki_fetcher.wikipedia, "set_lang", lambda lang: None)
    return fake


@pytest.fixture
def fake_llm() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def embeddings() -> CountingEmbeddings:
    return CountingEmbeddings()


@pytest.fixture
def fetcher(fake_wiki, test_settings) -> WikiFetcher:
    return WikiFetcher(test_settings)


@pytest.fixture
def pipeline(fake_llm, embeddings, fetcher, test_settings):
    rag = WikiRAGPipeline(llm=fake_llm, embeddings=embeddings, fetcher=fetcher, config=test_settings)
    yield rag
    rag.close()
