from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import List, Optional, Tuple

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore
from langchain_text_splitters import RecursiveCharacterTextSplitter

from config import Settings, settings
from console import status
from errors import external_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentChunk:
    text: str
    offset: int


def split_content(content: str, chunk_size: int, chunk_overlap: int) -> List[ContentChunk]:
    """
    Split fetched page text into overlapping chunks, preferring paragraph,
    then line, then word boundaries.
    """
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        add_start_index=True,
    )
    return [
        ContentChunk(text=doc.page_content, offset=doc.metadata["start_index"])
        for doc in splitter.create_documents([content])
    ]


def content_key(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class EmbeddingIndex:
    """
    Chunks of one fetched content blob plus their embeddings, held in an
    in-memory vector store.
    """

    def __init__(self, chunks: List[ContentChunk], embeddings: Embeddings) -> None:
        self.chunks: Tuple[ContentChunk, ...] = tuple(chunks)
        self.vectorstore = InMemoryVectorStore(embedding=embeddings)
        if self.chunks:
            documents = [
                Document(
                    page_content=chunk.text,
                    metadata={"start_index": chunk.offset, "chunk_index": i},
                )
                for i, chunk in enumerate(self.chunks)
            ]
            with external_call("Embedding content"):
                self.vectorstore.add_documents(documents)

    def __len__(self) -> int:
        return len(self.chunks)


def retrieve(index: EmbeddingIndex, question: str, k: int = 4) -> List[Document]:
    """
    Return up to k chunks ordered by cosine similarity to the question.
    Equal scores keep the order the chunks were added in.
    """
    if not len(index):
        return []

    with external_call("Similarity search"):
        scored = index.vectorstore.similarity_search_with_score(question, k=len(index))

    ranked = sorted(scored, key=lambda pair: (-pair[1], pair[0].metadata["chunk_index"]))
    return [doc for doc, _score in ranked[:k]]


class EmbeddingCache:
    """
    Least-recently-used map from fetched content to its EmbeddingIndex.

    Keys are SHA-256 digests of the content, so identical text always reuses
    the same index and any difference triggers a rebuild.
    """

    def __init__(self, embeddings: Embeddings, config: Optional[Settings] = None) -> None:
        self.config = config or settings
        self.embeddings = embeddings
        self.capacity = self.config.embedding_cache_size
        self._indexes: "OrderedDict[str, EmbeddingIndex]" = OrderedDict()

    def __contains__(self, content: str) -> bool:
        return content_key(content) in self._indexes

    def __len__(self) -> int:
        return len(self._indexes)

    def get_or_build(self, content: str) -> EmbeddingIndex:
        key = content_key(content)
        index = self._indexes.get(key)
        if index is not None:
            status("Using cached embeddings...")
            self._indexes.move_to_end(key)
            return index

        status("Creating embeddings...")
        chunks = split_content(content, self.config.chunk_size, self.config.chunk_overlap)
        index = EmbeddingIndex(chunks, self.embeddings)
        self._indexes[key] = index
        logger.debug("built index %s with %d chunks", key[:12], len(index))

        while len(self._indexes) > self.capacity:
            evicted, _ = self._indexes.popitem(last=False)
            logger.debug("evicted index %s", evicted[:12])

        status("Created embeddings stored in an in-memory vector store\n")
        return index

    def clear(self) -> None:
        self._indexes.clear()
