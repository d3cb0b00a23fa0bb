from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, TypedDict

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI, OpenAIEmbeddings
from langgraph.graph import END, START, StateGraph

from config import Settings, settings
from console import status
from embedding_index import EmbeddingCache, retrieve
from errors import ConfigurationError, external_call
from reasoning import ReasoningStep, SearchRequested, join_chunks, message_text
from wiki_fetcher import WikiFetcher

logger = logging.getLogger(__name__)

DEFAULT_THREAD_ID = "1"


answer_prompt = ChatPromptTemplate.from_template(
    """
Use the following pieces of retrieved context to answer the question.
If you don't know the answer or it's not in the context, just say that you don't know.

Question: {question}
Context: {context}
Answer:""".strip()
)


class ConversationState(TypedDict, total=False):
    question: str
    previous_question: str
    context: List[Document]
    search_term: str
    search_content: str
    answer: str


@dataclass
class TurnAnswer:
    answer: str
    search_term: Optional[str] = None
    context: List[str] = field(default_factory=list)


class WikiRAGPipeline:
    """
    Conversational RAG over Wikipedia:
    - search: the model answers directly or asks for a Wikipedia search
    - fetch_wiki: pull page text for the search term (skipped without one)
    - retrieve: embed the text once per distinct content, pick the closest chunks
    - generate: answer the question from those chunks
    """

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        embeddings: Optional[Embeddings] = None,
        fetcher: Optional[WikiFetcher] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.config = config or settings
        if (llm is None or embeddings is None) and not self.config.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set. Please configure it in your environment or .env file."
            )

        self.llm = llm or ChatOpenAI(
            model=self.config.openai_model,
            temperature=self.config.temperature,
            api_key=self.config.openai_api_key,
            timeout=self.config.request_timeout,
        )
        self.embeddings = embeddings or OpenAIEmbeddings(
            model=self.config.embedding_model,
            api_key=self.config.openai_api_key,
            timeout=self.config.request_timeout,
        )
        self.fetcher = fetcher or WikiFetcher(self.config)
        self.reasoning = ReasoningStep(self.llm)
        self.cache = EmbeddingCache(self.embeddings, self.config)
        self.graph = self._build_graph()
        self._threads: Dict[str, ConversationState] = {}

    # ---------- Graph nodes ----------

    def _search(self, state: ConversationState) -> dict:
        result = self.reasoning.reason(state)
        if isinstance(result, SearchRequested):
            return {
                "search_term": result.search_term,
                "answer": result.provisional_answer,
                "previous_question": state["question"],
            }
        return {"search_term": "", "answer": result.text}

    def _fetch_wiki(self, state: ConversationState) -> dict:
        if not state.get("search_term"):
            status("Answering based on previous context ....")
            return {}

        status(f"Fetching Wikipedia content for {state['search_term']}")
        return {"search_content": self.fetcher.fetch(state["search_term"])}

    def _route_after_fetch(self, state: ConversationState) -> str:
        # Nothing fetched yet in this conversation: the model's direct answer stands.
        if "search_content" not in state:
            return END
        return "retrieve"

    def _retrieve(self, state: ConversationState) -> dict:
        index = self.cache.get_or_build(state["search_content"])
        return {"context": retrieve(index, state["question"], k=self.config.k)}

    def _generate(self, state: ConversationState) -> dict:
        msg = answer_prompt.format(
            question=state["question"],
            context=join_chunks(state["context"]),
        )
        with external_call("Language model"):
            response = self.llm.invoke(msg)
        return {"answer": message_text(response)}

    def _build_graph(self):
        graph = StateGraph(ConversationState)
        graph.add_node("search", self._search)
        graph.add_node("fetch_wiki", self._fetch_wiki)
        graph.add_node("retrieve", self._retrieve)
        graph.add_node("generate", self._generate)

        graph.add_edge(START, "search")
        graph.add_edge("search", "fetch_wiki")
        graph.add_conditional_edges(
            "fetch_wiki",
            self._route_after_fetch,
            {"retrieve": "retrieve", END: END},
        )
        graph.add_edge("retrieve", "generate")
        graph.add_edge("generate", END)
        return graph.compile()

    # ---------- Conversation API ----------

    def conversation(self, thread_id: str = DEFAULT_THREAD_ID) -> ConversationState:
        return ConversationState(**self._threads.get(thread_id, {}))

    def ask(self, question: str, thread_id: str = DEFAULT_THREAD_ID) -> TurnAnswer:
        """
        Run one turn. The conversation only advances when every step succeeds;
        a failed turn leaves the previous state untouched.
        """
        question = question.strip()
        if not question:
            raise ValueError("Question must not be empty.")

        inputs: ConversationState = {**self._threads.get(thread_id, {}), "question": question}
        result: ConversationState = self.graph.invoke(inputs)
        self._threads[thread_id] = result

        logger.debug(
            "thread %s: search_term=%r chunks=%d",
            thread_id,
            result.get("search_term"),
            len(result.get("context", [])),
        )
        return TurnAnswer(
            answer=result.get("answer", ""),
            search_term=result.get("search_term") or None,
            context=[doc.page_content for doc in result.get("context", [])],
        )

    def reset(self, thread_id: str = DEFAULT_THREAD_ID) -> None:
        self._threads.pop(thread_id, None)

    def close(self) -> None:
        self._threads.clear()
        self.cache.clear()
