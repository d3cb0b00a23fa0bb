from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import ExternalServiceError, external_call

WIKIPEDIA_TOOL = "wikipedia"


starting_prompt = ChatPromptTemplate.from_template(
    """
You are an assistant for question-answering tasks specifically to wikipedia pages.
The wikipedia page is provided as context, do not make up an answer, only use the context provided.
If there is not enough information in the context, use the search tool named "wikipedia" to search wikipedia for more information.

Question: {question}
Answer:""".strip()
)

follow_up_prompt = ChatPromptTemplate.from_template(
    """
You are an assistant for question-answering tasks specifically to wikipedia pages.

The user is asking a follow up question to the previous question.
The previous question was: {previous_question}
The previous context is provided below.
{context}

The previous answer is provided below.
{answer}

If you can answer the question based on the previous context and answer, do so.
Otherwise, use the search tool named "wikipedia" to search wikipedia for more information.

Question: {question}
Answer:""".strip()
)


class WikipediaSearch(BaseModel):
    """Use this tool to search wikipedia"""

    model_config = ConfigDict(title=WIKIPEDIA_TOOL, populate_by_name=True, str_strip_whitespace=True)

    search_term: str = Field(
        ...,
        alias="searchTerm",
        min_length=1,
        description="The search term to search wikipedia for.",
    )


@dataclass(frozen=True)
class Answered:
    text: str


@dataclass(frozen=True)
class SearchRequested:
    search_term: str
    provisional_answer: str


ReasoningResult = Union[Answered, SearchRequested]


def message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content.strip()
    parts = [part.get("text", "") if isinstance(part, dict) else str(part) for part in content]
    return "".join(parts).strip()


def join_chunks(docs) -> str:
    return "\n".join(doc.page_content for doc in docs)


class ReasoningStep:
    """
    First step of every turn: let the model either answer outright or ask
    for a Wikipedia search through the `wikipedia` tool.
    """

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm.bind_tools([WikipediaSearch])

    def build_prompt(self, state: Mapping[str, Any]) -> str:
        if state.get("context") and state.get("answer"):
            return follow_up_prompt.format(
                question=state["question"],
                previous_question=state.get("previous_question", ""),
                context=join_chunks(state["context"]),
                answer=state["answer"],
            )
        return starting_prompt.format(question=state["question"])

    def reason(self, state: Mapping[str, Any]) -> ReasoningResult:
        msg = self.build_prompt(state)
        with external_call("Language model"):
            response = self.llm.invoke(msg)

        text = message_text(response)
        call = next(
            (c for c in getattr(response, "tool_calls", None) or [] if c.get("name") == WIKIPEDIA_TOOL),
            None,
        )
        if call is None:
            return Answered(text=text)

        try:
            args = WikipediaSearch.model_validate(call.get("args") or {})
        except ValidationError as exc:
            raise ExternalServiceError(f"Invalid '{WIKIPEDIA_TOOL}' tool call: {exc}") from exc
        return SearchRequested(search_term=args.search_term, provisional_answer=text)
