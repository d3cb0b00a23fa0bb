from functools import lru_cache
from threading import Lock
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from errors import ExternalServiceError
from rag_core import DEFAULT_THREAD_ID, WikiRAGPipeline

app = FastAPI()

# Sync endpoints run on a thread pool; turns on the shared pipeline must not overlap.
_turn_lock = Lock()


class Question(BaseModel):
    question: str = Field(..., min_length=1, pattern=r"\S")


class Answer(BaseModel):
    answer: str
    search_term: Optional[str] = None


@lru_cache
def get_pipeline() -> WikiRAGPipeline:
    return WikiRAGPipeline()


@app.post("/ask", response_model=Answer)
def ask(question: Question, rag: WikiRAGPipeline = Depends(get_pipeline)):
    with _turn_lock:
        try:
            result = rag.ask(question.question, thread_id=DEFAULT_THREAD_ID)
        except ExternalServiceError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
    return Answer(answer=result.answer, search_term=result.search_term)


@app.post("/reset")
def reset(rag: WikiRAGPipeline = Depends(get_pipeline)):
    with _turn_lock:
        rag.reset(DEFAULT_THREAD_ID)
    return {"status": "ok"}
