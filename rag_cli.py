import sys
from typing import Iterable, List, Optional

from config import settings
from console import configure_logging, console, show_answer, show_error, status
from errors import ConfigurationError, ExternalServiceError
from rag_core import DEFAULT_THREAD_ID, WikiRAGPipeline

EXIT_COMMAND = "/bye"


def run_interactive(rag: WikiRAGPipeline, lines: Optional[Iterable[str]] = None) -> int:
    console.print()
    console.print("Ask questions about Wikipedia", style="bold yellow", end="")
    console.print(f" (type '{EXIT_COMMAND}' to exit)\n", style="dim")

    for line in lines if lines is not None else sys.stdin:
        question = line.strip()

        if question.lower() == EXIT_COMMAND:
            console.print("\nGoodbye!\n", style="bold green")
            return 0

        if not question:
            continue

        status("\nThinking...")
        try:
            result = rag.ask(question, thread_id=DEFAULT_THREAD_ID)
        except ExternalServiceError as exc:
            show_error(exc)
        else:
            show_answer(result.answer)

        console.print("Ask another question", style="yellow", end="")
        console.print(f" or type '{EXIT_COMMAND}' to exit\n", style="dim")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    configure_logging(settings.log_level)

    try:
        rag = WikiRAGPipeline()
    except ConfigurationError as exc:
        show_error(exc)
        return 1

    try:
        question = " ".join(args).strip()
        if question:
            try:
                result = rag.ask(question)
            except ExternalServiceError as exc:
                show_error(exc)
                return 1
            console.print(result.answer, markup=False)
            return 0
        return run_interactive(rag)
    finally:
        rag.close()


if __name__ == "__main__":
    sys.exit(main())
