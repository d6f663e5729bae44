"""Answer Engine - conversational search

Simple CLI for asking one question in standard or Pro mode.
"""

import argparse
import asyncio

from answer_engine.agents.orchestrator import ChatOrchestrator
from answer_engine.llm_client import get_client
from answer_engine.models.messages import AgentMessage, ChatMode, StandardMessage
from answer_engine.models.turn import TurnStatus


def _print_steps(message: AgentMessage, seen: dict[int, str]) -> None:
    for step in message.steps:
        status = step.status.value
        if seen.get(step.id) == status:
            continue
        seen[step.id] = status
        marker = {"pending": "[ ]", "loading": "[~]", "complete": "[+]"}.get(status, "[?]")
        print(f"  {marker} {step.id}. {step.description}")


async def run_chat(query: str, pro: bool = False, model: str | None = None):
    """Ask one question and print progress as it arrives."""
    mode = ChatMode.PRO if pro else ChatMode.STANDARD
    print(f"Query ({mode.value}): {query}")
    print("-" * 50)

    orchestrator = ChatOrchestrator.from_settings(llm=get_client(model=model))
    seen_steps: dict[int, str] = {}
    printed = 0

    def on_progress(message: StandardMessage | AgentMessage) -> None:
        nonlocal printed
        if isinstance(message, AgentMessage):
            _print_steps(message, seen_steps)
            return
        # Snapshots carry the full text so far; print only the new tail.
        print(message.content[printed:], end="", flush=True)
        printed = len(message.content)

    task = asyncio.create_task(orchestrator.submit(query, mode=mode, on_progress=on_progress))
    try:
        result = await asyncio.shield(task)
    except asyncio.CancelledError:
        orchestrator.stop()
        result = await task

    if result.stopped:
        print("\n\n[!] Stopped.")
        return

    message = result.message
    if result.status is TurnStatus.FAILED:
        print(f"\n{message.content}")
        return

    if isinstance(message, AgentMessage):
        print(f"\n{'='*50}")
        print(message.content)
        if message.confidence is not None:
            print(f"\nConfidence: {message.confidence:.2f}")
    else:
        print(message.content[printed:])

    if message.sources:
        print(f"\n[*] Sources ({len(message.sources)}):")
        for i, source in enumerate(message.sources, 1):
            print(f"  {i}. {source.title} - {source.url}")

    if message.related:
        print("\n[*] Related:")
        for question in message.related:
            print(f"  - {question}")


def main():
    parser = argparse.ArgumentParser(description="Answer Engine CLI")
    parser.add_argument("--query", "-q", required=True, help="Question to ask")
    parser.add_argument("--pro", action="store_true", help="Use the multi-step Pro pipeline")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")

    args = parser.parse_args()

    try:
        asyncio.run(run_chat(args.query, args.pro, args.model))
    except KeyboardInterrupt:
        print("\n[!] Interrupted.")


if __name__ == "__main__":
    main()
