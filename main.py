"""
Service desk chat entry point.

Runs an interactive chat session in the terminal with the job worker
polling in the same event loop, so auto-assignment, notifications and
follow-ups fire while you chat. Scheduled jobs are kept in the JSON job
queue file and survive restarts.

Uses the OpenAI text service when OPENAI_API_KEY is set; otherwise the
keyword and regex fallbacks handle every message.

Usage:
    Chat:         python main.py
    Console demo: python main.py console
"""

import asyncio
import logging
import sys

from servicedesk.config import settings

logger = logging.getLogger(__name__)

EXIT_WORDS = ("quit", "exit", "q")


async def _chat() -> None:
    """Interactive session plus the background job worker."""
    from servicedesk.agents.chat_orchestrator import ChatOrchestrator
    from servicedesk.ai.client import create_text_client
    from servicedesk.tickets.job_queue import FileJobQueue
    from servicedesk.tickets.store import InMemoryTicketStore
    from servicedesk.tickets.ticket_service import TicketService, run_job_worker

    service = TicketService(InMemoryTicketStore(), FileJobQueue(settings.tickets.job_queue_path))
    orchestrator = ChatOrchestrator.create(create_text_client(settings), service)
    stop = asyncio.Event()
    worker = asyncio.create_task(run_job_worker(service, stop))
    loop = asyncio.get_running_loop()

    print(f"{settings.business.name} - chat session {orchestrator.context.session_id}")
    print("Type 'quit' to exit.\n")
    try:
        while True:
            text = (await loop.run_in_executor(None, input, "You: ")).strip()
            if not text:
                continue
            if text.lower() in EXIT_WORDS:
                break
            reply = await orchestrator.handle_message(text)
            print(f"Bot: {reply.text}")
            for option in reply.quick_replies:
                print(f"     [{option.text}] {option.action or option.value}")
    finally:
        stop.set()
        await worker
        logger.info("Session %s closed", orchestrator.context.session_id)


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession().run())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        asyncio.run(_chat())
