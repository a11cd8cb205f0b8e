"""
Offline console demo: runs chat conversations without any API keys.

Uses the real detector, analyzer fallbacks, task agent, ticket service
and job queue, with the AI client disabled so every classification goes
through the keyword and regex paths. No network calls.

Type ``/jobs`` (or use it in a scenario) to advance the clock and run
the scheduled side effects: auto-assignment, customer notification and
follow-up checks.

Usage:
    python console_demo.py
    python console_demo.py --scenario failed_call
    python console_demo.py --scenario status_check
"""

import argparse
import asyncio
from datetime import timedelta
from typing import Optional

from servicedesk.agents.chat_orchestrator import ChatOrchestrator
from servicedesk.ai.client import DisabledTextClient
from servicedesk.config import settings
from servicedesk.schemas.results import ChatReply
from servicedesk.tickets.job_queue import InMemoryJobQueue
from servicedesk.tickets.store import InMemoryTicketStore
from servicedesk.tickets.ticket_service import TicketService
from servicedesk.utils import utcnow

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

JOBS_COMMAND = "/jobs"


class ConsoleSession:
    """Drives one chat session in the terminal."""

    # Pre-scripted scenarios for --scenario flag
    SCENARIOS: dict[str, list[str]] = {
        "failed_call": [
            "I tried calling you this morning but nobody picked up",
            "My name is Gautham",
            "my number is 9544654402 and I'm in Thiruvalla",
            "The AC is not cooling at all",
            JOBS_COMMAND,
        ],
        "missing_info": [
            "my name is gautham and phone no is 9544654402 and location is thiruvalla",
            "problem is Ac burst",
            JOBS_COMMAND,
        ],
        "status_check": [
            "The technician never showed up. I'm Anita, phone 9876543210, "
            "in Pathanamthitta, the fridge is leaking",
            JOBS_COMMAND,
            "What's the status of my request?",
        ],
        "cancel": [
            "The technician never showed up. I'm Anita, phone 9876543210, "
            "in Pathanamthitta, the fridge is leaking",
            "Please cancel my request",
            "Show me my requests",
        ],
    }

    MAX_INPUT_LENGTH = 500

    def __init__(self) -> None:
        self.service = TicketService(InMemoryTicketStore(), InMemoryJobQueue())
        self.orchestrator = ChatOrchestrator.create(DisabledTextClient(), self.service)
        self._clock_offset = timedelta()

    def agent_say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.agent_name}]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _banner(self, title: str, extra: Optional[str] = None) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SERVICE DESK - {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        if extra:
            print(f"{BOLD}  {extra}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _greet(self) -> None:
        self.agent_say(
            f"Hi, welcome to {settings.business.name}. "
            "How can I help you with your AC or refrigerator today?"
        )

    async def run_scenario(self, scenario: str) -> None:
        """Auto-play a pre-scripted scenario for demo purposes."""
        steps = self.SCENARIOS.get(scenario)
        if not steps:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        self._banner(f"Scenario: {scenario}")
        self._greet()
        for step in steps:
            print(f"\n{BLUE}[Customer] {RESET}{step}")
            await self._process_input(step)

        stats = await self.service.get_stats()
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Stage: {self.orchestrator.context.stage.value}{RESET}")
        print(f"{DIM}  Ticket stats: {stats.model_dump()}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run(self) -> None:
        self._banner("Console Demo", f"Type 'quit' to exit, '{JOBS_COMMAND}' to run due jobs")
        self._greet()
        loop = asyncio.get_running_loop()

        while True:
            user_input = (await loop.run_in_executor(None, input, f"\n{BLUE}[Customer] {RESET}")).strip()
            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit", "q"):
                print(f"\n{DIM}Session ended.{RESET}")
                return
            if len(user_input) > self.MAX_INPUT_LENGTH:
                self.agent_say("That was quite long. Could you keep it brief for me?")
                continue
            await self._process_input(user_input)

    async def _process_input(self, text: str) -> None:
        if text == JOBS_COMMAND:
            await self._run_jobs()
            return
        reply = await self.orchestrator.handle_message(text)
        self._show(reply)

    def _show(self, reply: ChatReply) -> None:
        self.agent_say(reply.text)
        for option in reply.quick_replies:
            target = option.action or option.value
            print(f"{YELLOW}    [{option.text}] {target}{RESET}")
        if reply.signal and reply.signal.detected:
            self.system_log(
                f"Failed call: '{reply.signal.trigger_phrase}' "
                f"missing={reply.signal.missing_fields} urgency={reply.signal.urgency_level.value}"
            )
        if reply.ticket:
            t = reply.ticket
            self.system_log(
                f"Ticket {t.ticket_number}: status={t.status.value} priority={t.priority.value} "
                f"response='{t.estimated_response_time}' tags={t.tags}"
            )
        if reply.next_action:
            self.system_log(f"Next action: {reply.next_action.value}")
        self.system_log(f"Stage: {self.orchestrator.context.stage.value}")

    async def _run_jobs(self) -> None:
        """Pretend a few seconds have passed and run whatever is due."""
        self._clock_offset += timedelta(seconds=5)
        done = await self.service.process_due_jobs(utcnow() + self._clock_offset)
        self.system_log(f"Ran {done} scheduled job(s)")
        for ticket in await self.service.get_tickets():
            latest = ticket.communication_log[-1].content if ticket.communication_log else "-"
            self.system_log(
                f"{ticket.ticket_number}: status={ticket.status.value} "
                f"technician={ticket.assigned_technician or '-'} last log='{latest}'"
            )


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(ConsoleSession.SCENARIOS),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run())


if __name__ == "__main__":
    main()
