"""
Phishing Detection Engine
==========================
Drives a multi-turn, tool-calling conversation with the model until it
returns a structured DetectionVerdict.

Each run:
1. Seeds the history with the system prompt and the raw email.
2. Sends the history to the model with a strict response format, the
   registered tool descriptors, parallel tool calls disabled and
   automatic tool choice.
3. Branches on the finish signal:
   - COMPLETED: decode the assistant text into a DetectionVerdict and
     assemble the DetectionReport.
   - TOOL_CALLS_REQUESTED: echo the assistant message into history, then
     dispatch each tool call in order, one at a time, and go back to 2.
   - OTHER: fail.

The model call is the only blocking network step besides the tools
themselves. History is append-only and the URL map only grows. Any error
marks the run FAILED and propagates; there is no partial report and no
internal retry. MAX_ROUNDS bounds the number of model calls and
RUN_DEADLINE_SECONDS bounds the wall-clock time of the whole run.
"""

import logging

from pydantic import ValidationError

from phish_detector.core.errors import (
    ExceededMaxRoundsError,
    MalformedResultError,
    RunDeadlineExceededError,
    UnexpectedFinishReasonError,
)
from phish_detector.core.report import assemble_report
from phish_detector.core.run import DetectionRun, RunState
from phish_detector.core.schema_registry import response_format
from phish_detector.core.tools import ToolDispatcher, ToolRegistry, default_registry
from phish_detector.core.url_scanner import UrlScanner
from phish_detector.llm.llm_client import (
    ChatClient,
    ChatCompletion,
    ChatOptions,
    FinishSignal,
    assistant_message,
    system_message,
    user_message,
)
from phish_detector.schemas import DetectionReport, DetectionVerdict

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are a phishing detection agent.

Given an email, decide whether it is a phishing email.
Mark the email as suspicious if there is any possibility that it is a phishing attempt.

shortDescription:
- A single non-technical sentence explaining why the email is (or is not) suspicious.
- Quote the actual text you found in the email so a non-technical person understands.

detectedItems:
- Every specific item in the email that you found suspicious.
- Each item has a title (short name), a description (longer technical explanation)
  and reasoning (why it is suspicious).
- Include common phishing techniques: suspicious URLs, attachments, requests for
  personal information or credentials, urgency, impersonation, mismatched senders.

Every URL in the email must be checked with the checkUrl tool before you answer.
"""

VERDICT_SCHEMA_NAME = "PhishResult"
VERDICT_SCHEMA_DESCRIPTION = "Phishing result"


class PhishingDetector:
    """
    Runs detection conversations. Holds no per-run state, so one instance
    can serve concurrent requests as long as its collaborators are
    thread-safe.

    Args:
        chat_client: Model client used for every round
        url_scanner: Backend behind the checkUrl tool
        max_rounds: Maximum number of model calls per run
        run_deadline: Maximum wall-clock seconds per run
        registry: Tools offered to the model (defaults to checkUrl only)
        system_prompt: Instructions seeded as the first message
    """

    def __init__(self, chat_client: ChatClient, url_scanner: UrlScanner, *,
                 max_rounds: int = 10, run_deadline: float = 120.0,
                 registry: ToolRegistry | None = None,
                 system_prompt: str = SYSTEM_PROMPT):
        self.chat_client = chat_client
        self.url_scanner = url_scanner
        self.max_rounds = max_rounds
        self.run_deadline = run_deadline
        self.registry = registry or default_registry()
        self.dispatcher = ToolDispatcher(self.registry)
        self.system_prompt = system_prompt
        self.options = ChatOptions(
            response_format=response_format(
                DetectionVerdict, VERDICT_SCHEMA_NAME, VERDICT_SCHEMA_DESCRIPTION
            ),
            tools=self.registry.descriptors(),
            parallel_tool_calls=False,
            tool_choice="auto",
        )

    # ---------- PUBLIC API ----------

    def detect(self, email: str) -> DetectionReport:
        """
        Analyze one email.

        Args:
            email: Raw email text (headers and/or body)

        Returns:
            DetectionReport with the verdict and all URL checks

        Raises:
            DetectionError: Any fatal failure of the run
        """
        return self.execute(self.start_run(email))

    def start_run(self, email: str) -> DetectionRun:
        run = DetectionRun(scanner=self.url_scanner)
        run.append(system_message(self.system_prompt))
        run.append(user_message(email))
        return run

    def execute(self, run: DetectionRun) -> DetectionReport:
        """Drive a seeded run to DONE or FAILED."""
        logger.info("Detecting phishing email...")
        try:
            verdict = self._loop(run)
        except Exception as e:
            run.state = RunState.FAILED
            logger.error(f"Detection run failed after {run.rounds} round(s): "
                         f"{type(e).__name__}: {e}")
            raise

        run.verdict = verdict
        run.state = RunState.DONE
        logger.info(f"Phishing result: suspicious={verdict.suspicious}, "
                    f"items={len(verdict.detectedItems)}, urls={len(run.url_checks)}")
        return assemble_report(verdict, run.url_checks)

    # ---------- STATE MACHINE ----------

    def _loop(self, run: DetectionRun) -> DetectionVerdict:
        while True:
            self._check_deadline(run)
            if run.rounds >= self.max_rounds:
                raise ExceededMaxRoundsError(self.max_rounds)

            run.state = RunState.AWAITING_MODEL
            run.rounds += 1
            logger.info(f"Round {run.rounds}: sending {len(run.messages)} messages")
            completion = self.chat_client.complete_chat(list(run.messages), self.options)

            if completion.finish_signal is FinishSignal.COMPLETED:
                return self._decode_verdict(completion)

            if completion.finish_signal is FinishSignal.TOOL_CALLS_REQUESTED:
                if not completion.tool_calls:
                    raise UnexpectedFinishReasonError(
                        completion.finish_reason, "model requested tool calls but sent none"
                    )
                run.state = RunState.TOOL_PHASE
                self._run_tools(run, completion)
                continue

            raise UnexpectedFinishReasonError(completion.finish_reason)

    def _run_tools(self, run: DetectionRun, completion: ChatCompletion) -> None:
        run.append(assistant_message(completion))
        # Sequential: each call mutates the shared history and URL map
        for tool_call in completion.tool_calls:
            self._check_deadline(run)
            self.dispatcher.dispatch(tool_call, run)

    def _decode_verdict(self, completion: ChatCompletion) -> DetectionVerdict:
        if not completion.content:
            raise MalformedResultError("Model finished without any answer text")
        try:
            # strict: no coercion of "yes"/1 into booleans or numbers into strings
            return DetectionVerdict.model_validate_json(completion.content, strict=True)
        except ValidationError as e:
            raise MalformedResultError(f"Unable to decode detection verdict: {e}") from e

    def _check_deadline(self, run: DetectionRun) -> None:
        if run.elapsed() > self.run_deadline:
            raise RunDeadlineExceededError(self.run_deadline)
