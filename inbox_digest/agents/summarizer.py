"""Digest summarizer: bounded prompt from messages, one model call, schema-validated output."""

import json
import re
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from inbox_digest.agents.registry import get_agent, get_user_prompt_template
from inbox_digest.config import PROMPT_CONTENT_MAX_CHARS, SUMMARIZER_AGENT_ID
from inbox_digest.errors import DigestValidationError, SummarizationError
from inbox_digest.mail_provider.parsing import DEFAULT_SENDER, DEFAULT_SUBJECT
from inbox_digest.models.digest import EMPTY_INBOX_CONTENT, DigestContent
from inbox_digest.models.email import Message
from inbox_digest.models.results import Err, Ok
from inbox_digest.utils.body_sanitizer import sanitize_email_body
from inbox_digest.utils.logger import get_logger, log_pipeline_step

logger = get_logger("inbox_digest.agents.summarizer")

MESSAGE_SEPARATOR = "\n\n---\n\n"
NO_CONTENT = "No content available"
_DEFAULT_TEMPLATE = "Here are the {email_count} emails received {time_context}:\n\n{emails}"
_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S)


class TextAgent(Protocol):
    """Anything with pydantic-ai's ``await agent.run(prompt)`` returning an object with ``.output``."""

    async def run(self, user_prompt: str) -> Any:
        ...


def message_content(message: Message, max_chars: int = PROMPT_CONTENT_MAX_CHARS) -> str:
    """Best available content: truncated text, else preview, else snippet."""
    if message.text_content:
        text = sanitize_email_body(message.text_content)
        if len(text) > max_chars:
            return text[:max_chars] + "..."
        if text:
            return text
    if message.preview:
        return message.preview
    if message.snippet:
        return message.snippet
    return NO_CONTENT


def render_message(message: Message, max_chars: int = PROMPT_CONTENT_MAX_CHARS) -> str:
    return (
        f"From: {message.sender or DEFAULT_SENDER}\n"
        f"Subject: {message.subject or DEFAULT_SUBJECT}\n"
        f"Content: {message_content(message, max_chars)}"
    )


def render_messages(messages: list[Message], max_chars: int = PROMPT_CONTENT_MAX_CHARS) -> str:
    return MESSAGE_SEPARATOR.join(render_message(m, max_chars) for m in messages)


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "output"
    return f"{location}: {first.get('type', 'invalid')}"


def parse_digest_output(raw: str) -> "Ok[DigestContent] | Err[DigestValidationError]":
    """Parse model text as a DigestContent. Never repairs or truncates."""
    text = (raw or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(DigestValidationError(f"Model output is not valid JSON: {e}", constraint="json"))
    if not isinstance(payload, dict):
        return Err(DigestValidationError("Model output must be a JSON object", constraint="json_object"))
    try:
        return Ok(DigestContent.model_validate(payload))
    except ValidationError as e:
        constraint = _describe_validation_error(e)
        return Err(DigestValidationError(f"Model output violates digest schema ({constraint})", constraint=constraint))


class SummarizationEngine:
    """Turns unsummarized messages into validated digest content.

    ``agent`` defaults to the registry's ``digest_summarizer`` agent and is only
    resolved on first non-empty call, so the empty-inbox path never touches the model.
    """

    def __init__(
        self,
        agent: Optional[TextAgent] = None,
        agent_id: str = SUMMARIZER_AGENT_ID,
        content_max_chars: int = PROMPT_CONTENT_MAX_CHARS,
    ):
        self._agent = agent
        self._agent_id = agent_id
        self._use_registry = agent is None
        self._content_max_chars = content_max_chars

    def _get_agent(self) -> TextAgent:
        if self._agent is None:
            self._agent = get_agent(self._agent_id, str)
        return self._agent

    def build_prompt(self, messages: list[Message], time_context: str) -> str:
        template = _DEFAULT_TEMPLATE
        if self._use_registry:
            template = get_user_prompt_template(self._agent_id) or _DEFAULT_TEMPLATE
        return template.format(
            email_count=len(messages),
            time_context=time_context,
            emails=render_messages(messages, self._content_max_chars),
        )

    async def summarize(
        self,
        messages: list[Message],
        time_context: str = "today",
    ) -> "Ok[DigestContent] | Err[DigestValidationError]":
        if not messages:
            log_pipeline_step("summarize", "Empty input, using all-clear digest")
            return Ok(EMPTY_INBOX_CONTENT.model_copy(deep=True))

        prompt = self.build_prompt(messages, time_context)
        log_pipeline_step(
            "summarize", "Requesting digest from model", email_count=len(messages), prompt_chars=len(prompt)
        )
        try:
            result = await self._get_agent().run(prompt)
        except Exception as e:
            logger.error("summarizer.model_call_failed", error=str(e), error_type=type(e).__name__)
            raise SummarizationError(f"Language model call failed: {e}") from e

        output = getattr(result, "output", result)
        if hasattr(output, "model_dump_json"):
            output = output.model_dump_json()
        elif not isinstance(output, str):
            output = json.dumps(output, default=str)
        parsed = parse_digest_output(output)
        if isinstance(parsed, Err):
            logger.warning("summarizer.output_rejected", constraint=parsed.error.constraint)
        else:
            logger.info(
                "summarizer.output_accepted",
                inbox_status=parsed.value.inbox_status,
                important=len(parsed.value.important_emails),
            )
        return parsed
