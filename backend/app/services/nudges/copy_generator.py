"""
Nudge copy: short notification title/body from a signal.

Asks the generative model (pydantic-ai Agent on settings.ai_model) for strict JSON
{"title", "body"}; truncates to 60/140 regardless of what comes back. Any failure
(provider error, timeout, non-JSON, empty fields) falls back to STATIC_FALLBACKS.
OpenAI models run with SDK retries off. generate() never raises.
"""
import json
import logging
from typing import Callable, Protocol

from openai import AsyncOpenAI
from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from app.config import settings
from app.core.constants import NUDGE_BODY_MAX_CHARS, NUDGE_COPY_MAX_TOKENS, NUDGE_TITLE_MAX_CHARS
from app.core.errors import CopyGenerationError
from app.services.nudges.signals import (
    EventRecommendationSignal,
    InactivitySignal,
    LowFillRateSignal,
    NudgeCopy,
    NudgeSignal,
    NudgeSignalType,
    RegularsNotSignedUpSignal,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a friendly fitness community assistant in Singapore. Generate short notification copy for nudge cards.

Rules:
- Title: max 60 characters, action-oriented
- Body: max 140 characters, warm and encouraging
- Be concise and specific
- Use Singapore-appropriate language (no slang)
- Output valid JSON only: {"title": "...", "body": "..."}"""

STATIC_FALLBACKS: dict[NudgeSignalType, NudgeCopy] = {
    NudgeSignalType.EVENT_RECOMMENDATION: NudgeCopy(
        title="A host you know just posted something new",
        body="Check out this new experience from a community you've joined before. Spots may be limited!",
    ),
    NudgeSignalType.INACTIVITY_REENGAGEMENT: NudgeCopy(
        title="We miss you! Time to get moving?",
        body="It's been a while since your last activity. Browse upcoming experiences near you.",
    ),
    NudgeSignalType.LOW_FILL_RATE: NudgeCopy(
        title="Your event needs a boost",
        body="Sign-ups are lower than usual. Consider sharing it with your community or adjusting the details.",
    ),
    NudgeSignalType.REGULARS_NOT_SIGNED_UP: NudgeCopy(
        title="Your regulars haven't signed up yet",
        body="Some of your most loyal attendees haven't RSVP'd. A quick reminder might help!",
    ),
}


class CopyClient(Protocol):
    """Generative text provider: one system + user instruction in, raw text out."""

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


def build_model(model: str | Model, timeout_seconds: float) -> str | Model:
    """
    OpenAI model ids get a client with retries off, so timeout_seconds bounds the whole call
    (the SDK default of two retries would triple it). Other ids and Model instances pass through.
    """
    if not isinstance(model, str) or not model.startswith("openai:"):
        return model
    client = AsyncOpenAI(
        api_key=settings.openai_api_key or None,
        max_retries=0,
        timeout=timeout_seconds,
    )
    return OpenAIChatModel(model.split(":", 1)[1], provider=OpenAIProvider(openai_client=client))


class PydanticAICopyClient:
    """Default CopyClient. Agent is built on first use so a missing API key only costs a fallback."""

    def __init__(self, model: str | Model | None = None, timeout_seconds: float | None = None):
        self.model = model or settings.ai_model
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.nudge_copy_timeout_seconds
        self._agents: dict[str, Agent] = {}

    def _get_agent(self, system_prompt: str) -> Agent:
        agent = self._agents.get(system_prompt)
        if agent is None:
            agent = Agent(
                model=build_model(self.model, self.timeout_seconds),
                instructions=system_prompt,
                retries=0,
                model_settings=ModelSettings(max_tokens=NUDGE_COPY_MAX_TOKENS, timeout=self.timeout_seconds),
            )
            self._agents[system_prompt] = agent
        return agent

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        result = self._get_agent(system_prompt).run_sync(user_prompt)
        return result.output if isinstance(result.output, str) else str(result.output)


# --- Per-signal user instructions ---


def _recommendation_prompt(s: EventRecommendationSignal) -> str:
    return (
        f"A host the user has attended before ({s.organizer_name or 'a host'}) just posted a new event: "
        f'"{s.event_name}". Write a nudge encouraging them to check it out.'
    )


def _inactivity_prompt(s: InactivitySignal) -> str:
    return (
        f'User "{s.user_name or "there"}" hasn\'t joined any fitness activity in {s.days_since_last_activity} days. '
        "Write a warm re-engagement nudge to bring them back."
    )


def _low_fill_prompt(s: LowFillRateSignal) -> str:
    return (
        f'Host\'s event "{s.event_name}" is {s.days_until_event} days away but only {s.fill_percent}% filled '
        f"({s.current_attendees} attendees). Write an alert nudge for the host."
    )


def _regulars_prompt(s: RegularsNotSignedUpSignal) -> str:
    names = ", ".join(s.regular_names[:3])
    more = "..." if s.regular_count > 3 else ""
    return (
        f"{s.regular_count} regulars ({names}{more}) haven't RSVP'd for the host's upcoming event "
        f'"{s.event_name}". Write a nudge alerting the host.'
    )


_PROMPT_BUILDERS: dict[NudgeSignalType, Callable] = {
    NudgeSignalType.EVENT_RECOMMENDATION: _recommendation_prompt,
    NudgeSignalType.INACTIVITY_REENGAGEMENT: _inactivity_prompt,
    NudgeSignalType.LOW_FILL_RATE: _low_fill_prompt,
    NudgeSignalType.REGULARS_NOT_SIGNED_UP: _regulars_prompt,
}


def build_user_prompt(signal: NudgeSignal) -> str:
    return _PROMPT_BUILDERS[signal.signal_type](signal)


def _strip_code_fence(text: str) -> str:
    """Models sometimes wrap JSON in ```json fences despite instructions."""
    t = text.strip()
    if t.startswith("```"):
        t = t.split("\n", 1)[1] if "\n" in t else ""
        if t.rstrip().endswith("```"):
            t = t.rstrip()[:-3]
    return t.strip()


def parse_copy(text: str) -> NudgeCopy:
    """Parse model output into bounded copy. Raises on anything that isn't {"title", "body"} JSON."""
    try:
        parsed = json.loads(_strip_code_fence(text or ""))
    except json.JSONDecodeError as e:
        raise CopyGenerationError(f"model returned non-JSON copy: {e}") from e
    if not isinstance(parsed, dict):
        raise CopyGenerationError("model returned JSON that is not an object")
    title = str(parsed.get("title") or "").strip()
    body = str(parsed.get("body") or "").strip()
    if not title or not body:
        raise CopyGenerationError("model returned empty title or body")
    return NudgeCopy(title=title[:NUDGE_TITLE_MAX_CHARS], body=body[:NUDGE_BODY_MAX_CHARS])


class CopyGenerator:
    def __init__(self, client: CopyClient | None = None):
        self.client = client if client is not None else PydanticAICopyClient()

    def generate(self, signal: NudgeSignal) -> NudgeCopy:
        try:
            text = self.client.complete(SYSTEM_PROMPT, build_user_prompt(signal))
            return parse_copy(text)
        except Exception as e:
            logger.warning("AI nudge copy generation failed for %s, using fallback: %s", signal.signal_type.value, e)
            return STATIC_FALLBACKS[signal.signal_type]
