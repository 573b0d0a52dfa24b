"""Claude call and answer parsing used by PlannerReal."""

import json
from typing import Any, TypeVar

import structlog
from anthropic._exceptions import OverloadedError
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

O = TypeVar("O", bound=BaseModel)


def _json_body(content: str) -> str:
    """Text between the first and last brace, dropping code fences or prose around it."""
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end < start:
        return content.strip()
    return content[start : end + 1]


def parse_planner_json(content: str, output_model: type[O]) -> O:
    """Validate a planner answer into ``output_model``.

    Raises:
        json.JSONDecodeError: The answer holds no JSON object
        pydantic.ValidationError: The object does not match ``output_model``
    """
    return output_model.model_validate(json.loads(_json_body(content)))


@retry(
    retry=retry_if_exception_type(OverloadedError),
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=2, min=2, max=30),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "planner_overloaded_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
    ),
)
async def create_message(client: Any, *, model: str, system: str, prompt: str, max_tokens: int) -> str:
    """Send one user prompt to Claude and return the first text block.

    Only a 529 OverloadedError is retried, at most 3 more times.
    """
    response = await client.messages.create(
        model=model,
        system=system,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
    )
    return response.content[0].text
