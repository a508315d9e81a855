"""Parsing of the model's completed JSON answer."""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, List

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^\s*```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


class EnvelopeParseError(ValueError):
    """The model's completed output is not a usable JSON object."""


@dataclass
class ResponseEnvelope:
    """Structured content extracted from a completed model answer."""

    main_content: str
    followup_questions: List[str] = field(default_factory=list)
    scratchpad_id: str = ""
    scratchpad_text: str = ""


def _strip_fences(raw_text: str) -> str:
    text = _FENCE_OPEN.sub("", raw_text, count=1)
    return _FENCE_CLOSE.sub("", text, count=1)


def _as_questions(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else str(item) for item in value]


def parse_response_envelope(raw_text: str) -> ResponseEnvelope:
    """Parse the full model output into a :class:`ResponseEnvelope`.

    Accepts ``response`` either as a plain string or as an object with a
    ``mainContent`` string.  Follow-up questions are read from the nested
    object first, then from the top level.

    Raises:
        EnvelopeParseError: If the text is not a JSON object.
    """
    try:
        data = json.loads(_strip_fences(raw_text or ""))
    except json.JSONDecodeError as e:
        raise EnvelopeParseError(f"Model output is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise EnvelopeParseError("Model output is not a JSON object")

    response = data.get("response")
    nested_questions = None
    if isinstance(response, str):
        main_content = response.strip()
    elif isinstance(response, dict):
        main_content = str(response.get("mainContent") or "").strip()
        nested_questions = response.get("followupQuestions")
    else:
        logger.warning("Model output has no usable 'response' field")
        main_content = ""

    return ResponseEnvelope(
        main_content=main_content,
        followup_questions=_as_questions(
            nested_questions or data.get("followupQuestions")
        ),
        scratchpad_id=str(uuid.uuid4()),
        scratchpad_text=str(data.get("scratchpadText") or "").strip(),
    )
