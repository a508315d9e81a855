"""Prompt composition for a conversation turn.

The model receives two things per turn:

- ``instructions``: the stored system prompt, optionally extended with the
  selected counsellor avatar persona.
- ``input``: a single user message whose text carries the student's locale,
  the language instruction, an optional brevity instruction, exactly one
  framing of the query and the serialized history window.
"""

import json
from typing import Any, Dict, List, Optional

# Framings are mutually exclusive; first match wins:
#   1. structured analysis of a form/assessment result (responseType)
#   2. follow-up question + answer
#   3. plain free-text question

_BREVITY_INSTRUCTION = (
    "The response to the student should be within 1 or 2 lines only with a conclusion."
)


def _query_framing(
    question: Optional[str],
    answer: Optional[str],
    response_type: Dict[str, Any],
) -> str:
    if response_type:
        return (
            "ANALYSIS TASK:\n"
            "Analyze the following question, answer and provide structured analysis:\n"
            f"Context: {json.dumps(response_type.get('formQuestion'), ensure_ascii=False)}"
            f" and result : {response_type.get('result')}"
        )
    if answer:
        return (
            f"Student follow-up question='{question or ''}' and follow-up answer='{answer}'. "
            "Based on the student follow-up question and answer give the response."
        )
    return f"<student_query>\n{question or ''}\n</student_query>"


def compose_turn_text(
    question: Optional[str],
    answer: Optional[str],
    country: Optional[str],
    user_type: Optional[str],
    response_type: Dict[str, Any],
    history: List[Dict[str, str]],
) -> str:
    """Build the text of the single model-input message."""
    parts = [
        f"Student's Country is {country or 'unknown'}.",
        "Detect the language of the input and respond in that same language.",
        "",
    ]
    if (user_type or "").strip().lower() == "student":
        parts.extend([_BREVITY_INSTRUCTION, ""])
    parts.extend(
        [
            "Here is the student's query:",
            _query_framing(question, answer, response_type),
            "",
            "Array of student conversation history = "
            f"'{json.dumps(history, ensure_ascii=False)}'.",
        ]
    )
    return "\n".join(parts)


def build_model_input(
    question: Optional[str],
    answer: Optional[str],
    country: Optional[str],
    user_type: Optional[str],
    response_type: Dict[str, Any],
    history: List[Dict[str, str]],
) -> List[Dict[str, Any]]:
    """Wrap the composed turn text as Responses API ``input`` items."""
    text = compose_turn_text(question, answer, country, user_type, response_type, history)
    return [{"role": "user", "content": [{"type": "input_text", "text": text}]}]


def build_instructions(prompt: str, persona: Optional[str] = None) -> str:
    """Return the system instructions, with the avatar persona appended when set."""
    if persona:
        return f"{prompt} \n{persona}"
    return prompt
