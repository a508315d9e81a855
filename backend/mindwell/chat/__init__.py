"""Chat service package.

Components of the MindWell conversation flow:

- sse: Server-Sent Events formatting utilities
- stream_parser: incremental reveal of the ``response`` field from streamed JSON
- envelope: parsing of the completed model answer
- avatars: counsellor persona texts
- prompts: model input and instruction composition
- threads: thread/user/prompt persistence, history window, votes
- provider_stream: typed events over the OpenAI Responses stream
- turn_processor: validation, streaming and persistence of one chat turn
"""

from mindwell.chat.sse import sse_end, sse_error, sse_text
from mindwell.chat.stream_parser import ResponseFieldScanner
from mindwell.chat.envelope import (
    EnvelopeParseError,
    ResponseEnvelope,
    parse_response_envelope,
)
from mindwell.chat.turn_processor import (
    PreparedTurn,
    TurnConfigurationError,
    TurnRequest,
    TurnValidationError,
    prepare_turn,
    stream_turn,
)

__all__ = [
    # SSE helpers
    "sse_text",
    "sse_end",
    "sse_error",
    # Parsing
    "ResponseFieldScanner",
    "ResponseEnvelope",
    "EnvelopeParseError",
    "parse_response_envelope",
    # Turn processing
    "TurnRequest",
    "PreparedTurn",
    "TurnValidationError",
    "TurnConfigurationError",
    "prepare_turn",
    "stream_turn",
]
