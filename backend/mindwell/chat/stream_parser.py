"""Incremental reveal of one string field from a streaming JSON document.

The model answers with a JSON object such as::

    {"response": "Hello there", "followupQuestions": ["..."], "scratchpadText": "..."}

but the text arrives in arbitrary deltas.  ``ResponseFieldScanner`` consumes
the deltas one character at a time, tracking just enough JSON lexical state
(string/escape state, container nesting, key/value position) to know when it
is inside the top-level string value of the target key.  Characters of that
value are decoded and handed back as soon as they are seen, so the client can
render the answer while the rest of the document is still being generated.

Usage::

    scanner = ResponseFieldScanner("response")
    for delta in deltas:
        new_text = scanner.feed(delta)
        if new_text:
            yield sse_text(new_text)
"""

import string
from typing import List, Optional

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

_REPLACEMENT = "\ufffd"

# String roles
_KEY = "key"
_TARGET = "target"
_OTHER = "other"


class ResponseFieldScanner:
    """Reveal the decoded top-level string value of ``field`` incrementally.

    Only a string value directly under the outermost object is revealed; a
    nested object or a non-string value for the field reveals nothing.  Any
    text before the first ``{`` (for example a ```` ```json ```` fence) is
    skipped.  Once the value's closing quote is seen the scanner stops.
    """

    def __init__(self, field: str = "response"):
        self.field = field
        self._stack: List[str] = []
        self._expect_key = False
        self._last_key: Optional[str] = None
        self._key_chars: List[str] = []
        self._revealed: List[str] = []
        self._in_string = False
        self._role = _OTHER
        self._escape = False
        self._unicode: Optional[str] = None
        self._high_surrogate: Optional[int] = None
        self._finished = False

    @property
    def revealed(self) -> str:
        """All decoded text of the field revealed so far."""
        return "".join(self._revealed)

    @property
    def complete(self) -> bool:
        """True once the field's closing quote has been consumed."""
        return self._finished

    def feed(self, chunk: str) -> str:
        """Consume ``chunk`` and return only the newly revealed text."""
        out: List[str] = []
        for ch in chunk:
            if self._finished:
                break
            if self._in_string:
                self._string_char(ch, out)
            else:
                self._structural_char(ch)
        text = "".join(out)
        if text:
            self._revealed.append(text)
        return text

    # ------------------------------------------------------------------
    # Outside strings
    # ------------------------------------------------------------------

    def _structural_char(self, ch: str) -> None:
        if not self._stack:
            if ch == "{":
                self._stack.append("{")
                self._expect_key = True
            return

        at_top = len(self._stack) == 1
        if ch == '"':
            self._in_string = True
            if at_top and self._expect_key:
                self._role = _KEY
                self._key_chars = []
            elif at_top and self._last_key == self.field:
                self._role = _TARGET
            else:
                self._role = _OTHER
        elif ch in "{[":
            self._stack.append(ch)
        elif ch in "}]":
            self._stack.pop()
            if not self._stack:
                # Outer object closed without the field.
                self._finished = True
        elif at_top and ch == ":":
            self._expect_key = False
        elif at_top and ch == ",":
            self._expect_key = True
            self._last_key = None

    # ------------------------------------------------------------------
    # Inside strings
    # ------------------------------------------------------------------

    def _string_char(self, ch: str, out: List[str]) -> None:
        if self._unicode is not None:
            if ch not in string.hexdigits:
                # Malformed \u escape: drop it and treat ch normally.
                self._unicode = None
                self._emit(_REPLACEMENT, out)
                self._string_char(ch, out)
                return
            self._unicode += ch
            if len(self._unicode) == 4:
                code = int(self._unicode, 16)
                self._unicode = None
                self._emit_codepoint(code, out)
            return

        if self._escape:
            self._escape = False
            if ch == "u":
                self._unicode = ""
                return
            self._emit(_SIMPLE_ESCAPES.get(ch, ch), out)
            return

        if ch == "\\":
            self._escape = True
        elif ch == '"':
            self._close_string(out)
        else:
            self._emit(ch, out)

    def _emit_codepoint(self, code: int, out: List[str]) -> None:
        if 0xD800 <= code <= 0xDBFF:
            self._flush_surrogate(out)
            self._high_surrogate = code
            return
        if 0xDC00 <= code <= 0xDFFF:
            if self._high_surrogate is None:
                self._sink(_REPLACEMENT, out)
                return
            combined = 0x10000 + ((self._high_surrogate - 0xD800) << 10) + (code - 0xDC00)
            self._high_surrogate = None
            self._sink(chr(combined), out)
            return
        self._emit(chr(code), out)

    def _emit(self, text: str, out: List[str]) -> None:
        self._flush_surrogate(out)
        self._sink(text, out)

    def _flush_surrogate(self, out: List[str]) -> None:
        if self._high_surrogate is not None:
            self._high_surrogate = None
            self._sink(_REPLACEMENT, out)

    def _sink(self, text: str, out: List[str]) -> None:
        if self._role == _TARGET:
            out.append(text)
        elif self._role == _KEY:
            self._key_chars.append(text)

    def _close_string(self, out: List[str]) -> None:
        self._flush_surrogate(out)
        self._in_string = False
        if self._role == _KEY:
            self._last_key = "".join(self._key_chars)
        elif self._role == _TARGET:
            self._finished = True
        self._role = _OTHER
