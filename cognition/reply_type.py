"""Open / closed / silence classification of user replies."""

from __future__ import annotations

import re

from cognition.states import ReplyType

_CLOSED_PATTERNS = [
    re.compile(r"^(no|nope|nah|naw|nada|nothing|none)$"),
    re.compile(r"^(idk|dunno|don't know|not sure|unsure)$"),
    re.compile(r"^(yeah|yep|yup|yes|sure|ok|okay|alright|fine)$"),
    re.compile(r"^(maybe|perhaps|probably|kinda|sorta)$"),
]

CLOSED_MAX_CHARS = 10


def classify_reply_type(message: str) -> ReplyType:
    text = message.strip()
    if not text:
        return "silence"
    lowered = text.lower()
    if len(text) < CLOSED_MAX_CHARS and any(p.match(lowered) for p in _CLOSED_PATTERNS):
        return "closed"
    return "open"
