"""
End-of-conversation detection for assistant replies
"""

import re

FAREWELL_PHRASES = (
    "adiós",
    "adios",
    "hasta luego",
    "hasta pronto",
    "hasta mañana",
    "hasta la próxima",
    "hasta la proxima",
    "que tenga un buen día",
    "que tenga un buen dia",
    "que pase un buen día",
    "que pase un buen dia",
    "goodbye",
    "good bye",
    "have a nice day",
    "have a great day",
)


FAREWELL_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(phrase) for phrase in FAREWELL_PHRASES) + r")\b",
    re.IGNORECASE
)


def is_ending(text: str) -> bool:
    """True if the text contains any farewell phrase as whole words, ignoring case"""
    if not text:
        return False
    return FAREWELL_PATTERN.search(text) is not None
