"""Question intent classifier.

Only used when a caller asks for automatic mode selection. Decides whether
a question should be answered from documents or as plain conversation.
"""

import re

GROUNDED = "grounded"
CONVERSATIONAL = "conversational"

# Phrases that only make sense as small talk
CONVERSATIONAL_PATTERNS = (
    r"^(hi|hello|hey|yo|howdy|greetings)\b",
    r"^good (morning|afternoon|evening)\b",
    r"\bhow are you\b",
    r"\bwho are you\b",
    r"\bwhat can you do\b",
    r"^(thanks|thank you|thx|cheers)\b",
    r"^(bye|goodbye|see you)\b",
)

# Words that point at the document collection
DOCUMENT_KEYWORDS = frozenset({
    "document", "documents", "doc", "docs", "file", "files", "report",
    "policy", "contract", "page", "section", "uploaded", "according",
    "summary", "summarize", "mention", "mentions", "says", "state", "states",
})

# Questions this short with no document keyword are treated as chit-chat
SHORT_QUESTION_WORDS = 3

_conversational_re = re.compile("|".join(CONVERSATIONAL_PATTERNS), re.IGNORECASE)
_word_re = re.compile(r"[a-z0-9']+")


def classify_question(question: str) -> str:
    """Classify a question as "grounded" or "conversational".

    Rules, first match wins:
    1. Any document keyword -> grounded.
    2. A greeting / small-talk pattern -> conversational.
    3. Fewer than SHORT_QUESTION_WORDS words -> conversational.
    4. Otherwise grounded.
    """
    text = (question or "").strip()
    words = _word_re.findall(text.lower())

    if any(word in DOCUMENT_KEYWORDS for word in words):
        return GROUNDED
    if _conversational_re.search(text):
        return CONVERSATIONAL
    if len(words) < SHORT_QUESTION_WORDS:
        return CONVERSATIONAL
    return GROUNDED
