"""Contest rules and reaction emojis."""

MAX_ATTEMPTS = 2
APPROVAL_POINTS = 1
WINNER_POINTS = 5
RECENT_SUBMISSIONS_LIMIT = 10

EMOJI_APPROVE = "✅"
EMOJI_REJECT = "❌"
EMOJI_BALLOT = "🗳️"


def same_emoji(a: str, b: str) -> bool:
    """Compare unicode emoji ignoring the variation selector Discord may drop."""
    return a.replace("\ufe0f", "") == b.replace("\ufe0f", "")
