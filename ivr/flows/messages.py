"""Fixed spoken fallbacks. Callers never hear diagnostic text."""

GENERIC_APOLOGY = (
    "I'm sorry, something went wrong on our end. Please call us back later. Goodbye."
)
STORE_UNAVAILABLE = (
    "I'm sorry, our scheduling system is not available right now. "
    "Please call us back a little later. Goodbye."
)
AI_UNAVAILABLE = (
    "I'm sorry, I can't answer questions right now. "
    "Let me help you book an appointment with our team instead."
)
NOT_UNDERSTOOD = "Sorry, I didn't catch that."
NO_INPUT = "I didn't hear anything."
INVALID_OPTION = "Sorry, that's not a valid option."
GOODBYE = "Thank you for calling. Goodbye!"

_AFFIRMATIVE = {"yes", "yeah", "yep", "yup", "sure", "correct", "right", "ok", "okay", "absolutely", "1"}
_NEGATIVE = {"no", "nope", "nah", "wrong", "incorrect", "2"}


def yes_or_no(text: str) -> bool | None:
    """True for yes, False for no, None when it's neither or both."""
    lowered = text.lower()
    if "not right" in lowered or "not correct" in lowered:
        return False
    words = {w.strip(".,!?'\"") for w in lowered.split()}
    yes = bool(words & _AFFIRMATIVE)
    no = bool(words & _NEGATIVE)
    if yes == no:
        return None
    return yes


def mentions(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in keywords)
