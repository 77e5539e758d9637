"""
utils/content_filter.py

Screens user-supplied text (usernames, listing names and descriptions)
for disallowed words. Uses better-profanity's English word list plus a
Portuguese list; leetspeak variants ("merd@") are caught by the library.
"""

from better_profanity import profanity

from app.core.exceptions import ValidationError

PORTUGUESE_BAD_WORDS = [
    "merda", "bosta", "caralho", "puta", "foder", "porra", "krl",
    "viado", "cu", "buceta", "pqp", "vsf", "tnc", "arrombado",
    "piroca", "pinto", "rola", "xoxota", "grelinho",
    "retardado", "idiota", "imbecil", "otario", "babaca",
]

# The default list must be loaded before adding to it, otherwise the
# library treats the custom words as the whole list.
profanity.load_censor_words()
profanity.add_censor_words(PORTUGUESE_BAD_WORDS)


def is_profane(text) -> bool:
    if not text or not isinstance(text, str):
        return False
    return profanity.contains_profanity(text)


def ensure_clean(**fields) -> None:
    """Raise ValidationError naming the first field that contains a disallowed word."""
    for field_name, value in fields.items():
        if is_profane(value):
            raise ValidationError(f"The field '{field_name}' contains disallowed words.")
