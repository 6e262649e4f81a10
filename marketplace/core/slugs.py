import re
import secrets
import string
import unicodedata

_NON_WORD = re.compile(r"[^a-z0-9]+")
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def slugify(value: str) -> str:
    # "Sports & Outdoors" -> "sports-outdoors"
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return _NON_WORD.sub("-", normalized.lower()).strip("-")


def unique_slug(value: str, suffix_len: int = 5) -> str:
    base = slugify(value) or "listing"
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(suffix_len))
    return f"{base}-{suffix}"
