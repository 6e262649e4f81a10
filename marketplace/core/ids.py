import re
import uuid

_ID_SHAPE = re.compile(r"^[a-z]{3}_[0-9a-f]{32}$")


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def looks_like_id(value: str, prefix: str | None = None) -> bool:
    # Anything that is not id-shaped is treated as a slug by callers.
    if not _ID_SHAPE.match(value):
        return False
    return prefix is None or value.startswith(f"{prefix}_")
