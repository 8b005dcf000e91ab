import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str, max_length: int = 120) -> str:
    """Lower-case ASCII slug: ``"Hello, World!" -> "hello-world"``."""

    normalised = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode()
    slug = _NON_ALNUM.sub("-", normalised.lower()).strip("-")
    return slug[:max_length].rstrip("-")
