"""Resource priority lists <-> their flat persisted form ("3,1,2")."""

import re
from collections.abc import Iterable

DELIMITER = ","
_INTEGER_TOKEN = re.compile(r"-?[0-9]+")


def encode_priority(resource_ids: Iterable[int] | None) -> str:
    if not resource_ids:
        return ""
    return DELIMITER.join(str(int(resource_id)) for resource_id in resource_ids)


def decode_priority(value: str | None) -> list[int]:
    """Parse a persisted priority string, silently dropping tokens that are not plain ASCII integers."""
    if value is None or not value.strip():
        return []
    decoded: list[int] = []
    for token in value.split(DELIMITER):
        token = token.strip()
        if _INTEGER_TOKEN.fullmatch(token):
            decoded.append(int(token))
    return decoded
