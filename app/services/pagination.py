# app/services/pagination.py
import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from app.domain.errors import ClientInputError
from app.utils.settings import DEFAULT_PAGE_SIZE


class PaginationCodec:
    """
    Opaque continuation cursors.

    A cursor is the URL-safe base64 of the canonical JSON of the last
    evaluated key. It depends on the key payload only, so encoding the same
    key twice gives the same token.
    """

    @staticmethod
    def encode(last_key: Dict[str, Any]) -> str:
        raw = json.dumps(last_key, sort_keys=True, separators=(",", ":"))
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")

    @staticmethod
    def decode(cursor: str, key_types: Optional[Mapping[str, type]] = None) -> Dict[str, Any]:
        """`key_types` maps every required key field to the type its value must have."""
        try:
            raw = base64.b64decode(cursor, altchars=b"-_", validate=True)
            last_key = json.loads(raw.decode("utf-8"))
        except (binascii.Error, ValueError):
            raise ClientInputError("Invalid nextToken parameter") from None

        if not isinstance(last_key, dict):
            raise ClientInputError("Invalid nextToken parameter")

        for key, expected in (key_types or {}).items():
            if not isinstance(last_key.get(key), expected):
                raise ClientInputError("Invalid nextToken parameter")

        return last_key


def parse_page_size(raw: Optional[str], default: int = DEFAULT_PAGE_SIZE) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ClientInputError("Invalid pageSize parameter. Must be a positive integer.") from None
    if value < 1:
        raise ClientInputError("Invalid pageSize parameter. Must be a positive integer.")
    return value


@dataclass(frozen=True)
class PageRequest:
    page_size: int = DEFAULT_PAGE_SIZE
    next_token: Optional[str] = None

    @classmethod
    def from_query(cls, page_size: Optional[str], next_token: Optional[str]) -> "PageRequest":
        # an empty token means "from the beginning"
        return cls(page_size=parse_page_size(page_size), next_token=next_token or None)

    def start_key(self, key_types: Mapping[str, type]) -> Optional[Dict[str, Any]]:
        if self.next_token is None:
            return None
        return PaginationCodec.decode(self.next_token, key_types)


def split_page(rows: Sequence[Any], page_size: int, key_of) -> Tuple[List[Any], Optional[str]]:
    """
    `rows` is a range-query result fetched with limit page_size + 1.
    Returns the page and the cursor of its last row, None when exhausted.
    """
    page = list(rows[:page_size])
    if len(rows) <= page_size:
        return page, None
    return page, PaginationCodec.encode(key_of(page[-1]))
