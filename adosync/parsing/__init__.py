"""Work item URL parsing."""

from adosync.parsing.url_parser import (
    ALIAS_DOMAIN,
    PRIMARY_DOMAIN,
    ParseResult,
    WorkItemURLParser,
    parse_work_item_url,
)

__all__ = [
    "ALIAS_DOMAIN",
    "PRIMARY_DOMAIN",
    "ParseResult",
    "WorkItemURLParser",
    "parse_work_item_url",
]
