"""Azure DevOps work item URL parsing.

Accepted URL shapes (org/project/id are percent-decoded)::

    https://dev.azure.com/{org}/{project}/_workitems/edit/{id}
    https://dev.azure.com/{org}/{project}/_boards/board/...?workitem={id}
    https://dev.azure.com/{org}/{project}/_boards/board/...?workItem={id}
    https://dev.azure.com/{org}/{project}/_apis/wit/workitems/{id}
    https://{org}.visualstudio.com/{project}/...   (same id patterns)

The URL is decomposed by hand (scheme, host, path, query) rather than with
``urllib.parse.urlsplit`` so that host-less or oddly formed input produces a
precise error instead of a half-filled result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import unquote

from adosync.models import WorkItemIdentifier

PRIMARY_DOMAIN = "dev.azure.com"
ALIAS_DOMAIN = "visualstudio.com"

_SCHEME_PATTERN = re.compile(r"^(https?)://(.*)$", re.IGNORECASE | re.DOTALL)
_HOST_PATTERN = re.compile(r"^([^/]+)(.*)$", re.DOTALL)
_ALIAS_ORG_PATTERN = re.compile(r"^(.*?)\.visualstudio\.com", re.IGNORECASE)
_EDIT_ID_PATTERN = re.compile(r"/edit/(\d+)")
_WORKITEMS_ID_PATTERN = re.compile(r"/workitems/(\d+)")

# Query parameters carrying the id, in lookup order. Board URLs use "workItem".
_ID_QUERY_PARAMS = ("workitem", "workItem")
_LEGACY_COLLECTION = "defaultcollection"

ERROR_MISSING_PROTOCOL = "Malformed URL: missing protocol (expected http:// or https://)."
ERROR_MISSING_HOST = "Malformed URL: missing hostname."
ERROR_NOT_A_STRING = "Malformed URL: expected a text value."
ERROR_WRONG_DOMAIN = f"URL must be from {PRIMARY_DOMAIN} or {ALIAS_DOMAIN}"
ERROR_ALIAS_NO_ORG = f"Invalid {ALIAS_DOMAIN} URL: could not determine organization."
ERROR_ALIAS_NO_PROJECT = f"Invalid {ALIAS_DOMAIN} URL: missing project."
ERROR_PRIMARY_STRUCTURE = f"Invalid {PRIMARY_DOMAIN} URL: missing organization or project."
ERROR_MISSING_ID = "Could not find work item ID in URL"


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one URL.

    Exactly one of ``data`` and ``error`` is set.
    """

    is_valid: bool
    data: WorkItemIdentifier | None = None
    error: str | None = None

    @classmethod
    def ok(cls, identifier: WorkItemIdentifier) -> ParseResult:
        return cls(is_valid=True, data=identifier)

    @classmethod
    def fail(cls, error: str) -> ParseResult:
        return cls(is_valid=False, error=error)


@dataclass(frozen=True)
class _URLParts:
    scheme: str
    host: str
    original_host: str
    path: str
    query: dict[str, str]


def parse_query_string(query: str) -> dict[str, str]:
    """Parse ``?a=1&b`` into a dict, percent-decoding keys and values.

    Keys without ``=`` map to an empty string. Later duplicates are ignored.
    """
    params: dict[str, str] = {}
    if query.startswith("?"):
        query = query[1:]
    if not query:
        return params

    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        key = unquote(key)
        if key and key not in params:
            params[key] = unquote(value)
    return params


def _parse_positive_int(candidate: str | None) -> int | None:
    if candidate is None:
        return None
    candidate = candidate.strip()
    if not candidate.isdigit() or not candidate.isascii():
        return None
    value = int(candidate)
    return value if value > 0 else None


class WorkItemURLParser:
    """Parses the Azure DevOps URL shapes into a WorkItemIdentifier.

    Parsing never raises; every failure is reported through ParseResult.error
    as a user-facing sentence naming the class of problem.
    """

    def parse(self, url: str) -> ParseResult:
        """Parse a work item URL.

        Args:
            url: Raw URL as pasted by the user

        Returns:
            ParseResult with the identifier, or with an error message
        """
        if not isinstance(url, str):
            return ParseResult.fail(ERROR_NOT_A_STRING)

        trimmed = url.strip()
        parts_or_error = self._split_url(trimmed)
        if isinstance(parts_or_error, str):
            return ParseResult.fail(parts_or_error)
        parts = parts_or_error

        if not self.is_azure_devops_host(parts.host):
            return ParseResult.fail(ERROR_WRONG_DOMAIN)

        location = self._extract_location(parts)
        if isinstance(location, str):
            return ParseResult.fail(location)
        organization, project = location

        work_item_id = self._extract_work_item_id(parts)
        if work_item_id is None:
            return ParseResult.fail(ERROR_MISSING_ID)

        return ParseResult.ok(
            WorkItemIdentifier(
                organization=organization,
                project=project,
                work_item_id=work_item_id,
                source_url=trimmed,
            )
        )

    @staticmethod
    def is_azure_devops_host(host: str) -> bool:
        """Check whether a (lowercased) hostname belongs to Azure DevOps."""
        return PRIMARY_DOMAIN in host or ALIAS_DOMAIN in host

    def _split_url(self, url: str) -> _URLParts | str:
        scheme_match = _SCHEME_PATTERN.match(url)
        if not scheme_match:
            return ERROR_MISSING_PROTOCOL
        scheme, rest = scheme_match.groups()

        host_match = _HOST_PATTERN.match(rest)
        if not host_match:
            return ERROR_MISSING_HOST
        original_host, path_and_query = host_match.groups()

        # A query directly after the host ("https://host?x=1") still belongs to the query
        host_part, sep, trailing_query = original_host.partition("?")
        if sep:
            original_host = host_part
            path_and_query = "?" + trailing_query + path_and_query
        if not original_host:
            return ERROR_MISSING_HOST

        path, _, query = path_and_query.partition("?")
        return _URLParts(
            scheme=scheme.lower(),
            host=original_host.lower(),
            original_host=original_host,
            path=path,
            query=parse_query_string(query),
        )

    def _extract_location(self, parts: _URLParts) -> tuple[str, str] | str:
        """Return (organization, project) or an error message.

        The alias organization keeps the case it has in the host. Primary-domain
        URLs carry the organization in the path, where case survives, so keeping
        host case makes both forms of the same organization parse to equal
        identifiers.
        """
        segments = [unquote(segment) for segment in parts.path.split("/") if segment]

        if ALIAS_DOMAIN in parts.host:
            org_match = _ALIAS_ORG_PATTERN.match(parts.original_host)
            if not org_match or not org_match.group(1):
                return ERROR_ALIAS_NO_ORG
            # Legacy collection URLs: {org}.visualstudio.com/DefaultCollection/{project}/...
            if len(segments) > 1 and segments[0].lower() == _LEGACY_COLLECTION:
                segments = segments[1:]
            if not segments:
                return ERROR_ALIAS_NO_PROJECT
            return unquote(org_match.group(1)), segments[0]

        if len(segments) < 2:
            return ERROR_PRIMARY_STRUCTURE
        return segments[0], segments[1]

    def _extract_work_item_id(self, parts: _URLParts) -> int | None:
        """Try each id pattern in order; the first positive integer wins."""
        candidates = [
            _first_group(_EDIT_ID_PATTERN, parts.path),
            *(parts.query.get(name) for name in _ID_QUERY_PARAMS),
            _first_group(_WORKITEMS_ID_PATTERN, parts.path),
        ]
        for candidate in candidates:
            work_item_id = _parse_positive_int(candidate)
            if work_item_id is not None:
                return work_item_id
        return None


def _first_group(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1) if match else None


_default_parser = WorkItemURLParser()


def parse_work_item_url(url: str) -> ParseResult:
    """Parse a work item URL with the shared parser instance."""
    return _default_parser.parse(url)


__all__ = [
    "PRIMARY_DOMAIN",
    "ALIAS_DOMAIN",
    "ParseResult",
    "WorkItemURLParser",
    "parse_query_string",
    "parse_work_item_url",
]
