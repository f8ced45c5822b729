"""Redirect-URI classification and token-response parsing.

When the login surface reaches the redirect URI the authorization server has
encoded its answer either in the fragment (implicit-style token response or
error) or in the query (authorization code or error).  :func:`classify_redirect`
turns such a URI into one tagged value:

* :class:`~msa_auth.auth.models.SuccessfulResponse` – fragment carries
  ``access_token`` and ``token_type``
* :class:`~msa_auth.auth.models.ErrorResponse` – fragment or query carries
  ``error``
* :class:`CodeGrant` – query carries ``code``
* :class:`InvalidRedirect` – anything else

The same parsing helpers build responses from the token endpoint's JSON body.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Final, Mapping
from urllib.parse import SplitResult, parse_qs, parse_qsl, urlsplit

from msa_auth.auth.errors import ServerError
from msa_auth.auth.models import (
    ErrorResponse,
    SuccessfulResponse,
    TokenType,
    split_scopes,
)

_LOG = logging.getLogger("msa-auth.auth.responses")

ACCESS_TOKEN: Final[str] = "access_token"
AUTHENTICATION_TOKEN: Final[str] = "authentication_token"
CODE: Final[str] = "code"
ERROR: Final[str] = "error"
ERROR_DESCRIPTION: Final[str] = "error_description"
ERROR_URI: Final[str] = "error_uri"
EXPIRES_IN: Final[str] = "expires_in"
REFRESH_TOKEN: Final[str] = "refresh_token"
SCOPE: Final[str] = "scope"
TOKEN_TYPE: Final[str] = "token_type"

_RAW_QUERY_SPLIT = re.compile(r"&|=")


@dataclass(frozen=True, slots=True)
class CodeGrant:
    """Authorization code that still has to be exchanged for tokens."""

    code: str

    def __repr__(self) -> str:
        return "CodeGrant(code=****)"


@dataclass(frozen=True, slots=True)
class InvalidRedirect:
    """Redirect that carried neither a token, a code nor an error."""

    reason: str


RedirectResult = SuccessfulResponse | ErrorResponse | CodeGrant | InvalidRedirect


# --------------------------------------------------------------------------- #
# URI helpers                                                                 #
# --------------------------------------------------------------------------- #
def redirect_matches(uri: str, redirect_uri: str) -> bool:
    """Compare scheme, authority and path only; query and fragment are ignored."""
    lhs, rhs = urlsplit(uri), urlsplit(redirect_uri)
    return (lhs.scheme, lhs.netloc, lhs.path) == (rhs.scheme, rhs.netloc, rhs.path)


def is_hierarchical(parts: SplitResult) -> bool:
    """Return *True* for relative URIs and ``scheme:/...`` URIs."""
    if not parts.scheme:
        return True
    return bool(parts.netloc) or parts.path.startswith("/")


def _has_component(uri: str, marker: str) -> bool:
    # urlsplit reports "" for both a missing and an empty component
    head = uri.split("#", 1)[0] if marker == "?" else uri
    return marker in head


def scan_raw_query(query: str, key: str) -> str | None:
    """Scan a raw ``k=v&k=v`` string pairwise for *key*.

    Used for non-hierarchical URIs where the query cannot be read through
    standard parameter lookup.
    """
    tokens = _RAW_QUERY_SPLIT.split(query)
    for i in range(0, len(tokens) - 1, 2):
        if tokens[i] == key:
            return tokens[i + 1]
    return None


# --------------------------------------------------------------------------- #
# Response builders                                                           #
# --------------------------------------------------------------------------- #
def _parse_expires_in(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ServerError() from None


def _parse_token_type(value: Any) -> TokenType:
    try:
        return TokenType(str(value).lower())
    except ValueError:
        raise ServerError() from None


def _parse_scope(value: Any) -> frozenset[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return split_scopes(value)
    if isinstance(value, (list, tuple)) and all(isinstance(s, str) for s in value):
        return frozenset(s for s in value if s)
    raise ServerError()


def successful_response_from_params(params: Mapping[str, Any]) -> SuccessfulResponse:
    """Build a :class:`SuccessfulResponse` from fragment or JSON parameters.

    Raises
    ------
    ServerError
        If a required field is missing or a field cannot be parsed.
    """
    access_token = params.get(ACCESS_TOKEN)
    token_type = params.get(TOKEN_TYPE)
    if not access_token or not token_type:
        raise ServerError()

    return SuccessfulResponse(
        access_token=str(access_token),
        token_type=_parse_token_type(token_type),
        scopes=_parse_scope(params.get(SCOPE)),
        expires_in=_parse_expires_in(params.get(EXPIRES_IN)),
        authentication_token=params.get(AUTHENTICATION_TOKEN) or None,
        refresh_token=params.get(REFRESH_TOKEN) or None,
    )


def error_response_from_params(params: Mapping[str, Any]) -> ErrorResponse:
    error = params.get(ERROR)
    if not error:
        raise ServerError()
    return ErrorResponse(
        code=str(error).lower(),
        description=params.get(ERROR_DESCRIPTION),
        uri=params.get(ERROR_URI),
    )


def response_from_json(data: Any) -> SuccessfulResponse | ErrorResponse:
    """Interpret a decoded token-endpoint body."""
    if not isinstance(data, Mapping):
        raise ServerError()
    if ERROR in data:
        return error_response_from_params(data)
    if ACCESS_TOKEN in data:
        return successful_response_from_params(data)
    raise ServerError()


# --------------------------------------------------------------------------- #
# Classifier                                                                  #
# --------------------------------------------------------------------------- #
def classify_redirect(uri: str) -> RedirectResult:
    """Classify the URI the login surface landed on.

    Raises
    ------
    ServerError
        If the fragment announces a token response that cannot be parsed.
    """
    parts = urlsplit(uri)
    has_fragment = _has_component(uri, "#")
    has_query = _has_component(uri, "?")

    if not has_fragment and not has_query:
        return InvalidRedirect("redirect carries neither query nor fragment")

    if has_fragment:
        fragment = dict(parse_qsl(parts.fragment, keep_blank_values=True))
        if ACCESS_TOKEN in fragment and TOKEN_TYPE in fragment:
            return successful_response_from_params(fragment)
        if fragment.get(ERROR) is not None:
            return error_response_from_params(fragment)

    if has_query and is_hierarchical(parts):
        query = parse_qs(parts.query, keep_blank_values=True)
        if CODE in query:
            return CodeGrant(query[CODE][0])
        if ERROR in query:
            return error_response_from_params({k: v[0] for k, v in query.items()})

    if has_query and not is_hierarchical(parts):
        code = scan_raw_query(parts.query, CODE)
        if code is not None:
            return CodeGrant(code)

    _LOG.debug("Redirect to %s://%s%s carried no recognised parameters",
               parts.scheme, parts.netloc, parts.path)
    return InvalidRedirect("no recognised response parameters")
