"""Injects the `@inContext` directive into GraphQL documents.

This is text manipulation, not parsing. Only the operation header (the text
before the first `{` that is not inside a comment or string literal) is
inspected. Comments and string literals are masked out before matching so a
`# query Foo` comment or a `"{"` default value cannot produce a false match,
and everything outside the insertion point is preserved byte for byte.
"""

import json
import logging
import re
from typing import List, NamedTuple, Optional

from shopmon.domain.models.context import BuyerIdentity, RequestContext

logger = logging.getLogger(__name__)

ANONYMOUS_OPERATION_NAME = "AnonymousQuery"
DIRECTIVE_NAME = "inContext"

_OPERATION_RE = re.compile(r"\b(query|mutation|subscription)\b(?:\s+([_A-Za-z][_0-9A-Za-z]*))?")
_EXISTING_DIRECTIVE_RE = re.compile(r"@" + DIRECTIVE_NAME + r"\b")
_ENUM_TOKEN_RE = re.compile(r"^[_A-Za-z][_0-9A-Za-z]*$")


def mask_comments_and_strings(document: str) -> str:
    """Returns `document` with comments and string literals blanked out.

    The result has the same length and keeps newlines, so offsets found in
    the mask are valid offsets into the original document.
    """
    chars = list(document)
    i, n = 0, len(document)
    while i < n:
        if document[i] == "#":
            while i < n and document[i] != "\n":
                chars[i] = " "
                i += 1
        elif document.startswith('"""', i):
            end = document.find('"""', i + 3)
            end = n if end == -1 else end + 3
            for j in range(i, end):
                if chars[j] != "\n":
                    chars[j] = " "
            i = end
        elif document[i] == '"':
            chars[i] = " "
            i += 1
            while i < n and document[i] not in '"\n':
                chars[i] = " "
                if document[i] == "\\" and i + 1 < n:
                    chars[i + 1] = " "
                    i += 1
                i += 1
            if i < n and document[i] == '"':
                chars[i] = " "
                i += 1
        else:
            i += 1
    return "".join(chars)


def _enum_token(field: str, value: str) -> str:
    if not _ENUM_TOKEN_RE.match(value):
        raise ValueError(f"Invalid {field} for @{DIRECTIVE_NAME}: {value!r} is not an enum token")
    return value


def _string_literal(value: str) -> str:
    # JSON string escaping is a valid GraphQL string literal
    return json.dumps(value, ensure_ascii=False)


def _buyer_identity_arguments(identity: BuyerIdentity) -> List[str]:
    arguments = []
    if identity.customer_access_token:
        arguments.append(f"customerAccessToken: {_string_literal(identity.customer_access_token)}")
    if identity.email:
        arguments.append(f"email: {_string_literal(identity.email)}")
    if identity.phone:
        arguments.append(f"phone: {_string_literal(identity.phone)}")
    if identity.country_code:
        arguments.append(f"countryCode: {_enum_token('countryCode', identity.country_code)}")
    return arguments


def build_directive(context: Optional[RequestContext]) -> Optional[str]:
    """Renders `@inContext(...)` for a context, or None when nothing is set.

    Raises:
        ValueError: If an enum-valued field is not a valid GraphQL name.
    """
    if context is None:
        return None
    arguments = []
    if context.country:
        arguments.append(f"country: {_enum_token('country', context.country)}")
    if context.language:
        arguments.append(f"language: {_enum_token('language', context.language)}")
    if context.buyer_identity is not None:
        identity_arguments = _buyer_identity_arguments(context.buyer_identity)
        if identity_arguments:
            arguments.append(f"buyerIdentity: {{{', '.join(identity_arguments)}}}")
    if not arguments:
        return None
    return f"@{DIRECTIVE_NAME}({', '.join(arguments)})"


class InjectionResult(NamedTuple):
    document: str
    context_dropped: bool  # A non-empty context could not be placed in the document


class ContextDirectiveInjector:
    """Rewrites operation headers to carry the request context directive."""

    def __init__(self, anonymous_operation_name: str = ANONYMOUS_OPERATION_NAME):
        self.anonymous_operation_name = anonymous_operation_name

    def inject(self, document: str, context: Optional[RequestContext] = None) -> str:
        """Returns `document` with `@inContext(...)` applied to its operation.

        An empty or missing context returns the document unchanged. So does a
        header that already carries `@inContext`, or a document whose operation
        header cannot be located.
        """
        return self.apply(document, context).document

    def apply(self, document: str, context: Optional[RequestContext] = None) -> InjectionResult:
        """Like `inject`, but also reports whether the context was dropped."""
        directive = build_directive(context)
        if directive is None:
            return InjectionResult(document, False)

        masked = mask_comments_and_strings(document)
        body_start = masked.find("{")
        header = masked if body_start == -1 else masked[:body_start]

        if _EXISTING_DIRECTIVE_RE.search(header):
            logger.debug("Document already carries @inContext; leaving it unchanged.")
            return InjectionResult(document, False)

        match = _OPERATION_RE.search(header)
        if match is None:
            if body_start != -1 and not header.strip():
                # Anonymous operation: `{ ... }` shorthand gets a synthesized name
                return InjectionResult(f"query {self.anonymous_operation_name} {directive} {document}", False)
            logger.warning("Could not locate an operation header; document sent without context.")
            return InjectionResult(document, True)

        # The directive goes right after the name, ahead of variable
        # definitions and of any directive already present. A directive
        # cannot follow a bare keyword, so unnamed operations get the
        # placeholder name first.
        position = match.end()
        name = "" if match.group(2) else f" {self.anonymous_operation_name}"
        rest = document[position:]
        separator = "" if rest[:1].isspace() else " "
        return InjectionResult(f"{document[:position]}{name} {directive}{separator}{rest}", False)


def extract_operation_name(document: str) -> Optional[str]:
    """Name of the document's first operation, if it has one."""
    masked = mask_comments_and_strings(document)
    body_start = masked.find("{")
    header = masked if body_start == -1 else masked[:body_start]
    match = _OPERATION_RE.search(header)
    return match.group(2) if match else None
