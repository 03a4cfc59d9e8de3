"""Composite token codec.

The controller API packs a subnet CIDR together with zone, availability
zone or mode qualifiers into one string joined by ``~~``. Every place that
builds or splits such a string goes through this module.

Resource families differ in small ways: Azure zone subnets and firewall
subnets carry a trailing delimiter (``10.0.1.0/24~~az-2~~``), insane mode
subnets do not (``10.0.1.0/24~~us-east-1a``). Those quirks are captured per
family in a :class:`TokenRule`.
"""

from __future__ import annotations

from dataclasses import dataclass

DELIMITER = "~~"


class MalformedTokenError(ValueError):
    """Raised when a token does not split into the expected parts."""

    def __init__(self, token: str, expected_parts: int, reason: str) -> None:
        self.token = token
        self.expected_parts = expected_parts
        self.reason = reason
        super().__init__(f"Malformed token {token!r} (expected {expected_parts} parts): {reason}")


def encode(base: str, *qualifiers: str) -> str:
    """Join a base value and its qualifiers positionally.

    Empty qualifiers keep their slot, so ``decode(encode(a, b), 2)`` returns
    ``(a, b)`` for every input accepted here.

    Raises:
        ValueError: If the base is empty, or a part contains the delimiter
            or starts or ends with ``~`` (it would merge into a delimiter).
    """
    if not base:
        raise ValueError("Token base must not be empty")
    for part in (base, *qualifiers):
        if DELIMITER in part or part.startswith("~") or part.endswith("~"):
            raise ValueError(
                f"Token part must not contain {DELIMITER!r} or start or end with '~': {part!r}"
            )
    return DELIMITER.join((base, *qualifiers))


def decode(token: str, expected_parts: int) -> tuple[str, ...]:
    """Split a token into exactly ``expected_parts`` segments.

    One trailing empty segment is tolerated (the trailing-delimiter form).

    Raises:
        MalformedTokenError: If the segment count does not match or the
            base segment is empty.
    """
    if expected_parts < 1:
        raise ValueError(f"expected_parts must be at least 1, got {expected_parts}")
    if not token:
        raise MalformedTokenError(token, expected_parts, "token is empty")

    parts = token.split(DELIMITER)
    if len(parts) == expected_parts + 1 and parts[-1] == "":
        parts = parts[:-1]

    if len(parts) != expected_parts:
        raise MalformedTokenError(token, expected_parts, f"found {len(parts)} segments")
    if not parts[0]:
        raise MalformedTokenError(token, expected_parts, "base segment is empty")

    return tuple(parts)


def first_segment(token: str) -> str:
    """Return the base segment of a token (read-back of decorated IDs)."""
    return token.split(DELIMITER, 1)[0]


@dataclass(frozen=True)
class TokenRule:
    """Encoding rule for one resource family's composite field.

    Attributes:
        name: Rule name used in error messages.
        parts: Number of semantic parts, base included.
        trailing_delimiter: Append a delimiter after the last qualifier.
        drop_trailing_empty: When every qualifier is empty, emit the base
            value alone instead of an all-empty token.
    """

    name: str
    parts: int
    trailing_delimiter: bool = False
    drop_trailing_empty: bool = True

    def encode(self, base: str, *qualifiers: str) -> str:
        if len(qualifiers) != self.parts - 1:
            raise ValueError(
                f"{self.name}: expected {self.parts - 1} qualifiers, got {len(qualifiers)}"
            )
        if self.drop_trailing_empty and not any(qualifiers):
            return encode(base)

        token = encode(base, *qualifiers)
        if self.trailing_delimiter:
            token += DELIMITER
        return token

    def decode(self, token: str) -> tuple[str, ...]:
        """Strictly decode a token produced by :meth:`encode`."""
        try:
            return decode(token, self.parts)
        except MalformedTokenError as e:
            raise MalformedTokenError(token, self.parts, f"{self.name}: {e.reason}") from e

    def parse(self, token: str) -> tuple[str, ...]:
        """Decode a read-back value that may carry no qualifiers at all."""
        if self.drop_trailing_empty and token and DELIMITER not in token:
            return (token, *([""] * (self.parts - 1)))
        return self.decode(token)


AZURE_ZONE_SUBNET = TokenRule("azure-zone-subnet", parts=2, trailing_delimiter=True)
FIREWALL_ZONE_SUBNET = TokenRule("firewall-zone-subnet", parts=2, trailing_delimiter=True)
INSANE_MODE_SUBNET = TokenRule("insane-mode-subnet", parts=2)
OOB_SUBNET = TokenRule("oob-subnet", parts=2)
