"""
Lexicographically ordered version counter.

A version is a string made of one length digit followed by that many body
digits, all from the base-36 digit set 0-9a-z. Because the length digit
comes first, plain string comparison orders versions exactly like the
counter values they encode, without ever parsing them as numbers.

    10 -> 11 -> ... -> 19 -> 1a -> ... -> 1z -> 210 -> 211 -> ... -> 2zz -> 3100

Invariants:
    - increment(v) > v under string comparison, for every reachable v
    - No value is produced twice
    - Only values produced by this module are passed back to increment()

How to change safely:
    - Never change DIGITS or INITIAL_VERSION; stored versions depend on them
"""

from __future__ import annotations

from ..errors import InvariantViolationError

DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

INITIAL_VERSION = "10"


def _next_digit(digit: str) -> tuple[str, bool]:
    """Return the next digit and whether it wrapped around to 0."""
    if digit == "9":
        return "a", False
    if digit == "z":
        return "0", True
    if not ("0" <= digit < "9" or "a" <= digit < "z"):
        raise ValueError(f"invalid version digit: {digit!r}")
    return chr(ord(digit) + 1), False


def increment(version: str) -> str:
    """Return the version following the given one.

    Raises:
        ValueError: If version is obviously malformed
        InvariantViolationError: If the counter is exhausted
    """
    if len(version) < 2 or DIGITS.find(version[0]) != len(version) - 1:
        raise ValueError(f"invalid version: {version!r}")

    length_digit = version[0]
    body = list(version[1:])

    for i in range(len(body) - 1, -1, -1):
        body[i], wrapped = _next_digit(body[i])
        if not wrapped:
            return length_digit + "".join(body)

    # full carry, grow the body by one digit
    new_length_digit, wrapped = _next_digit(length_digit)
    if wrapped:
        raise InvariantViolationError("version counter exhausted", details={"version": version})
    return new_length_digit + "1" + "".join(body)
