"""
FOD classifier — decide whether a derivation is fixed-output.

A derivation file is an ATerm of the form::

    Derive([("out","/nix/store/...-src.tar.gz","sha256","1abc..."), ...], ...)

Only the leading output list matters. Each output is a 4-tuple of
strings ``(name, path, hashAlgo, hash)``. A derivation is fixed-output
when it has exactly one output and that output declares both a hash
algorithm and a hash. Content-addressed "floating" outputs declare an
algorithm but no hash and are not fixed-output.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from fodcheck.adapters.base import StoreClient
from fodcheck.core.errors import ClassificationError, StoreCommandError

logger = logging.getLogger(__name__)

DRV_SUFFIX = ".drv"
_PREFIX = "Derive("
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


class DerivationOutput(NamedTuple):
    name: str
    path: str
    hash_algo: str
    hash: str


class _Reader:
    """Cursor over ATerm text."""

    def __init__(self, text: str, pos: int = 0) -> None:
        self.text = text
        self.pos = pos

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self._skip_ws()
        if self.pos >= len(self.text):
            raise ClassificationError("Unexpected end of derivation")
        return self.text[self.pos]

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise ClassificationError(
                f"Expected {char!r} at offset {self.pos}, found {self.text[self.pos]!r}"
            )
        self.pos += 1

    def string(self) -> str:
        self.expect('"')
        chars: list[str] = []
        while True:
            if self.pos >= len(self.text):
                raise ClassificationError("Unterminated string in derivation")
            char = self.text[self.pos]
            self.pos += 1
            if char == '"':
                return "".join(chars)
            if char == "\\":
                if self.pos >= len(self.text):
                    raise ClassificationError("Unterminated escape in derivation")
                escaped = self.text[self.pos]
                self.pos += 1
                chars.append(_ESCAPES.get(escaped, escaped))
            else:
                chars.append(char)


def parse_outputs(text: str) -> list[DerivationOutput]:
    """Parse the output list of an ATerm derivation.

    Raises:
        ClassificationError: If the text is not a well-formed derivation head.
    """
    stripped = text.lstrip()
    if not stripped.startswith(_PREFIX):
        raise ClassificationError("Not a derivation (missing 'Derive(')")

    reader = _Reader(stripped, len(_PREFIX))
    outputs: list[DerivationOutput] = []
    reader.expect("[")
    if reader.peek() == "]":
        reader.pos += 1
        return outputs

    while True:
        reader.expect("(")
        fields = [reader.string()]
        for _ in range(3):
            reader.expect(",")
            fields.append(reader.string())
        reader.expect(")")
        outputs.append(DerivationOutput(*fields))

        if reader.peek() == "]":
            reader.pos += 1
            return outputs
        reader.expect(",")


def is_fixed_output(text: str) -> bool:
    """Whether ATerm ``text`` describes a single fixed-output derivation."""
    outputs = parse_outputs(text)
    if len(outputs) != 1:
        return False
    output = outputs[0]
    return bool(output.hash_algo and output.hash)


def classify(client: StoreClient, drv: str) -> bool:
    """Classify ``drv``, treating anything uncertain as not fixed-output.

    Store paths that are not derivations (sources, patches) are never
    fixed-output. Unreadable or malformed derivations are logged.
    """
    if not drv.endswith(DRV_SUFFIX):
        return False

    try:
        try:
            text = client.read_derivation(drv)
        except (OSError, UnicodeDecodeError, StoreCommandError) as e:
            raise ClassificationError(f"Reading derivation {drv}: {e}") from e
        return is_fixed_output(text)
    except ClassificationError as e:
        logger.warning(
            "Error checking whether derivation at %s is a FOD, assuming not", drv,
        )
        logger.debug("Classification of %s failed: %s", drv, e)
        return False
