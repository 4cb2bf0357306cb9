"""Instruction blob codec.

Wire format is the ABI tuple ``(uint256 minProfit, address[] targets,
bytes[] payloads)``: a fixed head followed by length-prefixed dynamic
sequences. This is the one binary contract shared between the off-chain
encoder and the on-chain decoder, so decoding is strict: only canonical
encodings with matching sequence lengths are accepted, and every failure is
an ``InstructionDecodeError``.
"""

from __future__ import annotations

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from pydantic import ValidationError

from flasharb.common.errors import InstructionDecodeError
from flasharb.common.models import InstructionSet

BLOB_TYPES = ["uint256", "address[]", "bytes[]"]


def encode_instructions(instructions: InstructionSet) -> bytes:
    return encode(BLOB_TYPES, [instructions.min_profit, list(instructions.targets), list(instructions.payloads)])


def decode_instructions(blob: bytes) -> InstructionSet:
    if not blob:
        raise InstructionDecodeError("empty instruction blob")
    try:
        min_profit, targets, payloads = decode(BLOB_TYPES, blob)
    except (DecodingError, OverflowError, ValueError) as exc:
        raise InstructionDecodeError(f"malformed instruction blob: {exc}") from exc
    if len(targets) != len(payloads):
        raise InstructionDecodeError(f"{len(targets)} targets but {len(payloads)} payloads")
    try:
        decoded = InstructionSet(
            min_profit=int(min_profit),
            targets=[str(t).lower() for t in targets],
            payloads=[bytes(p) for p in payloads],
        )
    except ValidationError as exc:
        raise InstructionDecodeError(f"invalid instruction fields: {exc}") from exc
    try:
        canonical = encode_instructions(decoded)
    except EncodingError as exc:  # pragma: no cover - decode already bounded the values
        raise InstructionDecodeError(str(exc)) from exc
    if canonical != bytes(blob):
        raise InstructionDecodeError("non-canonical instruction blob encoding")
    return decoded


__all__ = ["BLOB_TYPES", "encode_instructions", "decode_instructions"]
