"""Error taxonomy shared by the off-chain loop and the settlement model.

Settlement errors are fatal to one settlement session and always roll the
session back. Transient errors are fatal to one scan cycle only. Startup
errors (``InsufficientCapital``, ``StartupError``) stop the orchestrator.
"""

from __future__ import annotations


class FlashArbError(Exception):
    """Root of every error raised by flasharb."""


# --------------------------------------------------------------------------- #
# Settlement (on-chain) errors


class SettlementError(FlashArbError):
    """A settlement session failed; the whole session reverts."""


class Unauthorized(SettlementError):
    """Caller or initiator does not match the configured identity."""


class SwapFailed(SettlementError):
    """An encoded trade instruction did not succeed."""

    def __init__(self, target: str, index: int, detail: str = "") -> None:
        self.target = target
        self.index = index
        self.detail = detail
        msg = f"swap {index} at {target} failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class InsufficientRepayment(SettlementError):
    """Post-trade balance cannot cover principal plus premium."""

    def __init__(self, balance: int, debt: int) -> None:
        self.balance = balance
        self.debt = debt
        super().__init__(f"balance {balance} below debt {debt}")


class InsufficientBalance(SettlementError):
    """A transfer exceeded the holder's balance."""


class InsufficientAllowance(SettlementError):
    """A pull transfer exceeded the granted allowance."""


class InstructionDecodeError(FlashArbError):
    """The instruction blob is malformed or non-canonical."""


# --------------------------------------------------------------------------- #
# Startup errors


class StartupError(FlashArbError):
    """Startup checks failed; the loop must not start."""


class InsufficientCapital(StartupError):
    """The operator cannot fund the settlement contract's working capital."""

    def __init__(self, available: int, required: int) -> None:
        self.available = available
        self.required = required
        super().__init__(f"operator holds {available}, top-up needs {required}")


# --------------------------------------------------------------------------- #
# Transient errors (caught per cycle)


class TransientError(FlashArbError):
    """Recoverable failure; the current cycle is skipped."""


class RpcError(TransientError):
    """JSON-RPC transport or node error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        super().__init__(message if code is None else f"{message} (code={code})")


class RpcReplyError(RpcError):
    """The node answered with a JSON-RPC ``error`` member."""


class QuoteUnavailable(TransientError):
    """A venue could not produce a quote."""

    def __init__(self, venue: str, detail: str) -> None:
        self.venue = venue
        super().__init__(f"{venue}: {detail}")


class SubmissionError(TransientError):
    """A transaction could not be submitted or was reverted."""


class TransactionTimeout(TransientError):
    """No receipt arrived before the receipt deadline."""

    def __init__(self, tx_hash: str, timeout: float) -> None:
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"no receipt for {tx_hash} after {timeout:.0f}s")


class LoanInFlight(FlashArbError):
    """A loan request was submitted while another is unresolved."""


__all__ = [
    "FlashArbError",
    "SettlementError",
    "Unauthorized",
    "SwapFailed",
    "InsufficientRepayment",
    "InsufficientBalance",
    "InsufficientAllowance",
    "InstructionDecodeError",
    "StartupError",
    "InsufficientCapital",
    "TransientError",
    "RpcError",
    "RpcReplyError",
    "QuoteUnavailable",
    "SubmissionError",
    "TransactionTimeout",
    "LoanInFlight",
]
