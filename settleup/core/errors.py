"""
Engine exceptions.

Split rule violations are never raised; they are returned as a
ValidationResult. Everything below signals either a caller bug
(InvariantViolation), a lost race on a balance edge (ConcurrencyConflict),
or an amount past the configured limit (AmountOutOfRange).
"""


class SettleUpError(Exception):
    """Base class for all engine errors."""
    pass


class InvariantViolation(SettleUpError):
    """A precondition the caller was responsible for was not met."""
    pass


class SelfSettlementError(InvariantViolation):
    """A share or settlement between a user and themselves."""
    pass


class CurrencyMismatch(InvariantViolation):
    """Arithmetic across two different currencies."""
    pass


class InvalidSettlementTransition(InvariantViolation):
    """Settlement state machine violation, e.g. confirming a disputed settlement."""

    def __init__(self, settlement_id: str, current: str, target: str):
        self.settlement_id = settlement_id
        self.current = current
        self.target = target
        super().__init__(
            f"Settlement {settlement_id} cannot move from {current} to {target}"
        )


class AmountOutOfRange(SettleUpError):
    """Amount exceeds the configured maximum."""
    pass


class ConcurrencyConflict(SettleUpError):
    """Compare-and-swap on a balance edge lost a race. Re-read and retry."""

    def __init__(self, key, expected_version: int):
        self.key = key
        self.expected_version = expected_version
        super().__init__(
            f"Version conflict on balance edge {key}: expected version {expected_version}"
        )


class SettlementNotFound(SettleUpError):
    """No settlement with the requested id."""

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement {settlement_id} not found")
