class LedgerServiceError(Exception):
    pass


class Unauthorized(LedgerServiceError):
    pass


class InsufficientAllowance(Unauthorized):
    pass


class RateIncreaseRejected(LedgerServiceError):
    pass


class InsufficientBalance(LedgerServiceError):
    pass


class ArithmeticOverflow(LedgerServiceError):
    pass


class PayoutFailed(LedgerServiceError):
    pass


class UnsupportedChain(LedgerServiceError):
    pass
