"""
Error taxonomy of the auction engine.

The store and the ledger raise these; the service layer turns them into
``Failure`` results so that nothing escapes a processing call.
"""

from uuid import UUID


class AuctionEngineError(Exception):
    """Base class for all engine errors"""


class PersistenceError(AuctionEngineError):
    """Storage unavailable or a write failed; the operation did not happen"""


class NotFoundError(AuctionEngineError):
    """A referenced auction or claim does not exist"""

    def __init__(self, kind: str, identifier: UUID | str):
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class EconomyUnavailableError(AuctionEngineError):
    """The economy provider is missing or refused the transaction"""


class InsufficientFundsError(AuctionEngineError):
    def __init__(self, player_id: UUID, required: float, balance: float):
        super().__init__(f"Player {player_id} needs {required:.2f} but has {balance:.2f}")
        self.player_id = player_id
        self.required = required
        self.balance = balance


class IllegalTransition(AuctionEngineError, ValueError):
    """An auction status change that the state machine does not allow"""
