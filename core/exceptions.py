"""Shared exception types for the cycle engine and its collaborators."""

from typing import Optional


class CollaboratorError(RuntimeError):
    """Raised when an external collaborator cannot be reached or answers badly at transport level."""

    def __init__(self, source: str, original: Optional[Exception] = None):
        message = f"{source}: {original}" if original is not None else source
        super().__init__(message)
        self.source = source
        self.original = original


class MarketDataUnavailable(CollaboratorError):
    """Raised when the market data provider request fails."""


class PredictionUnavailable(CollaboratorError):
    """Raised when the AI predictor request fails."""


class InvalidTransition(RuntimeError):
    """Raised on an order state change the lifecycle does not allow."""

    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(f"Invalid transition for {order_id}: {current} → {target}")
        self.order_id = order_id
        self.current = current
        self.target = target
