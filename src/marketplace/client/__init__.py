from src.marketplace.client.api import EngineAPIError, EngineClient
from src.marketplace.client.optimistic import OptimisticStore, PendingMutation

__all__ = ["EngineAPIError", "EngineClient", "OptimisticStore", "PendingMutation"]
