from abc import ABC, abstractmethod

from support_relay.domains import ChangeEvent


class RealtimeNotifier(ABC):
    """Interface for pushing change events to observer UIs."""

    @abstractmethod
    async def broadcast(self, event: ChangeEvent) -> None:
        """Deliver one change event to every connected observer."""
        pass
