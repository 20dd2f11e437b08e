from abc import ABC, abstractmethod


class AssistantProvider(ABC):
    """Interface for the automated assistant.

    Implementations raise ``RunConflictError`` when a previous run for the
    same conversation is still in flight and ``TransientDownstreamError`` for
    other retryable failures.
    """

    @abstractmethod
    async def reply(self, text: str, sender_id: str, conversation_id: str) -> str:
        """Produce the assistant's answer to one combined turn."""
        pass
