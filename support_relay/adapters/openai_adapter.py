"""
OpenAI assistant adapter for the Support Relay system.

Implements the AssistantProvider interface on top of the OpenAI Responses
API. Each conversation keeps its own response chain so the assistant sees
earlier turns, and only one run per conversation may be in flight.
"""

import logging
from typing import Dict, Optional, Set

import logfire
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    ConflictError,
    InternalServerError,
    RateLimitError,
)

from support_relay.errors import RunConflictError, TransientDownstreamError
from support_relay.interfaces.providers.assistant import AssistantProvider

# Setup logger for this module
logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "gpt-5.2"
DEFAULT_INSTRUCTIONS = (
    "You are a friendly customer support assistant. Answer in the language "
    "the customer writes in. If the customer asks for a person, say that a "
    "team member will join shortly."
)


class OpenAIAssistantAdapter(AssistantProvider):
    """OpenAI implementation of AssistantProvider using the Responses API."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        instructions: Optional[str] = None,
        logfire_api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model or DEFAULT_CHAT_MODEL
        self.instructions = instructions or DEFAULT_INSTRUCTIONS
        self._last_response_ids: Dict[str, str] = {}
        self._in_flight: Set[str] = set()

        self.logfire = False
        if logfire_api_key:
            try:
                logfire.configure(token=logfire_api_key)
                self.logfire = True
                # Instrument the main client immediately after configuring logfire
                logfire.instrument_openai(self.client)
                logger.info(
                    "Logfire configured and OpenAI client instrumented successfully."
                )
            except Exception as e:
                logger.error(f"Failed to configure Logfire: {e}")
                self.logfire = False

    async def reply(self, text: str, sender_id: str, conversation_id: str) -> str:
        """Ask the assistant for a reply to one combined turn.

        Raises:
            RunConflictError: A run for this conversation is still in flight
            TransientDownstreamError: Rate limit, timeout or connection failure
        """
        if conversation_id in self._in_flight:
            raise RunConflictError(
                f"Assistant run already active for conversation {conversation_id}")

        request_params = {
            "model": self.model,
            "input": text,
            "instructions": (
                f"{self.instructions}\nThe customer's channel ID is {sender_id}."
            ),
        }
        previous = self._last_response_ids.get(conversation_id)
        if previous:
            request_params["previous_response_id"] = previous

        self._in_flight.add(conversation_id)
        try:
            response = await self.client.responses.create(**request_params)
        except ConflictError as e:
            logger.warning(f"Assistant conflict for conversation {conversation_id}: {e}")
            raise RunConflictError(str(e)) from e
        except (RateLimitError, APITimeoutError, APIConnectionError, InternalServerError) as e:
            logger.warning(
                f"Transient assistant failure for conversation {conversation_id}: {e}")
            raise TransientDownstreamError(str(e)) from e
        finally:
            self._in_flight.discard(conversation_id)

        self._last_response_ids[conversation_id] = response.id
        return response.output_text or ""

    def forget(self, conversation_id: str) -> None:
        """Start a fresh response chain for a conversation."""
        self._last_response_ids.pop(conversation_id, None)
