"""
Generation provider protocol for question answering over search results.

Defines the contract that chat-completion backends must satisfy.
This module is pure: no I/O, no network calls, no side effects.
Concrete implementations live in ingestion/.

Follows the same structural-typing pattern as ``QueryEmbedder``:
any class with the right method signature satisfies the protocol
without inheriting from it.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Message:
    """A single message in a conversation.

    Attributes:
        role: One of ``"system"``, ``"user"``, or ``"assistant"``.
        content: The text content of the message.
    """

    role: str
    content: str

    def __post_init__(self) -> None:
        allowed = {"system", "user", "assistant"}
        if self.role not in allowed:
            raise ValueError(f"role must be one of {sorted(allowed)}, got {self.role!r}")
        if not self.content:
            raise ValueError("content must be a non-empty string")


@dataclass(frozen=True)
class GenerationRequest:
    """Request to generate a completion from a list of messages.

    Attributes:
        messages: Ordered messages forming the conversation.  Must contain
            at least one message.
        temperature: Sampling temperature, between 0.0 and 2.0.  ``None``
            leaves the provider's default in place.
        max_tokens: Maximum tokens in the generated response.  ``None``
            leaves the provider's default in place.
    """

    messages: tuple[Message, ...]
    temperature: float | None = None
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        if not self.messages:
            raise ValueError("messages must contain at least one Message")
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be between 0.0 and 2.0, got {self.temperature}")
        if self.max_tokens is not None and self.max_tokens < 1:
            raise ValueError(f"max_tokens must be a positive integer, got {self.max_tokens}")


@dataclass(frozen=True)
class GenerationResponse:
    """Response from a generation provider.

    Attributes:
        content: The generated text.
        model: The model identifier that produced the response.
        usage_input_tokens: Number of input tokens consumed.
        usage_output_tokens: Number of output tokens generated.
    """

    content: str
    model: str
    usage_input_tokens: int = 0
    usage_output_tokens: int = 0


@runtime_checkable
class GenerationProvider(Protocol):
    """
    Protocol for chat-completion backends.

    Any class that implements ``generate`` with the correct signature
    can answer questions about the indexed code.
    """

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Generate a completion from the given messages.

        Raises:
            RuntimeError: If the generation API call fails.
        """
        ...
