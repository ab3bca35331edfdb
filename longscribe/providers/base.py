from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel

from ..core.models import UsageRecord


class ProviderConfig(BaseModel):
    """Base configuration for all providers."""
    pass


@dataclass
class CompletionResult:
    """Raw text returned by one model call."""
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class CompletionService(ABC):
    """
    Abstract multimodal completion service.

    Implementations must raise `QuotaError` for rate-limit/overload failures
    and `FatalCompletionError` for everything else, so that callers can
    decide between switching models and aborting.
    """

    def __init__(self, provider_config: Optional[ProviderConfig] = None):
        self.provider_config = provider_config
        self.usage: List[UsageRecord] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique name of the provider."""
        pass

    @abstractmethod
    def complete(self, model: str, prompt: str, media: Sequence[Path] = (), json_output: bool = True) -> CompletionResult:
        """
        Send a prompt plus optional audio/image files to `model`.

        Args:
            model: Full model identifier.
            prompt: Prompt text.
            media: Local audio or image files to attach.
            json_output: Ask the model for a JSON response.

        Returns:
            The raw response text and token usage.
        """
        pass

    def total_cost(self) -> float:
        return sum(record.estimated_cost_usd for record in self.usage)

    def cleanup(self) -> None:
        """Release remote resources created during the run. Nothing to do by default."""
