import time
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..constants import FALLBACK_DELAY_SECONDS
from ..core.errors import ModelsExhaustedError, QuotaError, ResponseParseError
from ..core.ledger import ProgressLedger
from ..providers.base import CompletionService

logger = logging.getLogger("Longscribe.Fallback")


@dataclass
class FallbackResult:
    value: Any
    model: str
    raw_text: str


def build_model_list(preferred: Optional[str], candidates: Iterable[str]) -> List[str]:
    """Preferred model first, then the candidates in order, without duplicates."""
    models: List[str] = []
    for model in [preferred, *candidates]:
        if model and model not in models:
            models.append(model)
    return models


def call_with_fallback(
    service: CompletionService,
    models: Sequence[str],
    prompt: str,
    media: Sequence[Path] = (),
    parser: Optional[Callable[[str, str], Any]] = None,
    annotate: Optional[Callable[[Any], Optional[str]]] = None,
    ledger: Optional[ProgressLedger] = None,
    stage: str = "transcription",
    window_index: Optional[int] = None,
    attempt: int = 1,
    delay: float = FALLBACK_DELAY_SECONDS,
    json_output: bool = True,
) -> FallbackResult:
    """
    Try each model in order until one returns a parseable response.

    Quota-class errors and unparseable responses move on to the next model
    after a fixed delay. Any other error propagates immediately. Every call
    is written to the ledger, whatever its outcome.

    Args:
        parser: Turns (raw_text, model) into the caller's value. Raises
            ResponseParseError to reject the response.
        annotate: Produces the ledger's validation note for a parsed value.

    Raises:
        ModelsExhaustedError: Every model failed with a retryable error.
        FatalCompletionError: A non-retryable error from the service.
    """
    if not models:
        raise ModelsExhaustedError([])

    def record(model: str, response: Optional[str] = None, error: Optional[str] = None,
               validation: Optional[str] = None) -> None:
        if ledger is not None:
            ledger.record(prompt, stage=stage, window_index=window_index, attempt=attempt,
                          model=model, response=response, error=error, validation=validation)

    last_error: Optional[Exception] = None
    for position, model in enumerate(models):
        try:
            result = service.complete(model, prompt, media=media, json_output=json_output)
        except (QuotaError, ResponseParseError) as e:
            logger.warning(f"{model} unavailable: {e}")
            record(model, error=f"{type(e).__name__}: {e}")
            last_error = e
        except Exception as e:
            record(model, error=f"{type(e).__name__}: {e}")
            raise
        else:
            try:
                value = parser(result.text, model) if parser else result.text
            except ResponseParseError as e:
                logger.warning(f"{model} returned an unusable response: {e}")
                record(model, response=result.text, error=f"{type(e).__name__}: {e}")
                last_error = e
            else:
                record(model, response=result.text, validation=annotate(value) if annotate else None)
                if position > 0:
                    logger.info(f"Fell back to {model}")
                return FallbackResult(value=value, model=model, raw_text=result.text)

        if position < len(models) - 1:
            logger.info(f"Trying next model: {models[position + 1]}")
            time.sleep(delay)

    raise ModelsExhaustedError(list(models), last_error)
