import os
import time
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions
from google.generativeai.types import HarmCategory, HarmBlockThreshold

from ..base import CompletionService, CompletionResult
from . import GeminiConfig
from ...constants import MIME_TYPES
from ...core.errors import (
    CompletionError, ConfigurationError, FatalCompletionError, QuotaError, ResponseParseError,
)
from ...core.models import UsageRecord

logger = logging.getLogger("Longscribe.Plugin.Gemini")

QUOTA_MARKERS = ("429", "503", "quota", "rate limit", "resource_exhausted", "resource exhausted", "overloaded")

# Used when a model has no pricing entry in the provider config
DEFAULT_PRICING = (0.50, 1.50)

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


def classify_error(error: Exception, model: Optional[str] = None) -> CompletionError:
    """Sort a Gemini SDK exception into quota-class (switch model) or fatal."""
    if isinstance(error, CompletionError):
        return error
    if isinstance(error, (exceptions.ResourceExhausted, exceptions.TooManyRequests, exceptions.ServiceUnavailable)):
        return QuotaError(str(error), model)

    message = str(error).lower()
    if any(marker in message for marker in QUOTA_MARKERS):
        return QuotaError(str(error), model)
    return FatalCompletionError(f"{type(error).__name__}: {error}", model)


class GeminiCompletionService(CompletionService):
    def __init__(self, provider_config: Optional[GeminiConfig] = None):
        super().__init__(provider_config)
        self.gemini_config = provider_config or GeminiConfig()
        self._uploads: Dict[Path, object] = {}

        if self.gemini_config.api_key:
            api_key = self.gemini_config.api_key.get_secret_value()
        else:
            api_key = os.environ.get("GEMINI_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY is missing. Set it in config.yaml (providers.gemini.api_key), "
                "in a .env file, or as an environment variable."
            )
        genai.configure(api_key=api_key)

    @property
    def name(self) -> str:
        return "gemini"

    def complete(self, model: str, prompt: str, media: Sequence[Path] = (), json_output: bool = True) -> CompletionResult:
        contents = [self.upload(Path(path), model) for path in media]
        contents.append(prompt)

        generation_config = {}
        if json_output:
            generation_config["response_mime_type"] = "application/json"
        if self.gemini_config.temperature is not None:
            generation_config["temperature"] = self.gemini_config.temperature

        logger.debug(f"Sending prompt to {model} ({len(media)} attachment(s))")
        try:
            response = genai.GenerativeModel(model).generate_content(
                contents,
                generation_config=generation_config,
                safety_settings=SAFETY_SETTINGS,
                request_options={"timeout": self.gemini_config.request_timeout},
            )
        except Exception as e:
            raise classify_error(e, model) from e

        try:
            text = response.text
        except ValueError as e:
            # No candidates: the response was blocked or cut off
            raise ResponseParseError(f"Response from {model} has no text: {e}", model)

        input_tokens, output_tokens = self._track_usage(model, getattr(response, "usage_metadata", None))
        return CompletionResult(text=text, model=model, input_tokens=input_tokens, output_tokens=output_tokens)

    def upload(self, file_path: Path, model: Optional[str] = None):
        """Upload a file once per run and block until it is ready for use."""
        file_path = file_path.resolve()
        if file_path in self._uploads:
            return self._uploads[file_path]

        mime_type = MIME_TYPES.get(file_path.suffix.lower())
        logger.info(f"Uploading {file_path.name} to Gemini...")
        try:
            file = genai.upload_file(file_path, mime_type=mime_type, display_name=file_path.name)
            file = self._wait_until_active(file)
        except CompletionError:
            raise
        except Exception as e:
            raise classify_error(e, model) from e

        self._uploads[file_path] = file
        return file

    def _wait_until_active(self, file):
        """Poll the remote file until it leaves PROCESSING, with a hard deadline."""
        interval = self.gemini_config.poll_interval_seconds
        deadline = time.monotonic() + self.gemini_config.upload_timeout_seconds

        while file.state.name == "PROCESSING":
            if time.monotonic() >= deadline:
                raise FatalCompletionError(
                    f"File {file.name} still processing after {self.gemini_config.upload_timeout_seconds}s"
                )
            time.sleep(interval)
            file = genai.get_file(file.name)

        if file.state.name == "FAILED":
            raise FatalCompletionError(f"File processing failed on Google's side: {file.name}")
        return file

    def cleanup(self) -> None:
        """Delete uploaded files from the remote store."""
        for path, file in list(self._uploads.items()):
            try:
                genai.delete_file(file.name)
            except Exception as e:
                logger.warning(f"Could not delete remote file for {path.name}: {e}")
        self._uploads.clear()

    def _track_usage(self, model: str, usage_metadata) -> tuple:
        if usage_metadata is None:
            return 0, 0

        input_tokens = getattr(usage_metadata, "prompt_token_count", 0) or 0
        output_tokens = getattr(usage_metadata, "candidates_token_count", 0) or 0

        spec = self.gemini_config.get_model(model)
        if spec:
            input_rate = spec.cost_per_1M_tokens_usd.input
            output_rate = spec.cost_per_1M_tokens_usd.output
        else:
            input_rate, output_rate = DEFAULT_PRICING

        cost = (input_tokens / 1_000_000) * input_rate + (output_tokens / 1_000_000) * output_rate
        self.usage.append(UsageRecord(
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost_usd=cost,
        ))
        return input_tokens, output_tokens
