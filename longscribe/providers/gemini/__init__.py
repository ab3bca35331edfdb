from typing import List, Optional
from pydantic import Field, SecretStr

from ..base import ProviderConfig
from ...core.models import ModelSpec
from ...constants import UPLOAD_POLL_INTERVAL, UPLOAD_TIMEOUT


class GeminiConfig(ProviderConfig):
    api_key: Optional[SecretStr] = None
    models: List[ModelSpec] = Field(default_factory=list)
    request_timeout: int = 600
    poll_interval_seconds: float = UPLOAD_POLL_INTERVAL
    upload_timeout_seconds: float = UPLOAD_TIMEOUT
    temperature: Optional[float] = None

    def get_model(self, name: str) -> Optional[ModelSpec]:
        for model in self.models:
            if model.name == name:
                return model
        return None


Config = GeminiConfig
