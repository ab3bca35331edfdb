from typing import Type, Dict, Any
from ..providers.base import CompletionService
from .errors import ConfigurationError


class ProviderFactory:
    _registry: Dict[str, Type[CompletionService]] = {}

    @classmethod
    def register(cls, name: str, provider_cls: Type[CompletionService]):
        cls._registry[name] = provider_cls

    @classmethod
    def get_provider_class(cls, name: str) -> Type[CompletionService]:
        if name not in cls._registry:
            # Lazy load standard plugins
            if name == "gemini":
                from ..providers.gemini.provider import GeminiCompletionService
                cls.register("gemini", GeminiCompletionService)
            else:
                raise ConfigurationError(f"Unknown provider: {name}")

        return cls._registry[name]

    @classmethod
    def create(cls, name: str, provider_config: Any) -> CompletionService:
        provider_cls = cls.get_provider_class(name)
        return provider_cls(provider_config)
