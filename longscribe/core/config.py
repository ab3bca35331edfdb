import logging
import yaml
import importlib
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import (
    ConfigContext, JobConfiguration, PathsConfig, ChunkingConfig,
    DescriptionConfig, ValidationConfig, TranscribeConfig, OutputConfig,
)
from ..constants import MODEL_ALIASES, PRESETS
from longscribe.providers.base import ProviderConfig

logger = logging.getLogger("Longscribe.Config")

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_FILENAME = "config.yaml"


def load_yaml(path: Path) -> Dict[str, Any]:
    if path.exists():
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}
    return {}


def _merge_dicts(base: Dict, update: Dict):
    """Recursively merge update dict into base dict."""
    for k, v in update.items():
        if isinstance(v, dict) and k in base and isinstance(base[k], dict):
            _merge_dicts(base[k], v)
        else:
            base[k] = v


def load_provider_config(provider_name: str, user_provider_config: Dict[str, Any]) -> Any:
    """
    Dynamically load a provider's configuration.

    Args:
        provider_name: The name of the provider (e.g., 'gemini').
        user_provider_config: The provider configuration from the user's config.yaml.

    Returns:
        Validated Pydantic model for the provider configuration.
    """
    try:
        module = importlib.import_module(f"longscribe.providers.{provider_name}")
    except ImportError:
        raise ConfigurationError(f"Unknown provider: {provider_name}")

    config_model = getattr(module, "Config", None)
    if config_model is None:
        for name, obj in vars(module).items():
            if name.endswith("Config") and isinstance(obj, type) and issubclass(obj, ProviderConfig):
                config_model = obj
                break

    if not config_model:
        return user_provider_config

    # Load default config from the provider's directory
    provider_dir = Path(module.__file__).parent
    provider_config = load_yaml(provider_dir / "defaults.yaml")
    _merge_dicts(provider_config, user_provider_config)

    try:
        return config_model(**provider_config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration for provider '{provider_name}': {e}")


def resolve_model_name(name: str) -> str:
    """Map CLI shorthands (pro, flash, flash-lite) to full model names."""
    return MODEL_ALIASES.get(name, name)


def apply_preset(config: JobConfiguration, preset_name: str) -> JobConfiguration:
    """Override model, chunk length and screenshot count from a named preset."""
    preset = PRESETS.get(preset_name)
    if not preset:
        raise ConfigurationError(f"Unknown preset '{preset_name}'. Available: {', '.join(PRESETS)}")

    config.transcribe.preferred_model = resolve_model_name(preset["model"])
    config.chunking.chunk_minutes = preset["chunk_minutes"]
    config.description.screenshot_count = preset["screenshot_count"]
    return config


def load_config(config_path: Optional[str] = None) -> ConfigContext:
    """Load configuration from file and env vars."""

    # 1. Determine config path
    if config_path:
        user_config_path = Path(config_path)
        if not user_config_path.exists():
            raise ConfigurationError(f"Config file not found: {user_config_path}")
    else:
        cwd_config = Path(DEFAULT_CONFIG_FILENAME)
        home_config = Path.home() / ".config" / "longscribe" / DEFAULT_CONFIG_FILENAME
        user_config_path = cwd_config if cwd_config.exists() else home_config

    # 2. Load user config
    user_config = load_yaml(user_config_path)
    if user_config:
        logger.debug(f"Loaded configuration from {user_config_path}")

    # 3. Parse Core Sections
    processing_conf = user_config.get("processing", {})

    try:
        defaults = JobConfiguration(
            debug=user_config.get("debug", False),
            output_mode=processing_conf.get("output_mode", "standard"),
            chunking=ChunkingConfig(**processing_conf.get("chunking", {})),
            description=DescriptionConfig(**processing_conf.get("description", {})),
            validation=ValidationConfig(**processing_conf.get("validation", {})),
            transcribe=TranscribeConfig(**processing_conf.get("transcribe", {})),
            output=OutputConfig(**processing_conf.get("output", {})),
        )
        paths = PathsConfig(**user_config.get("paths", {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {user_config_path}: {e}")

    if defaults.transcribe.preferred_model:
        defaults.transcribe.preferred_model = resolve_model_name(defaults.transcribe.preferred_model)

    # 4. Dynamic Provider Loading
    providers_config = {}
    user_providers_section = user_config.get("providers", {})

    active_providers = set(user_providers_section.keys())
    active_providers.add(defaults.transcribe.provider)

    for provider_name in active_providers:
        provider_conf_dict = user_providers_section.get(provider_name) or {}
        providers_config[provider_name] = load_provider_config(provider_name, provider_conf_dict)

    return ConfigContext(
        defaults=defaults,
        providers=providers_config,
        paths=paths,
    )
