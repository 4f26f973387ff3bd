import json
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from soprano.core.logger import logger

BASE_DIR = Path(__file__).parent.parent.parent.parent
ENV_FILE = BASE_DIR / ".env"

load_dotenv(ENV_FILE, override=True)
logger.info(f"Loaded environment from: {ENV_FILE}")


def mask_sensitive_data(data: dict) -> dict:
    masked = {}
    sensitive_keys = ["key", "token", "secret", "password"]

    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        elif isinstance(value, str) and any(s in key.lower() for s in sensitive_keys):
            if not value:
                masked[key] = "<not set>"
            elif len(value) <= 4:
                masked[key] = "***"
            else:
                masked[key] = f"{value[:4]}...{value[-4:]}"
        else:
            masked[key] = value

    return masked


class CoreSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        protected_namespaces=(),
    )


class DialogueSettings(CoreSettings):
    SETTLE_DELAY_SECONDS: float = Field(
        default=0.6,
        ge=0.0,
        le=5.0,
        description="Pause between the end of playback and the start of recording",
    )
    HISTORY_WINDOW: int = Field(
        default=5,
        ge=0,
        description="Number of trailing conversation entries sent to the model",
    )
    DEFAULT_BALANCE: float = Field(
        default=50000.0,
        ge=0.0,
        description="Balance used for amount validation when the host provides none",
    )


class LLMSettings(CoreSettings):
    LLM_PROVIDER: str = Field(
        default="offline",
        description="LLM provider: 'offline', 'nvidia' or 'huggingface'",
    )

    NVIDIA_API_KEY: Optional[str] = Field(default=None)
    NVIDIA_MODEL: str = Field(default="meta/llama-3.1-8b-instruct")

    HF_MODEL: str = Field(
        default="Qwen/Qwen2.5-7B-Instruct",
        description="HuggingFace model repository ID",
    )
    HF_TOKEN: Optional[str] = Field(default=None)

    LLM_TEMPERATURE: float = Field(default=0.3, ge=0.0, le=2.0)
    LLM_MAX_TOKENS: int = Field(default=1024, gt=0)


class Settings(CoreSettings):
    dialogue: DialogueSettings = Field(default_factory=DialogueSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)


try:
    settings = Settings()

    settings_dict = settings.model_dump()
    masked_settings = mask_sensitive_data(settings_dict)
    logger.info(f"Settings loaded: {json.dumps(masked_settings, indent=2)}")

except ValidationError as e:
    logger.exception(f"Error validating settings: {e.json()}")
    raise
