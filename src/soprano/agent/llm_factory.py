from typing import Dict, Optional, Union

from langchain_core.language_models import BaseLanguageModel
from langchain_huggingface import HuggingFaceEndpoint
from langchain_nvidia_ai_endpoints import ChatNVIDIA

from soprano.core.exceptions import ConfigurationError
from soprano.core.logger import logger
from soprano.core.settings import settings
from soprano.services.completion_service import CompletionService, OfflineCompletionService

OFFLINE_PROVIDER = "offline"


class LLMFactory:
    _instances: Dict[str, BaseLanguageModel] = {}

    @classmethod
    def create_llm(cls, provider: Optional[str] = None, use_cache: bool = True) -> BaseLanguageModel:
        provider = (provider or settings.llm.LLM_PROVIDER).lower()

        if use_cache and provider in cls._instances:
            return cls._instances[provider]

        if provider == "nvidia":
            llm = cls._create_nvidia_llm()
        elif provider == "huggingface":
            llm = cls._create_huggingface_llm()
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

        if use_cache:
            cls._instances[provider] = llm
        return llm

    @classmethod
    def reset_cache(cls, provider: Optional[str] = None) -> None:
        if provider:
            cls._instances.pop(provider.lower(), None)
        else:
            cls._instances.clear()

    @staticmethod
    def _create_nvidia_llm() -> BaseLanguageModel:
        logger.info(f"Initializing NVIDIA LLM: {settings.llm.NVIDIA_MODEL}")

        if not settings.llm.NVIDIA_API_KEY:
            raise ConfigurationError("NVIDIA_API_KEY must be set to use the NVIDIA LLM provider.")

        return ChatNVIDIA(
            model=settings.llm.NVIDIA_MODEL,
            api_key=settings.llm.NVIDIA_API_KEY,
            temperature=settings.llm.LLM_TEMPERATURE,
            max_completion_tokens=settings.llm.LLM_MAX_TOKENS,
        )

    @staticmethod
    def _create_huggingface_llm() -> BaseLanguageModel:
        model_id = settings.llm.HF_MODEL
        if not model_id:
            raise ConfigurationError("HF_MODEL must be set when using the HuggingFace LLM provider.")

        if not settings.llm.HF_TOKEN or not settings.llm.HF_TOKEN.strip():
            raise ConfigurationError("HF_TOKEN must be set when using the HuggingFace LLM provider.")

        logger.info(f"Initializing Hugging Face Inference API LLM: {model_id}")
        return HuggingFaceEndpoint(
            repo_id=model_id,
            huggingfacehub_api_token=settings.llm.HF_TOKEN,
            temperature=settings.llm.LLM_TEMPERATURE,
            max_new_tokens=settings.llm.LLM_MAX_TOKENS,
        )


def create_completion_service(
    provider: Optional[str] = None,
) -> Union[CompletionService, OfflineCompletionService]:
    """Pick the completion backend for ``LLM_PROVIDER``."""
    provider = (provider or settings.llm.LLM_PROVIDER).lower()
    if provider == OFFLINE_PROVIDER:
        logger.info("Using offline keyword completion")
        return OfflineCompletionService()
    return CompletionService(LLMFactory.create_llm(provider))
