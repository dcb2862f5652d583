"""
Chat model construction.

Models are built on demand from Settings so that importing the package
never requires provider credentials.
"""

from langchain_aws import ChatBedrock
from langchain_openai import ChatOpenAI

from forecaster.config import Settings
from forecaster.llm.capability import ChatLanguageModel
from forecaster.logging import logger


def _chat_model(settings: Settings, model_name: str):
    if settings.llm_provider == "bedrock":
        return ChatBedrock(
            model=model_name,
            region_name=settings.bedrock_region,
            model_kwargs={"temperature": settings.llm_temperature},
        )
    return ChatOpenAI(
        model=model_name,
        temperature=settings.llm_temperature,
    )


def build_language_model(settings: Settings) -> ChatLanguageModel:
    logger.info(
        "LLM_CLIENT_INIT",
        extra={
            "provider": settings.llm_provider,
            "model": settings.llm_model,
            "model_small": settings.llm_model_small,
        },
    )
    return ChatLanguageModel(
        llm=_chat_model(settings, settings.llm_model),
        llm_small=_chat_model(settings, settings.llm_model_small),
    )
