"""
Structured language-model capability.

Every model call goes through ``generate_structured`` and comes back as a
tagged result. Model output is parsed and validated here, once; callers
either get a schema instance or a failure they can degrade on.
"""

import json
from dataclasses import dataclass
from typing import Any, Generic, List, Literal, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from forecaster.errors import ParseError, ProviderError
from forecaster.logging import logger


T = TypeVar("T", bound=BaseModel)


# -----------------------------
# Task + result types
# -----------------------------

@dataclass(frozen=True)
class TaskSpec:
    name: str
    system: str
    prompt: str
    tier: Literal["default", "small"] = "default"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class SchemaMismatch:
    error: str
    raw: str = ""

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise ParseError(self.error)


@dataclass(frozen=True)
class ProviderFailure:
    error: str

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise ProviderError(self.error)


StructuredResult = Union[Ok[T], SchemaMismatch, ProviderFailure]


class LanguageModel(Protocol):
    async def generate_structured(
        self,
        task: TaskSpec,
        schema: Type[T],
    ) -> StructuredResult: ...


# -----------------------------
# Utilities
# -----------------------------

def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = text.splitlines()
    if lines and lines[0].startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def parse_strict_json(text: str) -> dict:
    text = _strip_code_fence(text.strip())
    if not (text.startswith("{") and text.endswith("}")):
        raise ValueError("LLM output violated JSON-only contract")
    return json.loads(text)


def message_text(content: Any) -> str:
    """Flatten chat message content (string or content-block list)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


def schema_instructions(schema: Type[BaseModel]) -> str:
    return (
        "Respond with a single JSON object only, no prose and no markdown. "
        "It must validate against this JSON schema:\n"
        f"{json.dumps(schema.model_json_schema())}"
    )


# -----------------------------
# Chat-model backed implementation
# -----------------------------

class ChatLanguageModel:
    """
    LanguageModel over langchain chat models.

    ``llm`` serves default-tier tasks, ``llm_small`` serves small-tier
    tasks (falls back to ``llm``).
    """

    def __init__(self, llm, llm_small=None):
        self.llm = llm
        self.llm_small = llm_small or llm

    async def generate_structured(
        self,
        task: TaskSpec,
        schema: Type[T],
    ) -> StructuredResult:
        model = self.llm_small if task.tier == "small" else self.llm
        messages = [
            {
                "role": "system",
                "content": f"{task.system}\n\n{schema_instructions(schema)}",
            },
            {"role": "user", "content": task.prompt},
        ]

        try:
            response = await model.ainvoke(messages)
        except Exception as e:
            logger.warning(
                "LLM_PROVIDER_FAILURE",
                extra={"task": task.name, "error": str(e)},
            )
            return ProviderFailure(error=f"{task.name}: {e}")

        raw = message_text(response.content)

        try:
            parsed = parse_strict_json(raw)
            value = schema.model_validate(parsed)
        except (ValidationError, ValueError) as e:
            logger.warning(
                "LLM_SCHEMA_MISMATCH",
                extra={"task": task.name, "error": str(e)[:300]},
            )
            return SchemaMismatch(error=f"{task.name}: {e}", raw=raw)

        return Ok(value)
