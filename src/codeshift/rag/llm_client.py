"""LiteLLM client for per-file generation, with API key validation.

The orchestrator owns the retry schedule, so this client makes exactly one
provider attempt per call (``num_retries=0``) and reports failures as
GenerationTransient or GenerationFatal according to classify_provider_error.
"""

from __future__ import annotations

import asyncio
import os

import litellm

from codeshift.config import GenerationCfg
from codeshift.errors import GenerationFatal, GenerationTransient, classify_provider_error

# LiteLLM prints debug banners by default.
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# Credential variable per LiteLLM provider prefix; None means no key is needed.
_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,
    "ollama_chat": None,
}

_SYSTEM_PROMPT = (
    "You are a senior software engineer who migrates source code between "
    "languages and frameworks. Follow the user's instructions and response "
    "format exactly."
)


def provider_of(model: str) -> str:
    """Provider prefix of a LiteLLM model string; bare names are OpenAI models."""
    prefix, sep, _ = model.partition("/")
    return prefix.lower() if sep else "openai"


def api_key_env(model: str) -> str | None:
    """Environment variable holding the credential for *model*, if any."""
    provider = provider_of(model)
    return _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")


def validate_api_key(model: str) -> None:
    """Fail fast when the credential for *model*'s provider is not exported.

    Raises:
        EnvironmentError: The provider needs a key and its variable is unset.
    """
    provider = provider_of(model)
    env_var = api_key_env(model)
    if env_var is not None and not os.getenv(env_var):
        raise EnvironmentError(
            f"No credential for provider '{provider}': {env_var} is not set."
        )


class LiteLLMClient:
    """``generate(prompt, timeout) -> str`` over ``litellm.acompletion``.

    Args:
        config: Generation section of the codeshift config.
    """

    def __init__(self, config: GenerationCfg | None = None) -> None:
        self.config = config or GenerationCfg()

    @property
    def model(self) -> str:
        return self.config.model

    async def generate(self, prompt: str, timeout: float) -> str:
        """Send *prompt* and return the text of the first choice.

        Raises:
            GenerationTransient: Timeout, overload or 5xx.
            GenerationFatal: Quota exhaustion, invalid request or empty output.
        """
        try:
            response = await asyncio.wait_for(
                litellm.acompletion(
                    model=self.config.model,
                    messages=[
                        {"role": "system", "content": _SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                    num_retries=0,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationTransient(f"LLM call timed out after {timeout:g}s") from exc
        except Exception as exc:  # litellm raises provider-specific exception types
            kind = classify_provider_error(exc)
            message = f"{type(exc).__name__}: {exc}"
            if kind == "transient":
                raise GenerationTransient(message) from exc
            raise GenerationFatal(message, kind=kind) from exc

        content = response.choices[0].message.content or ""
        if not content.strip():
            raise GenerationFatal("LLM returned an empty response", kind="empty")
        return content
