"""Text-generation providers that produce external grading reports.

OpenAI, Anthropic (Claude) and Google (Gemini) are wrapped behind one
callable signature, ``call(messages, temperature, top_p) -> str``.  The
scoring core never imports this module; only the callers (CLI, web API)
fetch grading text and hand it to :meth:`scoring.ScoringEngine.grade`.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Optional

import config

logger = logging.getLogger("encounter_scorer.providers")

LLMCaller = Callable[[list[dict[str, str]], float, float], str]

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))

# provider -> (environment variable, key file in scripts/)
_KEY_CONFIG = {
    "openai":    ("OPENAI_API_KEY",    "openai_api_key.txt"),
    "anthropic": ("ANTHROPIC_API_KEY", "anthropic_api_key.txt"),
    "google":    ("GOOGLE_API_KEY",    "google_api_key.txt"),
}


class MissingAPIKeyError(RuntimeError):
    """No API key is configured for the requested provider."""


def get_api_key(provider: str) -> str:
    """Return the API key for *provider*.

    The environment variable wins over the key file.  Raises
    :class:`MissingAPIKeyError` when neither is set.
    """
    env_var, key_file = _KEY_CONFIG[provider]

    env_key = os.environ.get(env_var, "").strip()
    if env_key:
        return env_key

    key = _read_key_file(os.path.join(SCRIPT_DIR, key_file))
    if key:
        return key

    raise MissingAPIKeyError(
        f"No API key found for provider '{provider}'. Set the {env_var} "
        f"environment variable or create {key_file} in the scripts/ directory."
    )


def _read_key_file(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            key = f.read().strip()
            return key or None
    except FileNotFoundError:
        return None


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------

def split_system_prompt(
    messages: list[dict[str, str]],
) -> tuple[str, list[dict[str, str]]]:
    """Return ``(system_prompt, remaining_messages)``."""
    system_parts: list[str] = []
    others: list[dict[str, str]] = []
    for msg in messages:
        if msg["role"] == "system":
            system_parts.append(msg["content"])
        else:
            others.append(msg)
    return "\n".join(system_parts), others


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------

def _make_openai_caller(api_key: str, model: str) -> LLMCaller:
    from openai import OpenAI

    client = OpenAI(api_key=api_key)

    def call(messages: list[dict[str, str]], temperature: float, top_p: float) -> str:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            top_p=top_p,
            max_tokens=config.MAX_TOKENS,
        )
        return (response.choices[0].message.content or "").strip()

    return call


def _make_anthropic_caller(api_key: str, model: str) -> LLMCaller:
    from anthropic import Anthropic

    client = Anthropic(api_key=api_key)

    def call(messages: list[dict[str, str]], temperature: float, top_p: float) -> str:
        system_prompt, user_messages = split_system_prompt(messages)

        # Anthropic accepts 0.0-1.0 and not temperature together with top_p
        clamped = min(temperature, 1.0)
        if clamped != temperature:
            logger.debug("Anthropic: temperature clamped from %.2f to %.2f", temperature, clamped)

        message = client.messages.create(
            model=model,
            max_tokens=config.MAX_TOKENS,
            system=system_prompt,
            messages=user_messages,
            temperature=clamped,
        )
        return "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        ).strip()

    return call


def _make_google_caller(api_key: str, model: str) -> LLMCaller:
    from google import genai
    from google.genai import types

    client = genai.Client(api_key=api_key)

    def call(messages: list[dict[str, str]], temperature: float, top_p: float) -> str:
        system_prompt, user_messages = split_system_prompt(messages)
        contents = [
            types.Content(
                role="model" if msg["role"] == "assistant" else msg["role"],
                parts=[types.Part.from_text(text=msg["content"])],
            )
            for msg in user_messages
        ]
        response = client.models.generate_content(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=system_prompt or None,
                temperature=temperature,
                top_p=top_p,
                max_output_tokens=config.MAX_TOKENS,
            ),
        )
        return (response.text or "").strip()

    return call


_PROVIDER_FACTORIES = {
    "openai":    _make_openai_caller,
    "anthropic": _make_anthropic_caller,
    "google":    _make_google_caller,
}

SUPPORTED_PROVIDERS = list(_PROVIDER_FACTORIES.keys())


def resolve_model(provider: str, model: Optional[str] = None) -> str:
    """Explicit *model*, else ``config.MODEL`` for the configured provider,
    else the provider's default model."""
    if model:
        return model
    if provider == config.PROVIDER:
        return config.MODEL
    return config.DEFAULT_MODELS.get(provider, config.MODEL)


def create_caller(provider: str, model: Optional[str] = None) -> LLMCaller:
    """Create an LLM caller for *provider*.

    Raises ``ValueError`` for an unknown provider and
    :class:`MissingAPIKeyError` when no key is configured.
    """
    if provider not in _PROVIDER_FACTORIES:
        raise ValueError(
            f"Unknown provider '{provider}'. Supported providers: "
            + ", ".join(SUPPORTED_PROVIDERS)
        )
    api_key = get_api_key(provider)
    return _PROVIDER_FACTORIES[provider](api_key, resolve_model(provider, model))
