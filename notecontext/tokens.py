"""
Token estimation and budget derivation for notecontext.

Token counts are estimated with a cheap length heuristic (one token for every
four characters). The estimate is coarse for non-Latin scripts; changing it
changes every allocation, so it stays fixed here.
"""

import logging
import math
from typing import Optional

DEFAULT_CONTEXT_WINDOW = 6000
DEFAULT_RESERVE_FRACTION = 0.7

# Context tokens granted per model, conservative relative to the real windows.
MODEL_CONTEXT_WINDOWS = {
    "openai": {
        "gpt-4o": 24000,
        "gpt-4o-mini": 24000,
        "gpt-4-turbo": 24000,
        "gpt-4": 6000,
        "gpt-3.5-turbo": 2000,
    },
    "anthropic": {
        "claude-3-5-sonnet-20241022": 180000,
        "claude-3-5-haiku-20241022": 180000,
        "claude-3-opus-20240229": 180000,
        "claude-3-sonnet-20240229": 180000,
        "claude-3-haiku-20240307": 180000,
    },
    "groq": {
        "llama-3.3-70b-versatile": 24000,
        "llama-3.1-70b-versatile": 24000,
        "llama-3.1-8b-instant": 24000,
        "llama3-groq-70b-8192-tool-use-preview": 6000,
        "llama3-groq-8b-8192-tool-use-preview": 6000,
    },
    "xai": {
        "grok-beta": 24000,
        "grok-vision-beta": 24000,
    },
}

# Ollama models are matched on size markers in their names, first match wins.
OLLAMA_SIZE_PATTERNS = [
    (("70b", "72b"), 24000),
    (("13b", "14b", "34b"), 16000),
    (("7b", "8b", "9b"), 12000),
    (("3b", "4b"), 8000),
    (("1b", "2b"), 4000),
    (("code", "deepseek"), 16000),
    (("qwen",), 16000),
    (("mistral",), 8000),
    (("llama",), 12000),
]
OLLAMA_DEFAULT_WINDOW = 8000


def estimate_tokens(text: str) -> int:
    """Estimate tokens as ceil(len(text) / 4)."""
    return math.ceil(len(text) / 4)


def ollama_context_window(model: str) -> int:
    """Guess an Ollama model's usable window from its name."""
    name = model.lower()
    for markers, window in OLLAMA_SIZE_PATTERNS:
        if any(marker in name for marker in markers):
            return window
    return OLLAMA_DEFAULT_WINDOW


def model_context_window(provider: Optional[str], model: Optional[str],
                         default: int = DEFAULT_CONTEXT_WINDOW) -> int:
    """
    Look up the context window to plan against for a provider/model pair.

    Args:
        provider: Provider name (openai, anthropic, groq, xai, ollama)
        model: Model name
        default: Window used for unknown providers or models

    Returns:
        The context window in tokens
    """
    if not provider or not model:
        return default

    if provider == "ollama":
        return ollama_context_window(model)

    provider_windows = MODEL_CONTEXT_WINDOWS.get(provider)
    if provider_windows is None:
        logging.warning(f"Unknown provider: {provider}, using default context window")
        return default

    window = provider_windows.get(model)
    if window is None:
        logging.warning(f"Unknown model: {model} for provider: {provider}, using default context window")
        return default

    return window


def context_budget(context_window: int, reserve_fraction: float = DEFAULT_RESERVE_FRACTION) -> int:
    """
    Derive the global context budget from a model window.

    The remainder of the window is left for the model's reply.

    Args:
        context_window: Model context window in tokens
        reserve_fraction: Fraction of the window granted to context

    Returns:
        floor(context_window * reserve_fraction)
    """
    return math.floor(context_window * reserve_fraction)
