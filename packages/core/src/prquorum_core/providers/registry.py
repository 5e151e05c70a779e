from __future__ import annotations

import logging

from prquorum_core.config import backend_setting
from prquorum_core.providers.anthropic import AnthropicCaller
from prquorum_core.providers.base import BackendCaller
from prquorum_core.providers.gemini import GeminiCaller
from prquorum_core.providers.openai import OpenAICaller

logger = logging.getLogger(__name__)

_PROVIDERS: dict[str, tuple[type[BackendCaller], str]] = {
    "anthropic": (AnthropicCaller, "anthropic_api_key"),
    "openai": (OpenAICaller, "openai_api_key"),
    "gemini": (GeminiCaller, "gemini_api_key"),
}


def known_backends() -> list[str]:
    return list(_PROVIDERS)


def build_backend(name: str, config: dict) -> BackendCaller:
    if name not in _PROVIDERS:
        raise ValueError(f"Unknown backend: {name!r}. Choose one of {', '.join(_PROVIDERS)}.")
    cls, key_name = _PROVIDERS[name]
    api_key = config.get(key_name)
    if not api_key:
        raise ValueError(f"{key_name.upper()} is not set; cannot use the {name} backend.")
    return cls(api_key=api_key, model=backend_setting(config, name, "model"))


def build_backends(config: dict) -> dict[str, BackendCaller]:
    """Instantiate the primary backend and every secondary backend that has credentials.

    The primary backend is mandatory; a secondary backend without an API key
    is left out and will simply not take part in dispatch.
    """
    primary = config["primary_backend"]
    backends = {primary: build_backend(primary, config)}
    for name in config.get("secondary_backends") or []:
        if name == primary or name in backends:
            continue
        try:
            backends[name] = build_backend(name, config)
        except ValueError as e:
            logger.info("Secondary backend %s unavailable: %s", name, e)
    return backends
