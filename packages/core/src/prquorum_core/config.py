import copy
import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "company_id": "default",
    "primary_backend": "anthropic",
    "secondary_backends": ["openai", "gemini"],  # priority order for merging
    "backends": {
        "anthropic": {"model": "claude-sonnet-4-20250514", "token_ceiling": 200000},
        "openai": {"model": "gpt-4o", "token_ceiling": 128000},
        "gemini": {"model": "gemini-2.5-flash", "token_ceiling": 1000000},
    },
    # Backends behind the optional second and third validation passes; the
    # third pass is bound to the validation_model variant.
    "second_validation_backend": "openai",
    "third_validation_backend": "gemini",
    "validation_model": "gemini-2.5-pro",
    "backend_timeout_seconds": 300,
    "persona": None,  # None = neutral reviewer; see prompts.PERSONAS
    "bot_login": "prquorum[bot]",
    "knowledge_base": None,  # optional path to a Markdown file of team conventions
    "flags": {
        "validation_pass": True,
        "no_op_detection": True,
    },
    "policies": {
        "default": {"max_tier": 4, "max_comments": 50},
    },
    "store": "noop",
    "store_path": ".prquorum.db",
}


def load_config(config_path: str = ".prquorum.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prquorum.yml in the current directory
      3. CLI argument overrides

    ``backends``, ``flags`` and ``policies`` merge one level deep so a config
    file can override a single backend model without restating the rest.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        for key, value in file_config.items():
            if key in ("backends", "flags", "policies") and isinstance(value, dict):
                merged = config[key]
                for sub_key, sub_value in value.items():
                    if isinstance(sub_value, dict) and isinstance(merged.get(sub_key), dict):
                        merged[sub_key] = {**merged[sub_key], **sub_value}
                    else:
                        merged[sub_key] = sub_value
            else:
                config[key] = value

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["gemini_api_key"] = os.environ.get("GEMINI_API_KEY")
    config["webhook_url"] = os.environ.get("PRQUORUM_WEBHOOK_URL")

    return config


def backend_setting(config: dict, backend: str, key: str, default=None):
    return (config.get("backends") or {}).get(backend, {}).get(key, default)


def load_knowledge_base(config: dict) -> str:
    """Return the team knowledge-base text, or "" when none is configured."""
    kb_path = config.get("knowledge_base")
    if not kb_path:
        return ""
    p = Path(kb_path)
    if not p.exists():
        raise FileNotFoundError(f"Knowledge base file not found: {kb_path}")
    return p.read_text()
