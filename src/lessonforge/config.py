"""Runtime configuration loaded from the environment.

Values are read once at import time. A ``.env`` file (or the file named by
``ENV_FILE``) is loaded first so local development does not need exported
variables.
"""

import json
import os

from dotenv import load_dotenv

load_dotenv(os.getenv("ENV_FILE"), override=True)


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

# LLM
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
ENABLE_LANGFUSE = _get_bool("ENABLE_LANGFUSE", False)

# Per model cost overrides, e.g. {"gpt-4o-mini": {"input": 0.15, "output": 0.6, "cached": 0.075}}
LLM_COST_OVERRIDES = json.loads(os.getenv("LLM_COST_OVERRIDES", "{}"))

# Shared context bounds
SOURCE_TEXT_LIMIT = int(os.getenv("SOURCE_TEXT_LIMIT", "1000"))
MAX_KEY_VOCABULARY = int(os.getenv("MAX_KEY_VOCABULARY", "10"))
MAX_MAIN_THEMES = int(os.getenv("MAX_MAIN_THEMES", "3"))
MAX_UPDATED_THEMES = int(os.getenv("MAX_UPDATED_THEMES", "5"))
SUMMARY_LIMIT = int(os.getenv("SUMMARY_LIMIT", "300"))

# Section generation
WARMUP_MAX_ATTEMPTS = int(os.getenv("WARMUP_MAX_ATTEMPTS", "2"))
MAX_VOCABULARY_WORDS = int(os.getenv("MAX_VOCABULARY_WORDS", "8"))
BATCH_TOKEN_LIMIT = int(os.getenv("BATCH_TOKEN_LIMIT", "1000"))
