"""Defaults for the harness, overridable through the environment."""

import os

DEFAULT_TIMEOUT_MS = int(os.getenv("API_HARNESS_TIMEOUT_MS", "30000"))
DEFAULT_MODEL = os.getenv("API_HARNESS_MODEL", "claude-sonnet-4-20250514")
LLM_TIMEOUT_S = float(os.getenv("API_HARNESS_LLM_TIMEOUT_S", "60"))
DEFAULT_API_KEY_HEADER = "Authorization"
LOG_LEVEL = os.getenv("API_HARNESS_LOG_LEVEL", "WARNING").upper()
