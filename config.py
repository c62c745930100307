import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}

ONBOARDING_SERVICES_URL = os.getenv("ONBOARDING_SERVICES_URL", "")
ONBOARDING_SERVICES_API_KEY = os.getenv("ONBOARDING_SERVICES_API_KEY")
ONBOARDING_SERVICES_TIMEOUT_SECONDS = _float_env("ONBOARDING_SERVICES_TIMEOUT_SECONDS", 10.0)
ONBOARDING_SERVICES_MAX_RETRIES = _int_env("ONBOARDING_SERVICES_MAX_RETRIES", 3)
ONBOARDING_SERVICES_BACKOFF_SECONDS = _float_env("ONBOARDING_SERVICES_BACKOFF_SECONDS", 0.2)

ONBOARDING_UPLOADS_ENABLED = _bool_env("ONBOARDING_UPLOADS_ENABLED", True)  # ignored without ONBOARDING_SERVICES_URL
ONBOARDING_LOG_JSON = _bool_env("ONBOARDING_LOG_JSON", True)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
