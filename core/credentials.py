"""
Credential resolver.

Maps a caller to the named API credentials available to its tools. Keys come
only from the Settings object built at startup and only for names on the
SUPPORTED_KEYS allow-list.
"""
import logging
from typing import Dict, List

from config.settings import Settings
from core.errors import ValidationError
from core.secrets import mask_key

logger = logging.getLogger(__name__)

SUPPORTED_KEYS = (
    # market data / on-chain
    "COINGECKO_API_KEY",
    "COINMARKETCAP_API_KEY",
    "BIRDEYE_API_KEY",
    "DEXSCREENER_API_KEY",
    "CRYPTOCOMPARE_API_KEY",
    "MESSARI_API_KEY",
    "LUNARCRUSH_TOKEN",
    "ETH_API_KEY",
    "SOL_API_KEY",
    # search / news
    "SERPER_API_KEY",
    "TAVILY_API_KEY",
    "JINA_API_KEY",
    # inference
    "FIREWORKS_API_KEY",
    "GROQ_API_KEY",
    "OPENROUTER_API_KEY",
    "AIML_API_KEY",
)


def resolve_credentials(caller_id: str, settings: Settings) -> Dict[str, str]:
    """
    Return {key_name: secret} for every allow-listed key that is configured.

    caller_id is accepted for per-tenant keys later; it does not change the
    result today.
    """
    keys: Dict[str, str] = {}
    for name in SUPPORTED_KEYS:
        value = getattr(settings, name, None)
        if value:
            keys[name] = value
    logger.debug("Resolved %d credentials for caller=%s", len(keys), caller_id)
    return keys


def get_api_key(name: str, settings: Settings) -> str:
    """Single key lookup; '' when not configured. Unknown names are rejected."""
    if name not in SUPPORTED_KEYS:
        raise ValidationError(f"Unsupported credential: {name}")
    return getattr(settings, name, None) or ""


def key_status(name: str, settings: Settings) -> dict:
    """Configured flag and masked preview for one allow-listed key."""
    value = get_api_key(name, settings)
    return {"name": name, "configured": bool(value), "preview": mask_key(value) if value else None}


def configured_keys(settings: Settings) -> List[dict]:
    """Allow-listed keys with a configured flag and a masked preview."""
    return [key_status(name, settings) for name in SUPPORTED_KEYS]
