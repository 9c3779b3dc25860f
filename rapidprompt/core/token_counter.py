# rapidprompt/core/token_counter.py
from functools import lru_cache
from typing import Optional, Any # Any for encoder type hint flexibility

import tiktoken
from loguru import logger

DEFAULT_ENCODING = "o200k_base" # GPT-4o family
FALLBACK_ENCODING = "cl100k_base"

# --- Core Logic (Pure Python) ---

@lru_cache(maxsize=4) # Cache a few loaded encoder objects
def _get_cached_encoder(encoding_name: str) -> Optional[Any]:
    """Internal helper to load and cache encoder objects."""
    try:
        logger.debug(f"Attempting to load tiktoken encoder: {encoding_name}")
        encoder = tiktoken.get_encoding(encoding_name)
        logger.debug(f"Successfully loaded encoder '{encoding_name}'.")
        return encoder
    except Exception as e:
        # Unknown name, or the BPE file could not be fetched (offline first run)
        logger.warning(f"Failed to get tiktoken encoder '{encoding_name}': {e}. Trying fallback '{FALLBACK_ENCODING}'.")
        if encoding_name == FALLBACK_ENCODING:
             logger.error(f"Fallback encoder '{FALLBACK_ENCODING}' also failed. No encoder available.")
             return None
        return _get_cached_encoder(FALLBACK_ENCODING)

def is_estimated(encoding_name: str = DEFAULT_ENCODING) -> bool:
    """True when counts for this encoding come from the character estimate."""
    return _get_cached_encoder(encoding_name) is None

def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """
    Counts tokens in the exact string that will be copied or exported.
    Falls back to a character estimate if no encoder can be loaded.
    """
    if not text:
        return 0

    encoder = _get_cached_encoder(encoding_name)

    if encoder:
        try:
            # Document text may legitimately contain special-token strings like "<|endoftext|>"
            return len(encoder.encode(text, disallowed_special=()))
        except Exception as e:
            logger.error(f"Error encoding text for token count with '{encoding_name}': {e}")
            estimated_tokens = len(text) // 4
            logger.warning(f"Falling back to character-based estimation: {estimated_tokens} tokens.")
            return estimated_tokens
    return len(text) // 4
