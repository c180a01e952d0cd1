"""Shared utilities for provider adapters."""
import logging

logger = logging.getLogger(__name__)


def normalize_ticker(raw: str) -> str:
    """Strip whitespace around a ticker; provider casing is kept as-is."""
    return raw.strip()


def parse_amount(raw: object) -> float | None:
    """Parse a decimal string (or number) amount; None when unparseable."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(str(raw).strip().replace(",", ""))
    except ValueError:
        logger.debug("Ignoring unparseable amount %r", raw)
        return None


def error_message(body: object, default: str) -> str:
    """Best-effort message from a provider error body."""
    if isinstance(body, dict):
        for key in ("message", "error_description", "error", "reason"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message") or default)
    return default
