"""Fallback payloads for unexpected failures while processing an order step."""
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception in order flow: %s", exc, exc_info=exc)
        return {
            "error": "internal_error",
            "message": "An internal error occurred while processing your order. Please try again later.",
            "fallback": True,
            "metadata": {"error_type": type(exc).__name__, "context": context or {}},
        }
