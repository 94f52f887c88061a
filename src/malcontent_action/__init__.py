from .app.main import run_diff, render_payload, convert_to_sarif

__all__ = [
    "run_diff",
    "render_payload",
    "convert_to_sarif",
]

# stdlib logging defaults: attach NullHandler to prevent 'No handler' warnings
import logging
_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())
