"""
FormHandler Core
================

Configuration, placeholder resolution, rule processing and the
handler that ties them together.

The handler is loaded lazily since it depends on the validation
package, which itself reads configuration from here.
"""

from __future__ import annotations

from formhandler.core.config import Config, get_config, reset_config
from formhandler.core.resolver import OptionResolver


def __getattr__(name: str):
    _imports = {
        "Handler": "formhandler.core.handler",
        "RuleProcessor": "formhandler.core.rules",
        "ProcessedRules": "formhandler.core.rules",
    }

    if name in _imports:
        import importlib
        module = importlib.import_module(_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'formhandler.core' has no attribute '{name}'")


__all__ = [
    "Config",
    "get_config",
    "reset_config",
    "OptionResolver",
    "Handler",
    "RuleProcessor",
    "ProcessedRules",
]
