"""Application configuration helpers."""

from importlib import import_module

__all__ = ["ImportSettings", "all_enabled", "is_enabled", "reload"]


def __getattr__(name: str):
    if name == "ImportSettings":
        module = import_module("oaemeta.app.config")
        value = module.ImportSettings
    elif name in {"all_enabled", "is_enabled", "reload"}:
        module = import_module("oaemeta.app.flags")
        value = getattr(module, name)
    else:
        raise AttributeError(f"module 'oaemeta.app' has no attribute {name!r}")
    globals()[name] = value
    return value
