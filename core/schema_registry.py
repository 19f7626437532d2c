# app/core/schema_registry.py
"""
Schema installer registry.

Modules under ``schemas/`` decorate their installer with
``@register("name")``; ``auto_discover`` imports them all and ``run_all``
calls every installer against an engine. Installers must be idempotent
(CREATE TABLE IF NOT EXISTS).
"""
from __future__ import annotations
from pathlib import Path
from typing import Callable, Dict
import importlib
import logging

from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

Installer = Callable[[Engine], None]

_REGISTRY: Dict[str, Installer] = {}

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"


def register(name: str):
    """Decorator registering an installer under ``name`` (first wins)."""
    def decorator(func: Installer) -> Installer:
        if name in _REGISTRY and _REGISTRY[name] is not func:
            logger.warning(f"Schema installer '{name}' registered twice; keeping the first")
        else:
            _REGISTRY[name] = func
        return func
    return decorator


def auto_discover(package: str = "schemas") -> list:
    """Import every ``*_schema.py`` module so its installers register."""
    imported = []
    for path in sorted(SCHEMAS_DIR.glob("*_schema.py")):
        module_name = f"{package}.{path.stem}"
        importlib.import_module(module_name)
        imported.append(module_name)
    return imported


def run_all(engine: Engine) -> list:
    """Run installers in registration order. Returns the names run."""
    ran = []
    for name, installer in _REGISTRY.items():
        logger.info(f"Installing schema: {name}")
        installer(engine)
        ran.append(name)
    return ran
