"""Feature-module registry.

Modules register once at startup. The database layer then creates the tables
they declare and the scheduler runs their jobs.
"""

import logging
from itertools import chain

from pairplan.core.module import Module, ScheduledJob


logger = logging.getLogger(__name__)

_modules: dict[str, Module] = {}


def register_module(module: Module) -> None:
    """Add a module under its name.

    Raises:
        ValueError: If the name is already taken
    """
    if module.name in _modules:
        msg = f"Module '{module.name}' is already registered"
        raise ValueError(msg)
    _modules[module.name] = module
    logger.info("Registered module %s", module.name)


def unregister_module(name: str) -> None:
    """Remove a module if present."""
    _modules.pop(name, None)


def get_modules() -> dict[str, Module]:
    """Snapshot of the registered modules by name."""
    return dict(_modules)


def get_all_table_schemas() -> dict[str, str]:
    """Table name to CREATE statement across every module.

    Raises:
        ValueError: If two modules declare the same table
    """
    owners: dict[str, str] = {}
    schemas: dict[str, str] = {}
    for module_name, module in _modules.items():
        for table, statement in module.get_table_schemas().items():
            if table in owners:
                msg = f"Table '{table}' is declared by both '{owners[table]}' and '{module_name}'"
                raise ValueError(msg)
            owners[table] = module_name
            schemas[table] = statement
    return schemas


def get_all_indexes() -> list[str]:
    return list(chain.from_iterable(module.get_indexes() for module in _modules.values()))


def get_all_scheduled_jobs() -> list[ScheduledJob]:
    return list(chain.from_iterable(module.get_scheduled_jobs() for module in _modules.values()))
