"""Name to formatter resolution.

The registry is filled once at startup from the built-in formatters, the
``turbo_pytest.formatters`` entry point group and any formatter registered
with :func:`register_formatter` by a module loaded through ``--require``.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from importlib.metadata import entry_points

from turbo_pytest.errors import FormatterNotFoundError
from turbo_pytest.formatters.base import FormatterFactory
from turbo_pytest.formatters.documentation import DocumentationFormatter
from turbo_pytest.formatters.json_summary import JsonFormatter
from turbo_pytest.formatters.progress import ProgressFormatter

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "turbo_pytest.formatters"

BUILTIN_FORMATTERS: Sequence[tuple[FormatterFactory, Sequence[str]]] = (
    (ProgressFormatter, ("progress", "p")),
    (DocumentationFormatter, ("documentation", "d")),
    (JsonFormatter, ("json", "j")),
)

_registered: dict[str, FormatterFactory] = {}


def register_formatter(
    *names: str,
) -> Callable[[FormatterFactory], FormatterFactory]:
    """Register a custom formatter under one or more names.

    Intended for modules loaded with ``--require``::

        @register_formatter("teamcity")
        class TeamCityFormatter:
            def __init__(self, output): ...
    """

    def decorator(factory: FormatterFactory) -> FormatterFactory:
        for name in names:
            _registered[name] = factory
        return factory

    return decorator


@dataclass(kw_only=True)
class FormatterRegistry:
    """Explicit mapping of formatter names and aliases to constructors."""

    factories: dict[str, FormatterFactory] = field(default_factory=dict)

    def add(self, factory: FormatterFactory, *names: str) -> None:
        for name in names:
            self.factories[name] = factory

    def resolve(self, name: str) -> FormatterFactory:
        """Return the constructor registered for ``name``.

        Raises:
            FormatterNotFoundError: If no formatter has that name

        """
        try:
            return self.factories[name]
        except KeyError:
            raise FormatterNotFoundError(
                f"Formatter '{name}' not found. "
                f"Available formatters: {sorted(self.factories)}"
            ) from None

    def load_entry_points(self) -> None:
        for entry in entry_points(group=ENTRY_POINT_GROUP):
            if entry.name in self.factories:
                log.debug("Entry point %s shadowed by a built-in", entry.name)
                continue
            self.factories[entry.name] = entry.load()


def build_registry() -> FormatterRegistry:
    """Create the registry used for a run."""
    registry = FormatterRegistry()
    for factory, names in BUILTIN_FORMATTERS:
        registry.add(factory, *names)
    registry.load_entry_points()
    for name, factory in _registered.items():
        registry.add(factory, name)
    return registry
