"""Loading of user modules given with ``--require``."""

import importlib
import importlib.util
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from turbo_pytest.errors import ConfigurationError

log = logging.getLogger(__name__)


def load_requires(requires: Sequence[str]) -> None:
    """Import each path (``.py`` file) or dotted module name.

    Modules typically register custom formatters when imported.

    Raises:
        ConfigurationError: If a module cannot be found or fails to import

    """
    for target in requires:
        log.debug("Requiring %s", target)
        try:
            if target.endswith(".py") or Path(target).is_file():
                _load_file(Path(target))
            else:
                importlib.import_module(target)
        except (ImportError, OSError) as exc:
            raise ConfigurationError(f"Cannot require '{target}': {exc}") from exc


def _load_file(path: Path) -> None:
    if not path.is_file():
        raise FileNotFoundError(f"No such file: {path}")

    name = f"turbo_pytest_require_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
