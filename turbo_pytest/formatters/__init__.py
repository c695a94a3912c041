"""Built-in formatters and formatter registration."""

from turbo_pytest.formatters.base import Capability, detect_capabilities
from turbo_pytest.formatters.documentation import DocumentationFormatter
from turbo_pytest.formatters.json_summary import JsonFormatter
from turbo_pytest.formatters.progress import ProgressFormatter
from turbo_pytest.formatters.registry import (
    FormatterRegistry,
    build_registry,
    register_formatter,
)

__all__ = [
    "Capability",
    "DocumentationFormatter",
    "FormatterRegistry",
    "JsonFormatter",
    "ProgressFormatter",
    "build_registry",
    "detect_capabilities",
    "register_formatter",
]
