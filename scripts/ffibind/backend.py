"""
Target emitter interface

A Backend turns one BindingModel into source files for one language. The
engine (generator.py) calls one emit_* operation per node and phase;
operations a backend does not override raise UnsupportedConstruct.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .errors import UnsupportedConstruct
from .ir import describe

if TYPE_CHECKING:
    from .model import BindingModel
    from .naming import NameStyle

BACKENDS: dict[str, type['Backend']] = {}


class Phase(Enum):
    """Emission pass"""
    DECLARE = 'declare'
    DEFINE = 'define'


def register_backend(name: str):
    """Decorator to register a backend class under a target key"""
    def decorator(cls):
        cls.name = name
        BACKENDS[name] = cls
        return cls
    return decorator


def get_backend(name: str) -> type['Backend']:
    # Importing the package registers the built-in targets.
    from . import targets  # noqa: F401
    try:
        return BACKENDS[name]
    except KeyError:
        raise UnsupportedConstruct(name, 'unknown target') from None


class Backend(ABC):
    """Base class for target emitters"""

    name: str = ''
    style: Optional['NameStyle'] = None
    capabilities: frozenset = frozenset()

    def __init__(self, model: 'BindingModel', options: Optional[dict] = None):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming
        self.options = options or {}

    def check_capabilities(self):
        """Raise before emission when the model needs something this target lacks"""
        missing = sorted(self.model.required_capabilities() - set(self.capabilities))
        if missing:
            raise UnsupportedConstruct(self.name, missing[0])

    def unsupported(self, construct: str, node) -> UnsupportedConstruct:
        return UnsupportedConstruct(self.name, construct, describe(node))

    # --------------------------------------------------------------------------
    # Engine hooks
    # --------------------------------------------------------------------------

    def begin(self):
        pass

    @abstractmethod
    def finish(self) -> dict[str, str]:
        """Return the generated files as {filename: text}"""

    # --------------------------------------------------------------------------
    # One operation per IR concept
    # --------------------------------------------------------------------------

    def emit_primitive(self, info, phase: Phase):
        raise self.unsupported('primitive', info)

    def emit_struct(self, info, phase: Phase):
        raise self.unsupported('struct', info)

    def emit_enum(self, info, phase: Phase):
        raise self.unsupported('enum', info)

    def emit_opaque(self, info, phase: Phase):
        raise self.unsupported('opaque', info)

    def emit_slice(self, info, pattern, phase: Phase):
        raise self.unsupported('slice', info)

    def emit_option(self, info, pattern, phase: Phase):
        raise self.unsupported('option', info)

    def emit_result(self, info, pattern, phase: Phase):
        raise self.unsupported('result', info)

    def emit_service(self, info, pattern, phase: Phase):
        raise self.unsupported('service', info)

    def emit_string(self, info, pattern, phase: Phase):
        raise self.unsupported('string', info)

    def emit_callback(self, info, pattern, phase: Phase):
        raise self.unsupported('callback', info)

    def emit_function(self, func):
        raise self.unsupported('function', func)

    def emit_constant(self, const):
        raise self.unsupported('constant', const)
