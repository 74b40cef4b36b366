"""
ffibind - FFI binding generator

Reads the exported surface of a native library as a type graph, recognizes
the idioms it is built from (slices, options, results, services, owned
strings, callbacks) and emits bindings for several target languages from
one model.
"""

from .ir import (
    TypeGraph, GraphBuilder, TypeId, PrimitiveKind, Repr, Layout,
    StructInfo, FieldInfo, EnumInfo, EnumItem, OpaqueInfo, PointerInfo, FnPointerInfo,
    ArrayInfo, GenericInfo, InstanceInfo, FuncInfo, ParamInfo, ConstInfo,
)
from .errors import (
    GenerationError, UnresolvedType, DuplicateSymbol, AmbiguousPattern, UnsupportedConstruct,
    InvalidGraph, LayoutMismatch, ConfigError,
)
from .config import GeneratorConfig
from .codegen import CodeGen
from .monomorph import Monomorphizer
from .patterns import Classifier, Classification
from .naming import Namer, NameStyle, Naming
from .model import BindingModel
from .backend import Backend, Phase, register_backend, get_backend
from .validate import Validator
from .generator import Generator, generate, write_files
from .log import setup_logging, get_logger

__version__ = '0.1.0'

__all__ = [
    'TypeGraph', 'GraphBuilder', 'TypeId', 'PrimitiveKind', 'Repr', 'Layout',
    'StructInfo', 'FieldInfo', 'EnumInfo', 'EnumItem', 'OpaqueInfo', 'PointerInfo',
    'FnPointerInfo', 'ArrayInfo', 'GenericInfo', 'InstanceInfo', 'FuncInfo', 'ParamInfo',
    'ConstInfo',
    'GenerationError', 'UnresolvedType', 'DuplicateSymbol', 'AmbiguousPattern',
    'UnsupportedConstruct', 'InvalidGraph', 'LayoutMismatch', 'ConfigError',
    'GeneratorConfig',
    'CodeGen',
    'Monomorphizer',
    'Classifier', 'Classification',
    'Namer', 'NameStyle', 'Naming',
    'BindingModel',
    'Backend', 'Phase', 'register_backend', 'get_backend',
    'Validator',
    'Generator', 'generate', 'write_files',
    'setup_logging', 'get_logger',
]
