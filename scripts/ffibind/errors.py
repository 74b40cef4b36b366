"""
Generation error definitions

Every failure raised while reading, classifying, naming, emitting or
validating a type graph derives from GenerationError. Errors are fatal:
the run stops at the first one and no partial output is written.
"""

from typing import Optional


class GenerationError(Exception):
    """Base class for all generation-time errors"""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ', '.join(f'{k}={v}' for k, v in self.details.items())
            return f'{self.message} ({detail_str})'
        return self.message


class UnresolvedType(GenerationError):
    """A referenced TypeId has no definition"""

    def __init__(self, type_id: str, referenced_by: str = ''):
        details = {'type': type_id}
        if referenced_by:
            details['referenced_by'] = referenced_by
        super().__init__(f'unresolved type {type_id!r}', details)
        self.type_id = type_id
        self.referenced_by = referenced_by


class DuplicateSymbol(GenerationError):
    """Two exported names collide in one namespace"""

    def __init__(self, name: str, first: str, second: str, target: str = ''):
        details = {'first': first, 'second': second}
        if target:
            details['target'] = target
        super().__init__(f'duplicate symbol {name!r}', details)
        self.name = name
        self.first = first
        self.second = second
        self.target = target


class AmbiguousPattern(GenerationError):
    """A node matches more than one pattern, or a pattern is incomplete"""

    def __init__(self, node: str, reason: str, candidates: Optional[list[str]] = None):
        details = {'node': node}
        if candidates:
            details['candidates'] = '|'.join(candidates)
        super().__init__(f'ambiguous pattern: {reason}', details)
        self.node = node
        self.reason = reason
        self.candidates = candidates or []


class UnsupportedConstruct(GenerationError):
    """A target lacks a capability some node requires"""

    def __init__(self, target: str, construct: str, node: str = ''):
        details = {'target': target}
        if node:
            details['node'] = node
        super().__init__(f'{construct} is not supported by target {target!r}', details)
        self.target = target
        self.construct = construct
        self.node = node


class InvalidGraph(GenerationError):
    """The type graph violates a structural invariant"""

    def __init__(self, node: str, reason: str):
        super().__init__(f'invalid graph: {reason}', {'node': node})
        self.node = node
        self.reason = reason


class LayoutMismatch(GenerationError):
    """A recomputed layout disagrees with the declared one"""

    def __init__(self, node: str, declared: tuple[int, int], computed: tuple[int, int]):
        super().__init__(
            'layout mismatch',
            {
                'node': node,
                'declared': f'size={declared[0]} align={declared[1]}',
                'computed': f'size={computed[0]} align={computed[1]}',
            },
        )
        self.node = node
        self.declared = declared
        self.computed = computed


class ConfigError(GenerationError):
    """Invalid generator configuration"""

    def __init__(self, message: str, key: str = ''):
        super().__init__(message, {'key': key} if key else None)
        self.key = key
