"""
Generator configuration

Settings shared by every target plus one option table per target. Loaded
from JSON (the --config file) or built in code; unknown keys are rejected
so typos do not silently fall back to defaults.
"""

from dataclasses import dataclass, field, fields
import json

from .errors import ConfigError

TARGET_OPTIONS = {
    'c': {
        'ifndef': '',
        'header_comment': '/* machine generated, do not edit */',
        'function_attribute': '',
        'directives': [],
    },
    'python': {
        'module_doc': '',
    },
    'lua': {
        'module_name': '',
        'export_macro': 'FFIBIND_API',
    },
}


@dataclass
class GeneratorConfig:
    """Configuration for one generator run"""
    library: str = ''
    targets: list[str] = field(default_factory=list)
    ignore: list[str] = field(default_factory=list)
    type_prefix: str = ''
    pointer_width: int = 8
    docs: bool = True
    c: dict = field(default_factory=dict)
    python: dict = field(default_factory=dict)
    lua: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.pointer_width not in (4, 8):
            raise ConfigError(f'pointer width must be 4 or 8, got {self.pointer_width}', 'pointer_width')
        for target, defaults in TARGET_OPTIONS.items():
            options = getattr(self, target)
            for key in options:
                if key not in defaults:
                    raise ConfigError(f'unknown {target} option {key!r}', f'{target}.{key}')
            setattr(self, target, {**defaults, **options})

    @classmethod
    def from_dict(cls, data: dict) -> 'GeneratorConfig':
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                raise ConfigError(f'unknown configuration key {key!r}', key)
        return cls(**data)

    @classmethod
    def load(cls, json_path: str) -> 'GeneratorConfig':
        """Load configuration from a JSON file"""
        try:
            with open(json_path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f'cannot read configuration {json_path}: {e}') from e
        if not isinstance(data, dict):
            raise ConfigError('configuration must be a JSON object')
        return cls.from_dict(data)

    def options(self, target: str) -> dict:
        """Option table of one target (empty for targets without options)"""
        return getattr(self, target, {}) if target in TARGET_OPTIONS else {}
