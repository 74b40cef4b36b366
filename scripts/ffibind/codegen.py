"""
Code generation utilities

Indentation-aware line buffer shared by every target, plus the identifier
case conversions the namer builds on.
"""

import re
from typing import Iterable


class CodeGen:
    """Code generation helper with indentation support"""

    def __init__(self, indent_str: str = '    '):
        self._lines: list[str] = []
        self._indent: int = 0
        self._indent_str = indent_str

    def line(self, text: str = ''):
        """Add a line with current indentation"""
        if text:
            self._lines.append(self._indent_str * self._indent + text)
        else:
            self._lines.append('')

    def lines(self, *texts: str):
        for text in texts:
            self.line(text)

    def raw(self, text: str):
        """Add raw text without indentation processing"""
        self._lines.extend(text.split('\n'))

    def comment(self, text: str, marker: str):
        """Add a (possibly multi-line) comment, one marker per line"""
        for part in text.strip().split('\n'):
            self.line(f'{marker} {part}'.rstrip())

    def docstring(self, text: str):
        """Add a Python docstring"""
        text = text.strip().replace('\\', '\\\\').replace('"""', '\\"\\"\\"')
        parts = text.split('\n')
        if len(parts) == 1:
            self.line(f'"""{text}"""')
            return
        self.line(f'"""{parts[0]}')
        for part in parts[1:]:
            self.line(part.rstrip())
        self.line('"""')

    def indent(self):
        self._indent += 1

    def dedent(self):
        if self._indent > 0:
            self._indent -= 1

    def block(self, header: str, footer: str = '}'):
        """Context manager for code blocks"""
        return _BlockContext(self, header, footer)

    def blank(self):
        """Add an empty line unless the previous one already is"""
        if self._lines and self._lines[-1] != '':
            self._lines.append('')

    def output(self) -> str:
        return '\n'.join(self._lines) + '\n'


class _BlockContext:
    """Context manager for indented code blocks"""

    def __init__(self, gen: CodeGen, header: str, footer: str):
        self._gen = gen
        self._header = header
        self._footer = footer

    def __enter__(self):
        self._gen.line(self._header)
        self._gen.indent()
        return self

    def __exit__(self, *args):
        self._gen.dedent()
        if self._footer is not None:
            self._gen.line(self._footer)


_WORD_BOUNDARY = re.compile(r'[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+')


def split_words(name: str) -> list[str]:
    """Split snake_case, PascalCase and camelCase names into words

    Examples:
        pattern_ffi_slice_1 -> [pattern, ffi, slice, 1]
        SimpleService -> [Simple, Service]
        HTTPServer -> [HTTP, Server]
    """
    words = []
    for chunk in re.split(r'[^0-9A-Za-z]+', name):
        words.extend(_WORD_BOUNDARY.findall(chunk))
    return words


def as_pascal_case(name: str, prefix: str = '') -> str:
    """Convert a name to PascalCase, removing prefix

    Examples:
        vec_2 -> Vec2
        sg_begin_pass (prefix sg_) -> BeginPass
        Vec1 -> Vec1
    """
    if prefix and name.lower().startswith(prefix.lower()):
        name = name[len(prefix):]
    return ''.join(w[0].upper() + w[1:] for w in split_words(name))


def as_snake_case(name: str, prefix: str = '') -> str:
    """Convert a name to snake_case, removing prefix

    Examples:
        SimpleService -> simple_service
        method_value -> method_value
    """
    result = '_'.join(w.lower() for w in split_words(name))
    if prefix and result.startswith(prefix.lower()):
        result = result[len(prefix):]
    return result


def as_upper_snake_case(name: str, prefix: str = '') -> str:
    """Convert a name to UPPER_SNAKE_CASE

    Examples:
        NullPassed -> NULL_PASSED
        max_len -> MAX_LEN
    """
    return as_snake_case(name, prefix).upper()


def as_flat_upper(name: str) -> str:
    """Upper-case a name without inserting word breaks

    Examples:
        FFIError -> FFIERROR
        a::Vec -> A_VEC
    """
    return re.sub(r'[^0-9A-Za-z]+', '_', name).upper()


CASES = {
    'pascal': as_pascal_case,
    'snake': as_snake_case,
    'upper_snake': as_upper_snake_case,
    'preserve': lambda name, prefix='': name,
}


def convert_case(name: str, case: str) -> str:
    return CASES[case](name)


def escape_keyword(name: str, keywords: Iterable[str]) -> str:
    """Append '_' to reserved words"""
    if name in keywords:
        return name + '_'
    return name
