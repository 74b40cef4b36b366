"""
Command line interface

    ffibind IR.json -t python -t c -o OUT [--config CFG.json] [--library NAME]
            [--ignore SYMBOL ...] [--log-level LEVEL]

Exit codes: 0 on success, 1 on a generation error, 2 on usage errors.
"""

import argparse
import sys
from typing import Optional

from .backend import BACKENDS, get_backend
from .config import GeneratorConfig
from .errors import GenerationError
from .generator import Generator, write_files
from .ir import TypeGraph
from .log import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='ffibind', description='Generate FFI bindings from an IR document')
    parser.add_argument('ir', help='IR JSON document describing the native library')
    parser.add_argument('-t', '--target', action='append', dest='targets', default=None,
                        help='Target to generate (repeatable; default: targets from the config, or c)')
    parser.add_argument('-o', '--output', default='.',
                        help='Output directory (default: current directory)')
    parser.add_argument('--config', default=None,
                        help='Generator configuration JSON file')
    parser.add_argument('--library', default=None,
                        help='Library name used for output file names')
    parser.add_argument('--ignore', nargs='+', default=[], metavar='SYMBOL',
                        help='Functions to leave out of every target')
    parser.add_argument('--log-level', default=None,
                        help='Logging level (default: $FFIBIND_LOG_LEVEL or WARNING)')
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    # Unknown targets are usage errors, not generation errors.
    get_backend('c')
    for target in args.targets or []:
        if target not in BACKENDS:
            parser.error(f'unknown target {target!r} (choose from {", ".join(sorted(BACKENDS))})')

    try:
        config = GeneratorConfig.load(args.config) if args.config else GeneratorConfig()
        if args.library:
            config.library = args.library
        try:
            graph = TypeGraph.load(args.ir)
        except (OSError, ValueError, KeyError) as e:
            logger.error('cannot read %s: %s', args.ir, e)
            return 1
        generator = Generator(graph, config)
        generator.ignore(*args.ignore)
        results = generator.run(args.targets)

        for target, files in results.items():
            for path in write_files(files, args.output):
                logger.info('%s: wrote %s', target, path)
    except GenerationError as e:
        logger.error('%s', e)
        return 1
    except OSError as e:
        logger.error('cannot write output: %s', e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
