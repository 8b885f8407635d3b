#!/usr/bin/env python3
"""
statetypegen command line

Introspects machine definitions (JSON configs or SCXML documents) and writes
the typegen module next to each source file.
"""

import argparse
import logging
import sys
import traceback
from pathlib import Path

from .config_loader import load_machines_from_file
from .introspect import introspect_machines
from .scxml_loader import load_scxml_file
from .typegen import TypegenGenerator, typegen_path_for, write_typegen_file


def load_machines(source_path: str):
    """Load every machine of a source file, choosing the loader by suffix"""
    suffix = Path(source_path).suffix.lower()
    if suffix == '.json':
        return load_machines_from_file(source_path)
    if suffix in ('.scxml', '.xml'):
        return [load_scxml_file(source_path)]
    raise ValueError(f"Unsupported machine source '{source_path}' (expected .json, .scxml or .xml)")


def process_file(source_path: str, generator: TypegenGenerator, args) -> bool:
    """
    Introspect one source file and emit its output

    Returns:
        True if processing succeeded, False otherwise
    """
    try:
        machines = load_machines(source_path)
        results = introspect_machines(machines)

        if args.json:
            for result in results:
                print(result.to_json())
            return True

        if args.stdout:
            print(generator.render(results, Path(source_path).name), end='')
            return True

        print(f"Generating typegen for: {source_path}")
        for result in results:
            print(f"  Machine: {result.machine_id} ({len(result.edges)} states, "
                  f"missing implementations: {'yes' if result.required else 'no'})")

        written = write_typegen_file(source_path, results, args.output_dir, generator)
        if written:
            print(f"  ✓ Generated: {written}")
        else:
            print(f"  - No typegen marker, skipped {typegen_path_for(source_path, args.output_dir)}")
        return True

    except Exception as e:
        print(f"Error processing {source_path}: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return False


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Generate typed extension-point declarations from state machine definitions'
    )
    parser.add_argument('sources', nargs='+', help='Machine definition files (.json, .scxml)')
    parser.add_argument('-o', '--output-dir', default=None,
                        help='Output directory for generated files (default: next to each source)')
    parser.add_argument('-t', '--template-dir', default=None,
                        help='Template directory (default: bundled templates)')
    parser.add_argument('--json', action='store_true',
                        help='Print the introspection result as JSON instead of generating code')
    parser.add_argument('--stdout', action='store_true',
                        help='Print the generated module instead of writing it')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    generator = TypegenGenerator(template_dir=args.template_dir)

    failures = 0
    for source_path in args.sources:
        # Check input file exists
        if not Path(source_path).exists():
            print(f"Error: machine file not found: {source_path}", file=sys.stderr)
            failures += 1
            continue
        if not process_file(source_path, generator, args):
            failures += 1

    return 0 if failures == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
