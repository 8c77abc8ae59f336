#!/usr/bin/env python3
"""
LS-Dyna Keyfile to Raw Mesh Export Utility

Reads one or more LS-Dyna keyfiles and writes every part as a pair of tab
separated text files with densely renumbered nodes and elements.

Usage:
    python3 keyfile_to_raw.py input.k [input2.k ...] output
    python3 keyfile_to_raw.py input.k output --part 3 --part 7
    python3 keyfile_to_raw.py input.k --list-parts

Options:
    --part PID     Only export the given part id (repeatable)
    --list-parts   Parse the inputs and list parts, write nothing
    -f, --force    Overwrite existing output files without asking
    -v, --verbose  Show debug progress
    -q, --quiet    Only show warnings and errors

Outputs (per part):
    <output>-<part name>-nodes.txt      id  x  y  z
    <output>-<part name>-elements.txt   id  n1 ... n8

Exit status:
    0 success, 1 nothing to export, 2 usage error, 3 invalid input path,
    4 unreadable file, 5 malformed card, 6 duplicate element id,
    7 inconsistent database, 8 output declined or not writable,
    130 interrupted
"""

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from keyfile_errors import (DuplicateElementIdError, InconsistentDatabaseError,
                            InvalidInputPathError, MalformedCardError,
                            UnreadableFileError)
from keyfile_parser import KeyfileParser
from mesh_database import MeshDatabase
from part_extractor import extract_all
from raw_writer import output_paths, write_part

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\s]+')


def part_file_stem(name: str, pid: int) -> str:
    """File-name safe form of a part name"""
    stem = _UNSAFE_FILENAME_CHARS.sub("_", name.strip()).strip("_")
    return stem or f"part{pid}"


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="keyfile2raw",
        description="Extract per-part node and element tables from LS-Dyna keyfiles")
    ap.add_argument('paths', nargs='+', metavar='PATH',
                    help='Input LS-Dyna keyfile(s), parsed in the given order, '
                         'followed by the base name of the output files')
    ap.add_argument('--part', dest='parts', type=int, action='append', metavar='PID',
                    help='Only export this part id (may be given more than once)')
    ap.add_argument('--list-parts', action='store_true',
                    help='List the parts found and exit without writing')
    ap.add_argument('-f', '--force', action='store_true',
                    help='Overwrite existing output files without asking')
    verbosity = ap.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='store_true', help='Show debug progress')
    verbosity.add_argument('-q', '--quiet', action='store_true', help='Only show warnings and errors')
    return ap


def confirm_overwrite(existing: List[Path]) -> bool:
    """Ask once whether the listed files may be overwritten"""
    print("The following output files already exist:")
    for path in existing:
        print(f"  {path}")
    try:
        answer = input("Overwrite them? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def print_parts(db: MeshDatabase) -> None:
    counts = {}
    for element in db.iter_elements():
        counts[element.part_id] = counts.get(element.part_id, 0) + 1
    pids = list(dict.fromkeys(list(db.part_names) + db.part_ids()))
    print(f"\n  Parts ({len(pids)}):")
    for pid in pids:
        print(f"    {pid:>8}  {counts.get(pid, 0):>10,} elements  {db.part_name(pid)}")


def main(argv: Optional[List[str]] = None) -> None:
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    inputs = list(args.paths)
    output = None
    if not args.list_parts:
        if len(inputs) < 2:
            ap.error("an output base name is required unless --list-parts is given")
        output = inputs.pop()

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    print(f"Keyfile to Raw Export")
    print(f"=" * 70)
    for path in inputs:
        print(f"Input:  {path}")
    if output:
        print(f"Output: {output}-<part>-nodes.txt / -elements.txt")
    print()

    try:
        parser = KeyfileParser()
        parser.parse_files(inputs)
        db = parser.database

        print(f"  Nodes:    {db.node_count:>10,}")
        print(f"  Elements: {db.element_count:>10,}")
        print_parts(db)
        print()

        if args.list_parts:
            sys.exit(0)

        part_ids = args.parts if args.parts else db.part_ids()
        known = set(db.part_ids())
        missing = [pid for pid in part_ids if pid not in known]
        if missing:
            print(f"Error: no elements found for part id(s): {', '.join(map(str, missing))}")
            sys.exit(1)
        if not part_ids:
            print("Nothing to export: no elements found")
            sys.exit(1)

        bases = {pid: f"{output}-{part_file_stem(db.part_name(pid), pid)}" for pid in part_ids}
        if len(set(bases.values())) < len(bases):
            # Two parts share a name; keep them apart by id
            bases = {pid: f"{base}-{pid}" for pid, base in bases.items()}

        existing = [p for base in bases.values() for p in output_paths(base) if p.exists()]
        if existing and not args.force and not confirm_overwrite(existing):
            print("Export cancelled, nothing written.")
            sys.exit(8)

        for pid, name, part in extract_all(db, part_ids):
            nodes_path, elements_path = write_part(bases[pid], part)
            print(f"  Part {pid} ({name.strip()}): "
                  f"{part.node_count:,} nodes, {part.element_count:,} elements")
            print(f"    {nodes_path}")
            print(f"    {elements_path}")

        print("\nExport complete!")
        sys.exit(0)

    except InvalidInputPathError as e:
        print(f"\n❌ Invalid input path: {e}")
        sys.exit(3)

    except UnreadableFileError as e:
        print(f"\n❌ Unreadable file: {e}")
        sys.exit(4)

    except MalformedCardError as e:
        print(f"\n❌ Malformed card: {e}")
        sys.exit(5)

    except DuplicateElementIdError as e:
        print(f"\n❌ Duplicate element id: {e}")
        sys.exit(6)

    except InconsistentDatabaseError as e:
        print(f"\n💥 Internal error, inconsistent mesh database: {e}")
        sys.exit(7)

    except OSError as e:
        print(f"\n❌ Could not write output: {e}")
        sys.exit(8)

    except KeyboardInterrupt:
        print(f"\n⏹️  Export interrupted by user")
        sys.exit(130)


if __name__ == '__main__':
    main()
