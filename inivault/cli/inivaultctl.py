#!/usr/bin/env python3
"""
inivaultctl - inspect and edit inivault store files

Commands:
    sections            List sections
    keys                List keys of a section
    get                 Print a value
    set                 Store a value
    remove              Remove a key or a whole section
    search              Case-insensitive search over keys and values
    dump                Print the decoded store
    export-passphrase   Print the machine-bound passphrase of an encrypted store

Usage:
    inivaultctl settings.ini sections
    inivaultctl settings.ini get Window width --default 800
    inivaultctl settings.ini set Window width 1280
    inivaultctl --encrypted secrets.ini dump --format json
    inivaultctl --encrypted secrets.ini export-passphrase

Environment:
    INIVAULT_PASSPHRASE   Passphrase for encrypted stores (instead of --passphrase)
    INIVAULT_VERBOSE      Enable verbose logging
    INIVAULT_<OPTION>     Override any vault option (e.g. INIVAULT_USE_CHECKSUM=false)
"""

import argparse
import json
import os
import sys
from typing import List, Optional

from inivault.codec import text_codec
from inivault.config import VaultOptions, load_options
from inivault.exceptions import VaultError
from inivault.logging_config import configure_from_environment, setup_logging
from inivault.utils.error_handling import ErrorCategory, safe_execute
from inivault.vault import IniVault


def _load_base_options(path: str) -> Optional[VaultOptions]:
    """Read a YAML options file; None (already logged) if it is unusable."""
    with safe_execute("load options", ErrorCategory.CONFIG,
                      additional_context={'path': path}) as result:
        result.value = load_options(path)
    if not result.success:
        print(f"Error: could not load options from {path}: {result.error.error}", file=sys.stderr)
        return None
    return result.value


def _build_options(args) -> VaultOptions:
    options = VaultOptions.from_environment(getattr(args, 'base_options', None))
    if args.no_checksum:
        options.use_checksum = False
    if args.no_backup:
        options.auto_backup = False
    # commands save explicitly; reads never touch the file
    options.auto_save = False
    options.save_on_dispose = False
    options.auto_add = False
    return options


def _open_vault(args) -> IniVault:
    passphrase = args.passphrase or os.environ.get('INIVAULT_PASSPHRASE') or None
    return IniVault(
        args.path,
        encryption=args.encrypted,
        passphrase=passphrase,
        options=_build_options(args),
    )


def _save(vault: IniVault) -> int:
    if not vault.save():
        print(f"Failed to save {vault.path}", file=sys.stderr)
        return 1
    return 0


def cmd_sections(args):
    """List sections."""
    with _open_vault(args) as vault:
        for section in vault.get_sections():
            print(section)


def cmd_keys(args):
    """List keys of a section."""
    with _open_vault(args) as vault:
        if not vault.section_exists(args.section):
            print(f"No such section: {args.section}", file=sys.stderr)
            return 1
        for key in vault.get_keys(args.section):
            print(key)


def cmd_get(args):
    """Print a value."""
    with _open_vault(args) as vault:
        value = vault.get_value(args.section, args.key)
        if value is None:
            if args.default is None:
                print(f"No such key: [{args.section}] {args.key}", file=sys.stderr)
                return 1
            value = args.default
        print(value)


def cmd_set(args):
    """Store a value."""
    with _open_vault(args) as vault:
        vault.set_key(args.section, args.key, args.value)
        return _save(vault)


def cmd_remove(args):
    """Remove a key or a whole section."""
    with _open_vault(args) as vault:
        if args.key:
            removed = vault.remove_key(args.section, args.key)
            target = f"[{args.section}] {args.key}"
        else:
            removed = vault.remove_section(args.section)
            target = f"[{args.section}]"
        if not removed:
            print(f"Not found: {target}", file=sys.stderr)
            return 1
        return _save(vault)


def cmd_search(args):
    """Search keys and values."""
    with _open_vault(args) as vault:
        matches = vault.search(args.pattern)
        for section, key, value in matches:
            print(f"[{section}] {key} = {value}")
        if not matches:
            return 1


def cmd_dump(args):
    """Print the decoded store."""
    with _open_vault(args) as vault:
        data = vault.to_dict()
    if args.format == 'json':
        print(json.dumps(data, indent=2))
    else:
        sys.stdout.write(text_codec.serialize(data).decode('utf-8'))


def cmd_export_passphrase(args):
    """Print the machine-bound passphrase."""
    if not args.encrypted:
        print("export-passphrase requires --encrypted", file=sys.stderr)
        return 2
    with _open_vault(args) as vault:
        passphrase = vault.get_encryption_password()
    if passphrase is None:
        print("Store uses a caller passphrase; nothing to export", file=sys.stderr)
        return 1
    print(passphrase)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='inivaultctl',
        description='Inspect and edit inivault store files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('path', help='Store file path')
    parser.add_argument('--encrypted', '-e', action='store_true',
                        help='Store is encrypted with the machine-bound key')
    parser.add_argument('--passphrase', '-p', help='Store is encrypted with this passphrase')
    parser.add_argument('--no-checksum', action='store_true', help='Store has no checksum trailer')
    parser.add_argument('--no-backup', action='store_true', help='Do not rotate the .backup file')
    parser.add_argument('--options', '-o', help='YAML options file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # sections
    sections_parser = subparsers.add_parser('sections', help='List sections')
    sections_parser.set_defaults(func=cmd_sections)

    # keys
    keys_parser = subparsers.add_parser('keys', help='List keys of a section')
    keys_parser.add_argument('section', help='Section name')
    keys_parser.set_defaults(func=cmd_keys)

    # get
    get_parser = subparsers.add_parser('get', help='Print a value')
    get_parser.add_argument('section', help='Section name')
    get_parser.add_argument('key', help='Key name')
    get_parser.add_argument('--default', '-d', help='Printed when the key is missing')
    get_parser.set_defaults(func=cmd_get)

    # set
    set_parser = subparsers.add_parser('set', help='Store a value')
    set_parser.add_argument('section', help='Section name')
    set_parser.add_argument('key', help='Key name')
    set_parser.add_argument('value', help='Value')
    set_parser.set_defaults(func=cmd_set)

    # remove
    remove_parser = subparsers.add_parser('remove', help='Remove a key or section')
    remove_parser.add_argument('section', help='Section name')
    remove_parser.add_argument('key', nargs='?', help='Key name (omit to remove the section)')
    remove_parser.set_defaults(func=cmd_remove)

    # search
    search_parser = subparsers.add_parser('search', help='Search keys and values')
    search_parser.add_argument('pattern', help='Case-insensitive substring')
    search_parser.set_defaults(func=cmd_search)

    # dump
    dump_parser = subparsers.add_parser('dump', help='Print the decoded store')
    dump_parser.add_argument('--format', '-f', choices=['ini', 'json'], default='ini')
    dump_parser.set_defaults(func=cmd_dump)

    # export-passphrase
    export_parser = subparsers.add_parser('export-passphrase',
                                          help='Print the machine-bound passphrase')
    export_parser.set_defaults(func=cmd_export_passphrase)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    if args.verbose:
        setup_logging(verbose=True)
    else:
        configure_from_environment()

    if args.options:
        args.base_options = _load_base_options(args.options)
        if args.base_options is None:
            return 2

    try:
        result = args.func(args)
    except VaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    return result if result else 0


if __name__ == "__main__":
    sys.exit(main())
