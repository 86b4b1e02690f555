#!/usr/bin/env python3
# ============================================================================
# EXTERNAL CHECK MANIFEST TOOL
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tool - Manage external check definitions
# PURPOSE: Apply, delete and list external checks in cluster state
# CREATED: 19 OCT 2026
# ============================================================================
"""
Manage external check definitions in cluster state.

The master picks up changes on its next re-scan: new enabled checks are
activated, removed or disabled ones are deactivated, and changed ones are
restarted.

Manifest (YAML, one or more documents):

    checks:
      - name: ssl-expiry
        category: external
        mandatory: false
        run_interval_seconds: 300
        timeout_seconds: 60
        parameters:
          command: /usr/local/bin/ssl-check --days 14
          env.TARGET_HOST: example.com

Usage:
    python tools/apply_check.py apply checks.yaml
    python tools/apply_check.py apply checks.yaml --dry-run
    python tools/apply_check.py delete ssl-expiry
    python tools/apply_check.py list

Requires:
    DATABASE_URL (or POSTGRES_HOST/POSTGRES_DB/POSTGRES_USER/POSTGRES_PASSWORD)
"""

import argparse
import asyncio
import os
import sys
from typing import Any, List

import yaml
from pydantic import ValidationError

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.contracts import CheckCategory
from core.errors import ClusterStateError
from core.models import CheckDefinition
from repositories import ClusterStateRepository, create_pool


class ManifestError(Exception):
    """The manifest cannot be turned into check definitions."""


def load_manifest(text: str) -> List[CheckDefinition]:
    """
    Parse a YAML manifest into external check definitions.

    Raises:
        ManifestError: invalid YAML, unknown shape, invalid or non-external check
    """
    try:
        documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except yaml.YAMLError as e:
        raise ManifestError(f"invalid YAML: {e}") from e

    entries: List[Any] = []
    for doc in documents:
        if isinstance(doc, dict) and "checks" in doc:
            entries.extend(doc["checks"] or [])
        elif isinstance(doc, list):
            entries.extend(doc)
        elif isinstance(doc, dict):
            entries.append(doc)
        else:
            raise ManifestError(f"unexpected document: {doc!r}")

    definitions = []
    names = set()
    for entry in entries:
        if not isinstance(entry, dict):
            raise ManifestError(f"check entry must be a mapping: {entry!r}")
        entry = dict(entry)
        entry.setdefault("category", CheckCategory.EXTERNAL.value)
        entry["parameters"] = {
            str(k): str(v) for k, v in (entry.get("parameters") or {}).items()
        }
        try:
            definition = CheckDefinition.model_validate(entry)
        except ValidationError as e:
            raise ManifestError(f"invalid check {entry.get('name')!r}: {e}") from e

        if not definition.is_external:
            raise ManifestError(
                f"check {definition.name!r} has category {definition.category.value}; "
                f"built-in checks are configured with environment flags"
            )
        if definition.name in names:
            raise ManifestError(f"duplicate check name {definition.name!r}")
        names.add(definition.name)
        definitions.append(definition)

    return definitions


async def apply_definitions(definitions: List[CheckDefinition]) -> None:
    pool = await create_pool(min_size=1, max_size=2)
    try:
        store = ClusterStateRepository(pool)
        await store.ensure_schema()
        for definition in definitions:
            await store.put_check_definition(definition)
            state = "enabled" if definition.enabled else "disabled"
            print(f"  applied  {definition.name} ({state})")
    finally:
        await pool.close()


async def delete_definitions(names: List[str]) -> int:
    missing = 0
    pool = await create_pool(min_size=1, max_size=2)
    try:
        store = ClusterStateRepository(pool)
        for name in names:
            if await store.delete_check_definition(name):
                print(f"  deleted  {name}")
            else:
                print(f"  missing  {name}")
                missing += 1
    finally:
        await pool.close()
    return missing


async def list_definitions() -> None:
    pool = await create_pool(min_size=1, max_size=2)
    try:
        store = ClusterStateRepository(pool)
        definitions = await store.list_external_check_definitions()
    finally:
        await pool.close()

    if not definitions:
        print("No external checks defined")
        return
    for d in sorted(definitions, key=lambda d: d.name):
        flags = ("enabled" if d.enabled else "disabled") + (", mandatory" if d.mandatory else "")
        print(f"  {d.name:<40} every {d.run_interval_seconds:g}s  [{flags}]")


def main():
    parser = argparse.ArgumentParser(
        description="Manage external check definitions in cluster state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s apply checks.yaml
  %(prog)s apply checks.yaml --dry-run
  %(prog)s delete ssl-expiry
  %(prog)s list
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    apply_parser = sub.add_parser("apply", help="Create or replace checks from a manifest")
    apply_parser.add_argument("manifest", help="YAML manifest path ('-' for stdin)")
    apply_parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Validate the manifest without writing",
    )

    delete_parser = sub.add_parser("delete", help="Delete checks by name")
    delete_parser.add_argument("names", nargs="+", help="Check names")

    sub.add_parser("list", help="List external checks")

    args = parser.parse_args()

    try:
        if args.command == "apply":
            if args.manifest == "-":
                text = sys.stdin.read()
            else:
                with open(args.manifest) as f:
                    text = f.read()
            definitions = load_manifest(text)
            print(f"Manifest contains {len(definitions)} check(s)")
            if args.dry_run:
                for d in definitions:
                    print(f"  valid    {d.name}")
                return
            asyncio.run(apply_definitions(definitions))

        elif args.command == "delete":
            if asyncio.run(delete_definitions(args.names)):
                sys.exit(1)

        elif args.command == "list":
            asyncio.run(list_definitions())

    except (ManifestError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    except ClusterStateError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
