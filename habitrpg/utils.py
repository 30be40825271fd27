"""Administrative CLI helpers for profile data management."""

from __future__ import annotations

import argparse
import asyncio
import sys
import tarfile
from pathlib import Path
from typing import Iterator, Sequence

from .models import CURRENT_VERSION, GameState, ModelValidationError
from .storage import (
    PROFILES,
    DataStore,
    MissingMigrationError,
    UnsupportedVersionError,
    document_version,
)


def _open_store(args: argparse.Namespace) -> DataStore:
    root = Path(args.data_root).expanduser() if args.data_root else None
    return DataStore(root)


def _profiles_directory(store: DataStore) -> Path:
    return store.collection(PROFILES).record_directory(store.root)


def _command_list(args: argparse.Namespace) -> int:
    store = _open_store(args)
    keys = store.list_keys(PROFILES)
    if not keys:
        print("No profiles found.")
        return 0
    print(f"Data root: {store.root}\n")
    for key in keys:
        document = store.read(PROFILES, key, upgrade=False)
        version = document_version(document) if document else "?"
        print(f"- {key} (version {version})")
    return 0


def _command_show(args: argparse.Namespace) -> int:
    store = _open_store(args)
    try:
        state = asyncio.run(store.load_profile(args.user))
    except (MissingMigrationError, UnsupportedVersionError, ModelValidationError) as exc:
        print(f"Profile {args.user} cannot be loaded: {exc}", file=sys.stderr)
        return 1
    if state is None:
        print(f"No profile found for user {args.user}.", file=sys.stderr)
        return 1
    _print_state(state)
    return 0


def _print_state(state: GameState) -> None:
    character = state.character
    print(f"{character.name} ({character.id})")
    print(f"  level {character.level}, xp {character.xp}/{character.xp_to_next_level}")
    print(f"  energy {character.energy}/{character.max_energy}, morale {character.morale}")
    print(f"  archetype: {character.archetype_id or 'none'}")
    print(f"  gold {state.inventory.gold}, essence {state.inventory.essence_shards}")
    print(
        f"  streak {state.streak.current_streak} (best {state.streak.longest_streak}), "
        f"grace tokens {state.streak.grace_tokens}, shields {state.streak.streak_shields}"
    )
    print(f"  week {state.season.current_week}, last processed {state.season.last_processed_date or 'never'}")
    print(f"  habits: {len(state.habits)}, quests: {len(state.quests)}")
    boss = state.boss.current_boss
    if boss is not None:
        print(f"  boss: {boss.name} {boss.current_health}/{boss.max_health}")


def _command_migrate(args: argparse.Namespace) -> int:
    store = _open_store(args)
    keys = [str(args.user)] if args.user else store.list_keys(PROFILES)
    if not keys:
        print("No profiles found.")
        return 0
    failures = 0
    for key in keys:
        raw = store.read(PROFILES, key, upgrade=False)
        if raw is None:
            print(f"- {key}: missing or unreadable", file=sys.stderr)
            failures += 1
            continue
        before = document_version(raw)
        if before == CURRENT_VERSION:
            print(f"- {key}: already at version {CURRENT_VERSION}")
            continue
        if args.dry_run:
            print(f"- {key}: would migrate {before} -> {CURRENT_VERSION}")
            continue
        try:
            document = store.read(PROFILES, key) or {}
            GameState.from_document(document)
        except (MissingMigrationError, UnsupportedVersionError, ModelValidationError) as exc:
            print(f"- {key}: {exc}", file=sys.stderr)
            failures += 1
            continue
        print(f"- {key}: migrated {before} -> {document_version(document)}")
    return 1 if failures else 0


def _command_export(args: argparse.Namespace) -> int:
    store = _open_store(args)
    directory = _profiles_directory(store)
    files = sorted(directory.glob("*.toml")) if directory.exists() else []
    if not files:
        print("No profiles found to export.")
        return 1

    output = Path(args.output).resolve()
    if output.exists() and not args.force:
        print(f"Refusing to overwrite existing archive: {output}", file=sys.stderr)
        return 2

    output.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(output, "w:gz") as archive:
        for path in files:
            archive.add(path, arcname=str(Path(PROFILES) / path.name))

    print(f"Exported {len(files)} profile(s) to {output}")
    return 0


def _safe_tar_members(tar: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
    for member in tar.getmembers():
        path = Path(member.name)
        if path.is_absolute() or ".." in path.parts:
            continue
        if not member.isfile() or path.suffix != ".toml":
            continue
        if len(path.parts) != 2 or path.parts[0] != PROFILES:
            continue
        yield member


def _command_import(args: argparse.Namespace) -> int:
    store = _open_store(args)
    source = Path(args.input).resolve()
    if not source.exists():
        print(f"Archive not found: {source}", file=sys.stderr)
        return 1

    directory = _profiles_directory(store)
    directory.mkdir(parents=True, exist_ok=True)
    imported = 0
    skipped = 0
    with tarfile.open(source, "r:gz") as archive:
        for member in _safe_tar_members(archive):
            target = directory / Path(member.name).name
            if target.exists() and not args.force:
                print(f"Skipping existing profile {target.name} (use --force to overwrite)")
                skipped += 1
                continue
            handle = archive.extractfile(member)
            if handle is None:
                continue
            with handle:
                target.write_bytes(handle.read())
            imported += 1

    print(f"Imported {imported} profile(s); skipped {skipped}.")
    return 0


def _command_delete_profile(args: argparse.Namespace) -> int:
    store = _open_store(args)
    user_id = str(args.user)
    path = store.collection(PROFILES).resolve_path(store.root, user_id)
    if not path.exists():
        print(f"No profile found for user {user_id}.", file=sys.stderr)
        return 1

    if not args.force:
        response = input(
            f"Delete {path}? This cannot be undone. Type 'yes' to confirm: "
        ).strip()
        if response.lower() != "yes":
            print("Aborted.")
            return 3

    store.remove(PROFILES, user_id)
    print(f"Deleted profile: {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Administrative utilities for profile data.")
    parser.add_argument(
        "--data-root",
        help="Directory holding the data/ tree (default: HABITRPG_DATA_ROOT or the checkout)",
    )

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="Show stored profiles and their versions")
    list_parser.set_defaults(func=_command_list)

    show_parser = subparsers.add_parser("show", help="Print a profile summary")
    show_parser.add_argument("user", help="Discord user ID of the profile")
    show_parser.set_defaults(func=_command_show)

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Upgrade stored profiles to the current document version",
    )
    migrate_parser.add_argument("--user", help="Only migrate this user's profile")
    migrate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )
    migrate_parser.set_defaults(func=_command_migrate)

    export_parser = subparsers.add_parser(
        "export",
        help="Create a tar.gz archive containing every profile",
    )
    export_parser.add_argument("--output", required=True, help="Destination archive path")
    export_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the destination archive if it already exists",
    )
    export_parser.set_defaults(func=_command_export)

    import_parser = subparsers.add_parser(
        "import",
        help="Extract a profile archive into the data directory",
    )
    import_parser.add_argument("--input", required=True, help="Path to the archive to import")
    import_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing profiles",
    )
    import_parser.set_defaults(func=_command_import)

    delete_parser = subparsers.add_parser(
        "delete-profile",
        help="Remove a user's profile so they start over",
    )
    delete_parser.add_argument("--user", required=True, help="Discord user ID whose profile should be deleted")
    delete_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    delete_parser.set_defaults(func=_command_delete_profile)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 0
    return args.func(args)


__all__ = ["build_parser", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
