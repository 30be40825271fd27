"""Persistence layer driven by ``config/storage.toml``.

All disk I/O goes through :class:`DataStore`.  Each collection in
``config/storage.toml`` names a path template (one TOML record per key) and a
schema version.  Versioned records carry a top-level ``version`` field; reading
a record written at an older version runs the ``migrations/<collection>/``
chain on it before it is handed back, and the upgraded record is written back
to disk.
"""

from __future__ import annotations

import asyncio
import importlib.util
import logging
import math
import os
import tempfile
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional
from urllib.parse import quote, unquote

import tomllib

from .models import CURRENT_VERSION, GameState

log = logging.getLogger(__name__)


def _is_site_packages(path: Path) -> bool:
    """Return ``True`` if ``path`` is inside a site/dist-packages directory."""

    normalized = {part.lower() for part in path.parts}
    return "site-packages" in normalized or "dist-packages" in normalized


def resolve_storage_root(package_root: Path) -> Path:
    """Determine where mutable data should be stored.

    Data lives alongside the source tree when running from a checkout.  An
    explicit ``HABITRPG_DATA_ROOT`` wins; an install inside site-packages (or
    any read-only location) falls back to the working directory.
    """

    override = os.getenv("HABITRPG_DATA_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    if _is_site_packages(package_root) or not os.access(package_root, os.W_OK):
        return Path.cwd().resolve()

    return package_root.resolve()


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def _plain(value: Any) -> Any:
    """Reduce ``value`` to types TOML can hold. ``None`` entries are dropped."""

    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items() if item is not None}
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(item) for item in value if item is not None), key=repr)
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value if item is not None]
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        return 0.0
    if isinstance(value, (str, int, float)):
        return value
    return str(value)


_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _quote_string(value: str) -> str:
    pieces: list[str] = []
    for char in value:
        code = ord(char)
        if char in _ESCAPES:
            pieces.append(_ESCAPES[char])
        elif 0x20 <= code <= 0x7E:
            pieces.append(char)
        elif code > 0xFFFF:
            pieces.append(f"\\U{code:08x}")
        else:
            pieces.append(f"\\u{code:04x}")
    return '"' + "".join(pieces) + '"'


def _bare_or_quoted(key: str) -> str:
    if key and key.isascii() and all(char.isalnum() or char in "-_" for char in key):
        return key
    return _quote_string(key)


def _inline(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        # repr keeps full precision; whole numbers need a ".0" to stay floats.
        text = repr(value)
        return text if any(mark in text for mark in ".en") else f"{text}.0"
    if isinstance(value, list):
        return "[" + ", ".join(_inline(item) for item in value) + "]"
    if isinstance(value, Mapping):
        pairs = (f"{_bare_or_quoted(key)} = {_inline(item)}" for key, item in value.items())
        return "{" + ", ".join(pairs) + "}"
    return _quote_string(str(value))


def _is_record_array(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(item, Mapping) for item in value)


def _table_lines(table: Mapping[str, Any], path: tuple[str, ...] = ()) -> list[str]:
    """Render ``table``: plain keys, then sub-tables, then ``[[record]]`` arrays.

    Values nested inside a record are written inline so each record stays a
    single block.
    """

    lines: list[str] = []
    subtables: list[str] = []
    records: list[str] = []
    for key in sorted(table):
        value = table[key]
        if isinstance(value, Mapping):
            subtables.append(key)
        elif _is_record_array(value):
            records.append(key)
        else:
            lines.append(f"{_bare_or_quoted(key)} = {_inline(value)}")

    for key in subtables:
        header = ".".join(_bare_or_quoted(part) for part in (*path, key))
        lines.extend(("", f"[{header}]"))
        lines.extend(_table_lines(table[key], (*path, key)))
    for key in records:
        header = ".".join(_bare_or_quoted(part) for part in (*path, key))
        for record in table[key]:
            lines.extend(("", f"[[{header}]]"))
            lines.extend(
                f"{_bare_or_quoted(name)} = {_inline(record[name])}" for name in sorted(record)
            )
    return lines


def _toml_dumps(data: Mapping[str, Any]) -> str:
    return "\n".join(_table_lines(_plain(data))).lstrip("\n") + "\n"


def _read_toml(path: Path) -> Any:
    """Parse ``path``; a missing or unparsable file reads as ``None``."""

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError):
        return None


def _write_toml(path: Path, payload: Mapping[str, Any]) -> None:
    """Replace ``path`` atomically; a failed write leaves the old file in place."""

    text = _toml_dumps(payload)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w", encoding="utf8", dir=path.parent, prefix=f".{path.stem}-", delete=False
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


# ---------------------------------------------------------------------------
# Configuration handling
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CollectionConfig:
    name: str
    path: str
    version: int = 0
    migration_key: str | None = None

    @property
    def versioned(self) -> bool:
        return self.version > 0

    def resolve_path(self, base: Path, key: str) -> Path:
        return base / self.path.format(key=_encode_collection_key(key))

    def record_directory(self, base: Path) -> Path:
        return self.resolve_path(base, "__dummy__").parent


def _load_storage_config(path: Path) -> dict[str, CollectionConfig]:
    try:
        with path.open("rb") as handle:
            payload = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise RuntimeError(f"Missing storage configuration at {path}") from exc

    collections: dict[str, CollectionConfig] = {}
    raw_collections = payload.get("collections") if isinstance(payload, Mapping) else None
    if not isinstance(raw_collections, Mapping):
        raise RuntimeError("storage configuration must define a [collections] table")

    for name, options in raw_collections.items():
        if not isinstance(options, Mapping):
            continue
        path_value = str(options.get("path", "")).strip()
        if not path_value:
            raise RuntimeError(f"Collection {name!r} is missing a path entry")
        if "{key}" not in path_value:
            raise RuntimeError(f"Collection {name!r} path must contain a {{key}} placeholder")
        migration_key = options.get("migration")
        collections[str(name)] = CollectionConfig(
            name=str(name),
            path=path_value,
            version=int(options.get("version", 0)),
            migration_key=str(migration_key) if migration_key else str(name),
        )
    return collections


# ---------------------------------------------------------------------------
# Migration runner
# ---------------------------------------------------------------------------


class MissingMigrationError(RuntimeError):
    pass


class UnsupportedVersionError(RuntimeError):
    pass


@dataclass(slots=True)
class MigrationModule:
    from_version: int
    to_version: int
    apply: Callable[["MigrationContext"], None]
    description: str


@dataclass(slots=True)
class MigrationContext:
    """Handed to each migration step; ``document`` is edited in place."""

    collection: CollectionConfig
    key: str
    document: MutableMapping[str, Any]
    applied: list[str] = field(default_factory=list)

    def log(self, message: str) -> None:
        log.info("[migration:%s:%s] %s", self.collection.name, self.key, message)


def document_version(document: Mapping[str, Any]) -> int:
    version = document.get("version", 0)
    if isinstance(version, bool):
        return 0
    try:
        return int(version)
    except (TypeError, ValueError):
        return 0


class DocumentMigrator:
    def __init__(self, migrations_base: Path) -> None:
        self._migrations_base = migrations_base
        self._modules: dict[str, list[MigrationModule]] = {}

    def plan(self, collection: CollectionConfig, current: int) -> list[MigrationModule]:
        target = collection.version
        if current > target:
            raise UnsupportedVersionError(
                f"{collection.name!r} record is at version {current}, newer than supported {target}"
            )
        migrations = self._load_migrations(collection.migration_key or collection.name)
        plan: list[MigrationModule] = []
        version = current
        while version < target:
            step = next((m for m in migrations if m.from_version == version), None)
            if step is None:
                raise MissingMigrationError(
                    f"Missing migration for {collection.name!r}: {version} -> {target}"
                )
            plan.append(step)
            version = step.to_version
        if version != target:
            raise MissingMigrationError(
                f"Incomplete migration chain for {collection.name!r}: {current} -> {target}"
            )
        return plan

    def upgrade(
        self, collection: CollectionConfig, key: str, document: Mapping[str, Any]
    ) -> tuple[dict[str, Any], bool]:
        """Return ``document`` brought up to the collection version.

        The boolean is ``True`` when at least one step ran.
        """

        working = deepcopy(dict(document))
        if not collection.versioned:
            return working, False
        current = document_version(working)
        plan = self.plan(collection, current)
        if not plan:
            return working, False
        context = MigrationContext(collection=collection, key=key, document=working)
        for step in plan:
            step.apply(context)
            working["version"] = step.to_version
            context.applied.append(step.description)
            context.log(f"applied {step.from_version} -> {step.to_version}: {step.description}")
        return working, True

    def _load_migrations(self, collection: str) -> list[MigrationModule]:
        cached = self._modules.get(collection)
        if cached is not None:
            return cached
        directory = self._migrations_base / collection
        modules: list[MigrationModule] = []
        if directory.is_dir():
            for path in sorted(directory.glob("*.py")):
                if path.name.startswith("__"):
                    continue
                spec = importlib.util.spec_from_file_location(
                    f"migrations.{collection}.{path.stem}", path
                )
                if spec is None or spec.loader is None:
                    continue
                module = importlib.util.module_from_spec(spec)
                try:
                    spec.loader.exec_module(module)  # type: ignore[assignment]
                except Exception:
                    log.exception("Could not load migration %s", path)
                    continue
                from_version = getattr(module, "FROM_VERSION", None)
                to_version = getattr(module, "TO_VERSION", None)
                apply = getattr(module, "apply", None)
                if not isinstance(from_version, int) or not isinstance(to_version, int):
                    continue
                if not callable(apply):
                    continue
                description = getattr(module, "DESCRIPTION", path.stem)
                modules.append(
                    MigrationModule(
                        from_version=from_version,
                        to_version=to_version,
                        apply=apply,
                        description=str(description),
                    )
                )
        modules.sort(key=lambda module: module.from_version)
        self._modules[collection] = modules
        return modules


# ---------------------------------------------------------------------------
# DataStore implementation
# ---------------------------------------------------------------------------


PROFILES = "profiles"


class DataStore:
    """Asynchronous keyed record store routed by collection configuration."""

    def __init__(
        self,
        root: Path | None = None,
        *,
        package_root: Path | None = None,
    ) -> None:
        self._package_root = package_root or Path(__file__).resolve().parent.parent
        self._storage_root = root.resolve() if root else resolve_storage_root(self._package_root)
        self._config_path = self._package_root / "config" / "storage.toml"
        self._collections = _load_storage_config(self._config_path)
        self._migrator = DocumentMigrator(self._package_root / "migrations")
        self._lock = asyncio.Lock()

    @property
    def root(self) -> Path:
        return self._storage_root

    def collection(self, name: str) -> CollectionConfig:
        try:
            return self._collections[name]
        except KeyError as exc:
            raise KeyError(f"Unknown collection: {name}") from exc

    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            return self.read(collection, key)

    async def set(self, collection: str, key: str, value: Mapping[str, Any]) -> None:
        async with self._lock:
            self.write(collection, key, deepcopy(dict(value)))

    async def delete(self, collection: str, key: str) -> bool:
        async with self._lock:
            return self.remove(collection, key)

    async def load_profile(self, user_id: int | str) -> Optional[GameState]:
        document = await self.get(PROFILES, str(user_id))
        if document is None:
            return None
        return GameState.from_document(document)

    async def save_profile(self, state: GameState) -> None:
        document = state.to_document()
        document["version"] = CURRENT_VERSION
        await self.set(PROFILES, state.character.id, document)

    # Synchronous primitives, used under the lock and by the admin CLI.

    def read(self, collection: str, key: str, *, upgrade: bool = True) -> Optional[Dict[str, Any]]:
        config = self.collection(collection)
        path = config.resolve_path(self._storage_root, key)
        payload = _read_toml(path)
        if not isinstance(payload, MutableMapping):
            return None
        if not upgrade:
            return dict(payload)
        document, migrated = self._migrator.upgrade(config, key, payload)
        if migrated:
            _write_toml(path, document)
        return document

    def write(self, collection: str, key: str, value: Mapping[str, Any]) -> Path:
        config = self.collection(collection)
        path = config.resolve_path(self._storage_root, key)
        _write_toml(path, value)
        return path

    def remove(self, collection: str, key: str) -> bool:
        path = self.collection(collection).resolve_path(self._storage_root, key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_keys(self, collection: str) -> list[str]:
        directory = self.collection(collection).record_directory(self._storage_root)
        if not directory.exists():
            return []
        return [_decode_collection_key(path.stem) for path in sorted(directory.glob("*.toml"))]


def _encode_collection_key(key: str) -> str:
    return quote(str(key), safe="")


def _decode_collection_key(filename: str) -> str:
    return unquote(filename)


__all__ = [
    "CollectionConfig",
    "DataStore",
    "DocumentMigrator",
    "MigrationContext",
    "MissingMigrationError",
    "PROFILES",
    "UnsupportedVersionError",
    "document_version",
    "resolve_storage_root",
]
