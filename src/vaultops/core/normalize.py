"""Normalization of administrative CLI output into NamedEntity records.

The tool has shipped several output schemas over time: JSON with varying
field names and an older fixed-width text table. This module turns all of
them into `NamedEntity(name, uid)` and reports what it had to skip.

The text path is a degraded fallback. Prefer structured output whenever the
tool supports it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from vaultops.core.entities import (
    ContainerDetail,
    NamedEntity,
    PermissionEntry,
    is_usable_uid,
)
from vaultops.core.payloads import Payload, StructuredList, StructuredSingle, TextLines
from vaultops.core.run_context import RunContext

log = logging.getLogger(__name__)

_COLUMN_SPLIT = re.compile(r"\s{2,}|\t")
_SEPARATOR_LINE = re.compile(r"^[\s\-=+|]+$")
_PERMISSION_TOKEN = re.compile(r"^[RWS\-]{1,4}$")
_NUMERIC_TOKEN = re.compile(r"^\d+(\.\d+)?$")


@dataclass(frozen=True)
class EntitySchema:
    """
    Known field aliases and text layout for one kind of listing.

    Attributes:
        kind: Label used in log messages ("group", "container").
        uid_aliases: Identifier field names, most specific first.
        name_aliases: Display-name field names, most specific first.
        collection_aliases: Keys under which a wrapping object may hold the list.
        header_lines: Number of leading header lines in text output.
    """

    kind: str
    uid_aliases: tuple[str, ...]
    name_aliases: tuple[str, ...]
    collection_aliases: tuple[str, ...] = ()
    header_lines: int = 1


GROUP_SCHEMA = EntitySchema(
    kind="group",
    uid_aliases=("team_uid", "uid"),
    name_aliases=("name", "team_name"),
    collection_aliases=("teams", "items"),
)

CONTAINER_SCHEMA = EntitySchema(
    kind="container",
    uid_aliases=("shared_folder_uid", "folder_uid", "uid"),
    name_aliases=("name", "folder_name", "shared_folder_name"),
    collection_aliases=("shared_folders", "folders", "items"),
)

# permission entries inside a container detail
_PERMISSION_COLLECTIONS = ("teams", "team_permissions", "permissions")
_GROUP_UID_ALIASES = ("team_uid", "group_uid", "uid")
_GROUP_NAME_ALIASES = ("team_name", "group_name", "name")


@dataclass(frozen=True)
class Decoded:
    """Outcome of looking up one logical field through its aliases."""

    value: str | None
    alias: str | None = None

    @property
    def missing(self) -> bool:
        return self.value is None


MISSING = Decoded(value=None)


def decode_field(obj: Mapping[str, Any], aliases: Iterable[str]) -> Decoded:
    """Return the first non-empty alias value, or MISSING."""
    for alias in aliases:
        raw = obj.get(alias)
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            return Decoded(value=value, alias=alias)
    return MISSING


def _decode_flag(obj: Mapping[str, Any], *aliases: str) -> bool | None:
    for alias in aliases:
        raw = obj.get(alias)
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip():
            return raw.strip().lower() in {"true", "yes", "on", "1"}
    return None


def _skip(ctx: RunContext | None, msg: str, *args: Any) -> None:
    log.warning(msg, *args)
    if ctx is not None:
        ctx.counters.skipped_entities += 1


def entity_from_mapping(
    obj: Mapping[str, Any], schema: EntitySchema, ctx: RunContext | None = None
) -> NamedEntity | None:
    """Decode one structured entry; None (with a warning) if it is unusable."""
    uid = decode_field(obj, schema.uid_aliases)
    name = decode_field(obj, schema.name_aliases)
    if uid.missing or name.missing:
        field = "uid" if uid.missing else "name"
        _skip(ctx, "Skipping %s entry without %s: %r", schema.kind, field, dict(obj))
        return None
    if not is_usable_uid(uid.value):
        _skip(
            ctx,
            "Skipping %s '%s' with unusable uid %r",
            schema.kind,
            name.value,
            uid.value,
        )
        return None
    return NamedEntity(name=name.value, uid=uid.value)


def _unwrap_single(item: Mapping[str, Any], schema: EntitySchema) -> list[Any] | None:
    """Return the wrapped list when a single object is only a container for items."""
    if not decode_field(item, schema.uid_aliases).missing:
        return None
    for key in schema.collection_aliases:
        inner = item.get(key)
        if isinstance(inner, list):
            return inner
    return None


def _split_columns(line: str) -> list[str]:
    return [c for c in _COLUMN_SPLIT.split(line.strip()) if c]


def _is_tail_token(token: str) -> bool:
    return bool(_PERMISSION_TOKEN.match(token) or _NUMERIC_TOKEN.match(token))


def entity_from_text_line(
    line: str,
    schema: EntitySchema,
    ctx: RunContext | None = None,
    *,
    numbered: bool = False,
) -> NamedEntity | None:
    """
    Parse one row of the legacy text table.

    Rows look like `[#]  <uid>  <name>  [flags...]  [size]`. The leading row
    number is only dropped when `numbered` is set (the header has a `#`
    column), so an all-digit uid is kept. Trailing permission flags and
    numeric columns are stripped from the end; at least one name column is
    always kept.
    """
    columns = _split_columns(line)
    if numbered and len(columns) >= 3 and columns[0].isdigit():
        columns = columns[1:]
    if len(columns) < 2:
        _skip(ctx, "Skipping unparseable %s line: %r", schema.kind, line)
        return None

    uid, rest = columns[0], columns[1:]
    while len(rest) > 1 and _is_tail_token(rest[-1]):
        rest.pop()
    name = "  ".join(rest).strip()

    if not is_usable_uid(uid):
        _skip(ctx, "Skipping %s '%s' with unusable uid %r", schema.kind, name, uid)
        return None
    return NamedEntity(name=name, uid=uid)


def _text_rows(lines: Iterable[str], header_lines: int) -> list[str]:
    rows = list(lines)[header_lines:]
    return [r for r in rows if r.strip() and not _SEPARATOR_LINE.match(r)]


def _has_row_numbers(lines: Iterable[str], header_lines: int) -> bool:
    """Return True if a header line starts with a `#` column."""
    return any(h.strip().startswith("#") for h in list(lines)[:header_lines])


def normalize(
    payload: Payload, schema: EntitySchema, ctx: RunContext | None = None
) -> list[NamedEntity]:
    """
    Convert any output shape into NamedEntity records.

    Unusable entries are skipped with a warning each (and counted on ctx).

    Args:
        payload: Decoded command output.
        schema: Field aliases and text layout for the listing.
        ctx: Optional run context whose counters record skipped entries.

    Returns:
        Entities in output order. Duplicates are kept; dedup is the caller's.
    """
    match payload:
        case StructuredList(items=items):
            raw_items: list[Any] = list(items)
        case StructuredSingle(item=item):
            wrapped = _unwrap_single(item, schema)
            raw_items = wrapped if wrapped is not None else [item]
        case TextLines(lines=lines):
            entities = []
            numbered = _has_row_numbers(lines, schema.header_lines)
            for row in _text_rows(lines, schema.header_lines):
                entity = entity_from_text_line(row, schema, ctx, numbered=numbered)
                if entity is not None:
                    entities.append(entity)
            return entities
        case _:
            raise TypeError(f"Unsupported payload: {type(payload).__name__}")

    entities = []
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            _skip(ctx, "Skipping non-object %s entry: %r", schema.kind, raw)
            continue
        entity = entity_from_mapping(raw, schema, ctx)
        if entity is not None:
            entities.append(entity)
    return entities


def _permission_entries(item: Mapping[str, Any]) -> tuple[PermissionEntry, ...]:
    for key in _PERMISSION_COLLECTIONS:
        raw = item.get(key)
        if isinstance(raw, list):
            break
    else:
        return ()

    entries: list[PermissionEntry] = []
    for perm in raw:
        if not isinstance(perm, Mapping):
            continue
        uid = decode_field(perm, _GROUP_UID_ALIASES)
        name = decode_field(perm, _GROUP_NAME_ALIASES)
        if uid.missing and name.missing:
            log.debug("Ignoring permission entry without group: %r", dict(perm))
            continue
        entries.append(
            PermissionEntry(
                group_uid=uid.value,
                group_name=name.value,
                manage_users=_decode_flag(perm, "manage_users"),
                manage_records=_decode_flag(perm, "manage_records"),
            )
        )
    return tuple(entries)


def container_detail(payload: Payload, uid: str) -> ContainerDetail | None:
    """
    Decode the detail view of one container.

    Returns None when the payload is not a recognizable container object
    (text output, or JSON without container fields).
    """
    match payload:
        case StructuredSingle(item=item):
            obj: Mapping[str, Any] = item
        case StructuredList(items=items) if len(items) == 1:
            obj = items[0]
        case _:
            return None

    found_uid = decode_field(obj, CONTAINER_SCHEMA.uid_aliases)
    if found_uid.missing and not any(k in obj for k in _PERMISSION_COLLECTIONS):
        return None
    name = decode_field(obj, CONTAINER_SCHEMA.name_aliases)
    entity = NamedEntity(name=name.value or "", uid=found_uid.value or uid)
    return ContainerDetail(entity=entity, permissions=_permission_entries(obj))
