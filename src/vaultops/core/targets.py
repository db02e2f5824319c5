"""Target set construction for the three addressing modes."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Protocol

from vaultops.core.association import AssociationResolver, ProgressCallback
from vaultops.core.entities import ContainerDetail, NamedEntity, RunMode, TargetSet
from vaultops.core.run_context import RunContext

log = logging.getLogger(__name__)


class TargetAdapter(Protocol):
    """Interface for the listings needed to build a target set."""

    def list_containers(self) -> list[NamedEntity]:
        """Return every container in the vault."""
        ...

    def get_container_detail(self, uid: str) -> ContainerDetail | None:
        """Return one container detail, or None."""
        ...


def dedupe(
    entities: Iterable[NamedEntity], ctx: RunContext | None = None
) -> list[NamedEntity]:
    """
    Deduplicate by uid, keeping the first-seen name and order.

    Entities with an unusable uid are dropped (and counted on ctx).
    """
    seen: dict[str, NamedEntity] = {}
    for entity in entities:
        if not entity.usable:
            log.warning(
                "Dropping target '%s' with unusable uid %r", entity.name, entity.uid
            )
            if ctx is not None:
                ctx.counters.skipped_entities += 1
            continue
        seen.setdefault(entity.uid, entity)
    return list(seen.values())


def build_target_set(
    mode: RunMode,
    adapter: TargetAdapter,
    ctx: RunContext,
    *,
    groups: Iterable[NamedEntity] = (),
    containers: Iterable[NamedEntity] = (),
    captured_at: datetime | None = None,
    on_progress: ProgressCallback | None = None,
) -> TargetSet:
    """
    Build the deduplicated target set for a run.

    Args:
        mode: GROUPS resolves containers from `groups` against a fresh full
              listing; CONTAINERS and SAVED use `containers` as given.
        adapter: Vault adapter used for listings and details (GROUPS only).
        ctx: Run context.
        groups: Selected groups (GROUPS mode).
        containers: Explicit or previously saved containers.
        captured_at: Capture time of a saved list (SAVED mode).
        on_progress: Resolution progress callback (GROUPS mode).

    Returns:
        A TargetSet. An empty set is a valid "nothing to do" outcome.
    """
    if mode is RunMode.GROUPS:
        selected = dedupe(groups, ctx)
        if not selected:
            return TargetSet(items=(), mode=mode)
        all_containers = dedupe(adapter.list_containers(), ctx)
        resolver = AssociationResolver(adapter, ctx)
        found = resolver.resolve(selected, all_containers, on_progress=on_progress)
        return TargetSet(items=tuple(found), mode=mode)

    items = tuple(dedupe(containers, ctx))
    if mode is RunMode.SAVED:
        return TargetSet(items=items, mode=mode, captured_at=captured_at)
    return TargetSet(items=items, mode=mode)
