"""Group-to-container association discovery.

There is no "containers of a group" query on the administrative CLI, so
discovery walks every (group, container) pair and inspects the permission
entries of each container. Cost therefore grows with the total number of
containers in the vault, not with the size of the selected groups.

Container details are fetched at most once per resolver instance. A
container whose detail cannot be fetched or parsed is excluded and counted
once in `RunContext.counters.detail_failures`.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from vaultops.core.entities import ContainerDetail, NamedEntity
from vaultops.core.run_context import RunContext

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class DetailAdapter(Protocol):
    """Interface for fetching container details used by the resolver."""

    def get_container_detail(self, uid: str) -> ContainerDetail | None:
        """Return the container detail, or None if it cannot be obtained."""
        ...


class AssociationResolver:
    """Resolves which containers are shared with a set of groups."""

    def __init__(self, adapter: DetailAdapter, ctx: RunContext) -> None:
        self.adapter = adapter
        self.ctx = ctx
        self._details: dict[str, ContainerDetail | None] = {}
        self.associations: dict[str, list[str]] = {}

    def detail(self, uid: str) -> ContainerDetail | None:
        """Return the memoized detail for a container, fetching it once."""
        if uid in self._details:
            return self._details[uid]
        detail = self.adapter.get_container_detail(uid)
        if detail is None:
            self.ctx.counters.detail_failures += 1
            log.warning("Skipping container %s: detail unavailable", uid)
        self._details[uid] = detail
        return detail

    @property
    def fetched(self) -> int:
        """Number of distinct containers fetched so far."""
        return len(self._details)

    def resolve(
        self,
        groups: list[NamedEntity],
        containers: list[NamedEntity],
        *,
        on_progress: ProgressCallback | None = None,
    ) -> list[NamedEntity]:
        """
        Return containers associated with any of the groups.

        A container is associated with a group when one of its permission
        entries names that group (uid, or name case-insensitively). The first
        matching entry is enough; membership is boolean.

        Args:
            groups: Selected groups.
            containers: Every container in the vault.
            on_progress: Called with (pairs_done, pairs_total) after each pair.

        Returns:
            Matching containers, deduplicated by uid, in order of first match.
        """
        total = len(groups) * len(containers)
        done = 0
        matched: dict[str, NamedEntity] = {}

        for group in groups:
            self.associations.setdefault(group.uid, [])
            for container in containers:
                self.ctx.check_cancelled()
                detail = self.detail(container.uid)
                if detail is not None and any(
                    entry.matches(group) for entry in detail.permissions
                ):
                    self.associations[group.uid].append(container.uid)
                    matched.setdefault(container.uid, container)
                done += 1
                if on_progress is not None:
                    on_progress(done, total)

        log.info(
            "Resolved %d container(s) for %d group(s) (%d detail failure(s))",
            len(matched),
            len(groups),
            self.ctx.counters.detail_failures,
        )
        return list(matched.values())
