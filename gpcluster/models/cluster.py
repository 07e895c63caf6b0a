"""Cluster topology built from segment configuration rows.

Rows are expected in the shape returned by the segment configuration
catalog (``dbid, content, role, preferred_role, mode, status, port,
hostname, address, datadir``). Fetching them is the caller's business.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Flag
from typing import Any

from gpcluster.models.host import COORDINATOR_CONTENT_ID, Host, HostRole

logger = logging.getLogger(__name__)


class Scope(Flag):
    """Which cluster members an operation targets.

    The zero value means one execution per primary segment, coordinator
    included, mirrors excluded.
    """

    ON_SEGMENTS = 0
    ON_HOSTS = 1
    EXCLUDE_COORDINATOR = 2
    INCLUDE_MIRRORS = 4


@dataclass(frozen=True)
class SegConfig:
    """One row of the segment configuration catalog."""

    dbid: int
    content_id: int
    role: str
    preferred_role: str
    port: int
    hostname: str
    data_dir: str
    address: str | None = None
    mode: str = "s"
    status: str = "u"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SegConfig":
        """Create from a catalog row.

        Raises:
            KeyError: If a required column is missing
            ValueError: If a numeric column cannot be parsed
        """
        return cls(
            dbid=int(row["dbid"]),
            content_id=int(row["content"]),
            role=str(row["role"]),
            preferred_role=str(row.get("preferred_role", row["role"])),
            port=int(row["port"]),
            hostname=str(row["hostname"]),
            data_dir=str(row["datadir"]),
            address=row.get("address") or None,
            mode=str(row.get("mode", "s")),
            status=str(row.get("status", "u")),
        )

    @property
    def is_primary(self) -> bool:
        return self.role == "p"

    @property
    def is_coordinator(self) -> bool:
        return self.content_id == COORDINATOR_CONTENT_ID and self.is_primary

    @property
    def is_up(self) -> bool:
        return self.status == "u"


class Cluster:
    """Segments of one cluster, indexed by content id and role."""

    def __init__(self, segments: Iterable[SegConfig]) -> None:
        self.segments: tuple[SegConfig, ...] = tuple(segments)
        self._by_content: dict[tuple[int, str], SegConfig] = {}
        for seg in self.segments:
            key = (seg.content_id, seg.role)
            if key in self._by_content:
                raise ValueError(
                    f"Duplicate segment for content {seg.content_id} role {seg.role}"
                )
            self._by_content[key] = seg
        logger.debug(
            "Cluster loaded: %d segment(s) on %d host(s)",
            len(self.segments),
            len(self.hostnames),
        )

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "Cluster":
        return cls(SegConfig.from_row(row) for row in rows)

    @property
    def content_ids(self) -> list[int]:
        """Content ids of all primaries, coordinator (-1) first."""
        return sorted(seg.content_id for seg in self.segments if seg.is_primary)

    @property
    def hostnames(self) -> list[str]:
        return sorted({seg.hostname for seg in self.segments})

    def _segment(self, content_id: int, role: str) -> SegConfig:
        try:
            return self._by_content[(content_id, role)]
        except KeyError:
            raise KeyError(
                f"No segment with content {content_id} and role {role!r}"
            ) from None

    def get_host_for_content(self, content_id: int, role: str = "p") -> str:
        return self._segment(content_id, role).hostname

    def get_port_for_content(self, content_id: int, role: str = "p") -> int:
        return self._segment(content_id, role).port

    def get_dir_for_content(self, content_id: int, role: str = "p") -> str:
        return self._segment(content_id, role).data_dir

    def get_dbid_for_content(self, content_id: int, role: str = "p") -> int:
        return self._segment(content_id, role).dbid

    def select(self, scope: Scope = Scope.ON_SEGMENTS) -> tuple[Host, ...]:
        """Hosts an operation with the given scope should run against.

        Args:
            scope: Combination of Scope flags

        Returns:
            Hosts ordered by content id (per-segment scope) or hostname
            (per-host scope)
        """
        segments = [
            seg
            for seg in sorted(self.segments, key=lambda s: (s.content_id, s.role != "p"))
            if (seg.is_primary or Scope.INCLUDE_MIRRORS in scope)
            and not (
                seg.content_id == COORDINATOR_CONTENT_ID
                and Scope.EXCLUDE_COORDINATOR in scope
            )
        ]

        if Scope.ON_HOSTS not in scope:
            return tuple(Host.for_segment(seg) for seg in segments)

        by_host: dict[str, list[SegConfig]] = {}
        for seg in segments:
            by_host.setdefault(seg.hostname, []).append(seg)

        hosts = []
        for hostname in sorted(by_host):
            segs = by_host[hostname]
            if any(seg.is_coordinator for seg in segs):
                role = HostRole.COORDINATOR
            elif any(seg.is_primary for seg in segs):
                role = HostRole.PRIMARY
            else:
                role = HostRole.MIRROR
            hosts.append(
                Host(
                    ident=hostname,
                    hostname=hostname,
                    role=role,
                    address=segs[0].address,
                    reachable=any(seg.is_up for seg in segs),
                )
            )
        return tuple(hosts)
