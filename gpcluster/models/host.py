"""Cluster host identity models."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gpcluster.models.cluster import SegConfig

COORDINATOR_CONTENT_ID = -1


class HostRole(str, Enum):
    """Role a host plays in the cluster."""

    COORDINATOR = "coordinator"
    PRIMARY = "primary"
    MIRROR = "mirror"

    @classmethod
    def from_segment(cls, content_id: int, role: str) -> "HostRole":
        """Map a catalog role letter and content id to a role.

        Args:
            content_id: Segment content id (-1 is the coordinator)
            role: Catalog role letter, "p" or "m"

        Raises:
            ValueError: If the role letter is unknown
        """
        letter = role.lower()
        if letter not in ("p", "m"):
            raise ValueError(f"Unknown segment role: {role!r}")
        if content_id == COORDINATOR_CONTENT_ID and letter == "p":
            return cls.COORDINATOR
        return cls.PRIMARY if letter == "p" else cls.MIRROR


@dataclass(frozen=True)
class Host:
    """An addressable cluster member.

    `ident` is the key the host's outcome is recorded under and must be
    unique within a dispatch.
    """

    ident: str
    hostname: str
    role: HostRole = HostRole.PRIMARY
    content_id: int | None = None
    port: int | None = None
    address: str | None = None
    data_dir: str | None = None
    reachable: bool = True

    @classmethod
    def for_segment(cls, seg: "SegConfig") -> "Host":
        """Build a host identified by the segment's content id."""
        role = HostRole.from_segment(seg.content_id, seg.role)
        if role is HostRole.COORDINATOR:
            ident = "coordinator"
        elif seg.content_id == COORDINATOR_CONTENT_ID:
            ident = "standby"
        else:
            ident = f"seg{seg.content_id}"
        if role is HostRole.MIRROR and seg.content_id != COORDINATOR_CONTENT_ID:
            ident = f"{ident}-mirror"
        return cls(
            ident=ident,
            hostname=seg.hostname,
            role=role,
            content_id=seg.content_id,
            port=seg.port,
            address=seg.address,
            data_dir=seg.data_dir,
            reachable=seg.is_up,
        )

    @classmethod
    def for_hostname(
        cls,
        hostname: str,
        port: int | None = None,
        role: HostRole = HostRole.PRIMARY,
    ) -> "Host":
        """Build a host identified by hostname, or hostname:port."""
        ident = hostname if port is None else f"{hostname}:{port}"
        return cls(ident=ident, hostname=hostname, role=role, port=port)

    @property
    def connect_name(self) -> str:
        """Name used to reach the host over the network."""
        return self.address or self.hostname

    def format_fields(self) -> dict[str, Any]:
        """Fields available to per-host command templates."""
        return {
            "ident": self.ident,
            "hostname": self.hostname,
            "address": self.connect_name,
            "content": "" if self.content_id is None else self.content_id,
            "port": "" if self.port is None else self.port,
            "datadir": self.data_dir or "",
            "role": self.role.value,
        }


_DIGITS = re.compile(r"(\d+)")


def host_sort_key(ident: str) -> tuple[Any, ...]:
    """Natural sort key for host identifiers, so seg2 sorts before seg10."""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in _DIGITS.split(ident)
        if part
    )
