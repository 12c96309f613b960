"""Topology snapshots built from cluster REST node records."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

# Node attribute names reported by the REST topology command
ATTR_CLUSTER_NAME = "IGNITE_CLUSTER_NAME"
ATTR_CLIENT_MODE = "org.apache.ignite.cache.client"
ATTR_IPS = "org.apache.ignite.ips"
ATTR_BUILD_VER = "org.apache.ignite.build.ver"

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<maintenance>\d+)"
    r"(?:-(?P<stage>[A-Za-z][\w.]*?))?"
    r"(?:-SNAPSHOT)?"
    r"(?:[#-](?P<rev_ts>\d+))?"
    r"(?:-(?:sha1:)?(?P<rev_hash>[0-9a-fA-F]+))?$"
)


class VersionParseError(ValueError):
    """Raised when a node reports a build version that cannot be parsed."""


@dataclass(frozen=True)
class ProductVersion:
    major: int
    minor: int
    maintenance: int
    stage: str = field(default="", compare=False)
    revision_ts: int = 0
    revision_hash: str = field(default="", compare=False)

    @classmethod
    def from_string(cls, value: Optional[str]) -> "ProductVersion":
        """
        Parse a build version string.

        Accepts forms like ``2.7.0``, ``2.8.0-SNAPSHOT``,
        ``2.7.0#20181130-sha1:8d9a1b2c`` and ``2.5.0-rc1-1526401122-abcdef``.

        Raises:
            VersionParseError: if the string is empty or malformed
        """
        if not value:
            raise VersionParseError(f"Empty product version: {value!r}")

        match = _VERSION_RE.match(value.strip())
        if not match:
            raise VersionParseError(f"Failed to parse product version: {value!r}")

        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor")),
            maintenance=int(match.group("maintenance")),
            stage=match.group("stage") or "",
            revision_ts=int(match.group("rev_ts") or 0),
            revision_hash=match.group("rev_hash") or "",
        )

    def _key(self) -> tuple:
        return (self.major, self.minor, self.maintenance, self.revision_ts)

    def __lt__(self, other: "ProductVersion") -> bool:
        return self._key() < other._key()

    def __le__(self, other: "ProductVersion") -> bool:
        return self._key() <= other._key()

    def __gt__(self, other: "ProductVersion") -> bool:
        return self._key() > other._key()

    def __ge__(self, other: "ProductVersion") -> bool:
        return self._key() >= other._key()

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.maintenance}"


@dataclass
class NodeRecord:
    """A single node as reported by the topology command."""
    node_id: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    tcp_addresses: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, bean: Dict[str, Any]) -> "NodeRecord":
        node_id = bean.get("nodeId")
        if not node_id:
            raise ValueError(f"Node record without nodeId: {bean!r}")
        return cls(
            node_id=str(node_id),
            attributes=dict(bean.get("attributes") or {}),
            tcp_addresses=list(bean.get("tcpAddresses") or []),
        )

    @property
    def cluster_name(self) -> Optional[str]:
        return self.attributes.get(ATTR_CLUSTER_NAME)

    @property
    def is_client(self) -> bool:
        flag = self.attributes.get(ATTR_CLIENT_MODE)
        if isinstance(flag, str):
            return flag.strip().lower() == "true"
        return bool(flag)

    @property
    def build_version(self) -> Optional[str]:
        return self.attributes.get(ATTR_BUILD_VER)

    def addresses(self) -> List[str]:
        """Client nodes publish a comma-joined address attribute, servers a TCP list."""
        if self.is_client:
            return split_addresses(self.attributes.get(ATTR_IPS))
        return list(self.tcp_addresses)


def split_addresses(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [addr.strip() for addr in raw.split(",") if addr.strip()]


def decode_nodes(data: Optional[str]) -> List[NodeRecord]:
    """Decode the JSON text of a topology response into node records."""
    beans = json.loads(data) if data else []
    if beans is None:
        return []
    if not isinstance(beans, list):
        raise ValueError(f"Expected a list of nodes, got {type(beans).__name__}")
    return [NodeRecord.from_json(bean) for bean in beans]


class TopologySnapshot:
    """
    Normalized view of a cluster topology.

    Built once per successful poll and not modified afterwards, apart from
    the ``active`` flag which is filled in by a separate state query.
    """

    def __init__(self) -> None:
        self.cluster_name: Optional[str] = None
        self.node_ids: List[str] = []
        self.addresses: Dict[str, Optional[str]] = {}
        self.clients: Dict[str, bool] = {}
        self.version: Optional[ProductVersion] = None
        self.version_string: Optional[str] = None
        self.active: bool = False

    @classmethod
    def from_nodes(cls, nodes: Sequence[NodeRecord]) -> "TopologySnapshot":
        top = cls()

        for node in nodes:
            nid = node.node_id

            if nid not in top.clients:
                top.node_ids.append(nid)

            if not top.cluster_name:
                top.cluster_name = node.cluster_name or None

            top.clients[nid] = node.is_client

            addrs = sorted(node.addresses())
            top.addresses[nid] = addrs[0] if addrs else None

            ver_str = node.build_version
            ver = ProductVersion.from_string(ver_str)

            if top.version is None or ver < top.version:
                top.version = ver
                top.version_string = ver_str

        return top

    @property
    def empty(self) -> bool:
        return not self.node_ids

    def first_node_id(self) -> Optional[str]:
        return self.node_ids[0] if self.node_ids else None

    def node_ids8(self) -> List[str]:
        """Short node ids for log output."""
        return [nid[:8].upper() for nid in self.node_ids]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusterName": self.cluster_name,
            "clusterVersion": self.version_string,
            "active": self.active,
            "nids": list(self.node_ids),
            "addresses": dict(self.addresses),
            "clients": dict(self.clients),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return (
            f"TopologySnapshot(cluster={self.cluster_name!r}, nodes={len(self.node_ids)}, "
            f"version={self.version_string!r}, active={self.active})"
        )


def build_snapshot(nodes: Sequence[NodeRecord]) -> TopologySnapshot:
    return TopologySnapshot.from_nodes(nodes)


def is_different_cluster(a: Optional[TopologySnapshot], b: TopologySnapshot) -> bool:
    """
    Check whether ``b`` belongs to a different cluster than ``a``.

    Any overlap in node membership means the same cluster. A missing or empty
    ``a`` is always different.
    """
    if a is None or a.empty:
        return True
    return set(a.node_ids).isdisjoint(b.node_ids)
