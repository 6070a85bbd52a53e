"""
Cluster client boundary

The validator model consumes exactly two calls from the cluster: minting a
fresh validator identity, and reading the live validator set from a node.
Implementations may talk to a real cluster over SSH and RPC, or simulate one
in memory.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol

from ..validators.types import GeneratedValidator, Node, ShortKey


class ClusterIOError(OSError):
    """A cluster node could not be reached or returned garbage"""


@dataclass(frozen=True)
class ClusterValidator:
    """The cluster's representation of a validator: short key and power"""
    pub_key: ShortKey
    power: int

    def to_dict(self) -> Dict[str, Any]:
        return {'pub_key': self.pub_key, 'power': self.power}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ClusterValidator':
        pub_key = data.get('pub_key')
        power = data.get('power')
        if not isinstance(pub_key, str):
            raise ClusterIOError(f"Malformed validator pub_key: {pub_key!r}")
        if not isinstance(power, int) or isinstance(power, bool):
            raise ClusterIOError(f"Malformed validator power: {power!r}")
        return cls(pub_key=pub_key, power=power)


@dataclass(frozen=True)
class ClusterValidatorSet:
    """The cluster's representation of a validator set at some version"""
    version: int
    validators: List[ClusterValidator] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'validators': [v.to_dict() for v in self.validators]
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ClusterValidatorSet':
        """Parse a validator set response, raising ClusterIOError if malformed"""
        version = data.get('version')
        if not isinstance(version, int) or isinstance(version, bool):
            raise ClusterIOError(f"Malformed validator set version: {version!r}")
        return cls(
            version=version,
            validators=[ClusterValidator.from_dict(v) for v in data.get('validators', [])]
        )


class ClusterClient(Protocol):
    """What the validator model needs from a cluster"""

    def gen_validator(self) -> GeneratedValidator:
        """Mint a fresh validator keypair. Blocking; I/O failures propagate."""

    def validator_set(self, node: Node) -> ClusterValidatorSet:
        """Read the live validator set from a node. Raises ClusterIOError."""
