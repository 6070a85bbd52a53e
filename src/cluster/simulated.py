"""
In-memory simulated validator cluster

A stand-in for a real cluster which mints real Ed25519 validator keys, tracks
which validator processes run on which nodes, and applies version-checked
membership requests. Requests can be lost or their acknowledgements dropped,
and nodes can become unreachable, so the model's reconciliation path gets
exercised the same way a flaky real cluster would exercise it.
"""

import hashlib
import logging
import random
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from ..validators.genesis import genesis
from ..validators.types import (
    Add,
    AlterVotes,
    Config,
    Create,
    Destroy,
    GeneratedValidator,
    Key,
    Node,
    Remove,
    ShortKey,
    Transition,
)
from .client import ClusterIOError, ClusterValidator, ClusterValidatorSet

logger = logging.getLogger(__name__)

KEY_TYPE = "ed25519"


class ApplyOutcome(Enum):
    """What the harness learns after asking the cluster to do something"""
    OK = "ok"            # Definitely happened
    FAILED = "failed"    # Definitely did not happen
    UNKNOWN = "unknown"  # May or may not have happened


class SimulatedCluster:
    """
    Simulated cluster implementing the ClusterClient interface

    Features:
    - Ed25519 validator minting
    - Version-checked validator set changes
    - Lost requests and dropped acknowledgements
    - Unreachable nodes, both scheduled (partition) and random
    """

    def __init__(
        self,
        node_set: Iterable[Node],
        rng: Optional[random.Random] = None,
        drop_probability: float = 0.0,
        unreachable_probability: float = 0.0
    ):
        self.node_set = frozenset(node_set)
        self.rng = rng or random.Random()
        self.drop_probability = drop_probability
        self.unreachable_probability = unreachable_probability

        # Live cluster state
        self.version = 0
        self.validators: Dict[ShortKey, int] = {}
        self.running: Dict[Node, ShortKey] = {}
        self.unreachable: Set[Node] = set()

        self.metrics = {
            'validators_minted': 0,
            'requests_applied': 0,
            'requests_rejected': 0,
            'requests_dropped': 0,
            'acks_dropped': 0,
            'reads_failed': 0
        }

    def gen_validator(self) -> GeneratedValidator:
        """Mint a fresh Ed25519 validator identity"""
        private_key = ed25519.Ed25519PrivateKey.generate()
        priv_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption()
        )
        pub_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )
        self.metrics['validators_minted'] += 1
        return GeneratedValidator(
            address=hashlib.sha256(pub_bytes).digest()[:20].hex().upper(),
            pub_key=Key(type=KEY_TYPE, data=pub_bytes.hex().upper()),
            priv_key=Key(type=KEY_TYPE, data=(priv_bytes + pub_bytes).hex().upper())
        )

    def bootstrap(self, config: Config) -> None:
        """Boot the cluster from a config's genesis document"""
        doc = genesis(config)
        self.version = 0
        self.validators = {v['pub_key']['data']: v['amount'] for v in doc['validators']}
        self.running = {node: key.data for node, key in config.nodes.items()}
        logger.info(f"Cluster bootstrapped with {len(self.validators)} validators "
                    f"on {len(self.running)} nodes")

    def partition(self, nodes: Iterable[Node]) -> None:
        """Make the given nodes unreachable"""
        self.unreachable.update(nodes)

    def heal(self) -> None:
        self.unreachable.clear()

    def validator_set(self, node: Node) -> ClusterValidatorSet:
        """Read the validator set from a node"""
        if (node in self.unreachable
                or node not in self.running
                or self.rng.random() < self.unreachable_probability):
            self.metrics['reads_failed'] += 1
            raise ClusterIOError(f"Unable to reach validator on {node}")
        return ClusterValidatorSet(
            version=self.version,
            validators=[ClusterValidator(pub_key=k, power=p)
                        for k, p in sorted(self.validators.items())]
        )

    def _membership_request(self, transition: Transition) -> bool:
        if transition.version != self.version:
            logger.debug(f"Rejecting {transition.kind.value} at stale version "
                         f"{transition.version} (cluster at {self.version})")
            return False

        if isinstance(transition, Add):
            key = transition.validator.pub_key.data
            if key in self.validators:
                return False
            self.validators[key] = transition.validator.votes
        elif isinstance(transition, Remove):
            if self.validators.pop(transition.pub_key.data, None) is None:
                return False
        elif isinstance(transition, AlterVotes):
            if transition.pub_key.data not in self.validators:
                return False
            self.validators[transition.pub_key.data] = transition.votes
        else:
            raise TypeError(f"Not a membership request: {type(transition).__name__}")

        self.version += 1
        return True

    def apply(self, transition: Transition) -> ApplyOutcome:
        """Perform the real-world side effect of a transition"""
        if isinstance(transition, Create):
            if transition.node in self.running or transition.node not in self.node_set:
                return ApplyOutcome.FAILED
            self.running[transition.node] = transition.validator.pub_key.data
            return ApplyOutcome.OK

        if isinstance(transition, Destroy):
            self.running.pop(transition.node, None)
            return ApplyOutcome.OK

        if self.rng.random() < self.drop_probability:
            if self.rng.random() < 0.5:
                self.metrics['requests_dropped'] += 1
                return ApplyOutcome.UNKNOWN
            applied = self._membership_request(transition)
            if applied:
                self.metrics['acks_dropped'] += 1
            return ApplyOutcome.UNKNOWN

        if self._membership_request(transition):
            self.metrics['requests_applied'] += 1
            return ApplyOutcome.OK
        self.metrics['requests_rejected'] += 1
        return ApplyOutcome.FAILED
