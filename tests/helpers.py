"""
Shared builders for validator configuration tests
"""

from typing import Dict, Iterable, Optional, Union

from src.cluster.client import ClusterIOError, ClusterValidator, ClusterValidatorSet
from src.validators.types import Config, GeneratedValidator, Key, Validator, make_config


def make_key(name: str) -> Key:
    """Keys whose data starts with the upper-cased name"""
    return Key(type="ed25519", data=f"{name.upper():0<5}KEYDATA")


def make_validator(name: str, votes: int = 2) -> Validator:
    return Validator(
        address=f"ADDR{name.upper()}",
        pub_key=make_key(name),
        priv_key=Key(type="ed25519", data=f"PRIV{name.upper()}"),
        votes=votes
    )


def build_config(
    running: Dict[str, str],
    votes: Dict[str, int],
    node_set: Optional[Iterable[str]] = None,
    **opts
) -> Config:
    """
    Build a config from node -> validator name and validator name -> votes.
    Nodes may run names that have no votes entry (zombies).
    """
    validators = {make_key(name): make_validator(name, v) for name, v in votes.items()}
    nodes = {node: make_key(name) for node, name in running.items()}
    if node_set is None:
        node_set = set(running)
    return make_config(validators=validators, nodes=nodes, node_set=node_set, **opts)


def four_validator_config(**opts) -> Config:
    """4 validators with 2 votes each on distinct nodes, one spare node"""
    return build_config(
        running={'n1': 'a', 'n2': 'b', 'n3': 'c', 'n4': 'd'},
        votes={'a': 2, 'b': 2, 'c': 2, 'd': 2},
        node_set=['n1', 'n2', 'n3', 'n4', 'n5'],
        **opts
    )


class FakeMinter:
    """Deterministic validator minter"""

    def __init__(self, prefix: str = "m"):
        self.prefix = prefix
        self.count = 0

    def gen_validator(self) -> GeneratedValidator:
        self.count += 1
        name = f"{self.prefix}{self.count}"
        return GeneratedValidator(
            address=f"ADDR{name.upper()}",
            pub_key=make_key(name),
            priv_key=Key(type="ed25519", data=f"PRIV{name.upper()}")
        )


class BrokenMinter:
    """Minter whose validator binary can't be reached"""

    def gen_validator(self) -> GeneratedValidator:
        raise ClusterIOError("ssh: connection refused")


class FakeCluster:
    """Serves canned validator sets per node; missing nodes are unreachable"""

    def __init__(self, responses: Dict[str, Union[ClusterValidatorSet, Exception]]):
        self.responses = responses
        self.calls = []

    def gen_validator(self) -> GeneratedValidator:
        raise NotImplementedError

    def validator_set(self, node: str) -> ClusterValidatorSet:
        self.calls.append(node)
        response = self.responses.get(node)
        if response is None:
            raise ClusterIOError(f"{node} unreachable")
        if isinstance(response, Exception):
            raise response
        return response


def cluster_set(version: int, powers: Dict[str, int]) -> ClusterValidatorSet:
    """Validator set keyed by validator name, as the cluster reports it"""
    return ClusterValidatorSet(
        version=version,
        validators=[ClusterValidator(pub_key=make_key(name).data, power=p)
                    for name, p in powers.items()]
    )
