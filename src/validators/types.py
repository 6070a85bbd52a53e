"""
Domain types for validator set configuration

Keys, validators, the cluster configuration aggregate, and the five state
transitions a test may request of the cluster. All types are immutable; every
operation on a Config produces a new Config.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from fractions import Fraction
from typing import Any, Dict, FrozenSet, Mapping, Union

# Jepsen nodes are plain strings
Node = str

# In some places the cluster represents keys only by their raw data
ShortKey = str

DEFAULT_MAX_BYZANTINE_VOTE_FRACTION = Fraction(1, 3)


def _conform_string(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"Expected string for {name}, got {value!r}")
    return value


@dataclass(frozen=True)
class Key:
    """A typed public or private key. Equality is structural."""
    type: str
    data: ShortKey

    def to_dict(self) -> Dict[str, str]:
        return {'type': self.type, 'data': self.data}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Key':
        """Conform a wire dict into a Key, raising ValueError if malformed"""
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected key map, got {data!r}")
        return cls(
            type=_conform_string(data.get('type'), 'type'),
            data=_conform_string(data.get('data'), 'data')
        )


@dataclass(frozen=True)
class GeneratedValidator:
    """
    A validator as minted by the validator binary and stored in
    priv_validator.json. Carries no votes.
    """
    address: str
    pub_key: Key
    priv_key: Key

    def with_votes(self, votes: int) -> 'Validator':
        return Validator(
            address=self.address,
            pub_key=self.pub_key,
            priv_key=self.priv_key,
            votes=votes
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'GeneratedValidator':
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected validator map, got {data!r}")
        return cls(
            address=_conform_string(data.get('address'), 'address'),
            pub_key=Key.from_dict(data.get('pub_key')),
            priv_key=Key.from_dict(data.get('priv_key'))
        )


@dataclass(frozen=True)
class Validator:
    """A complete validator, including its votes. Identified by pub_key."""
    address: str
    pub_key: Key
    priv_key: Key
    votes: int

    def with_votes(self, votes: int) -> 'Validator':
        return replace(self, votes=votes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'pub_key': self.pub_key.to_dict(),
            'priv_key': self.priv_key.to_dict(),
            'votes': self.votes
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Validator':
        votes = data.get('votes') if isinstance(data, Mapping) else None
        if not isinstance(votes, int) or isinstance(votes, bool):
            raise ValueError(f"Expected integer votes, got {votes!r}")
        return GeneratedValidator.from_dict(data).with_votes(votes)


def augment_gen_validator(validator: GeneratedValidator) -> Validator:
    """Give a freshly minted validator its default of 2 votes"""
    return validator.with_votes(2)


@dataclass(frozen=True)
class Config:
    """
    A definite state of the cluster: the validators which are part of the
    cluster, which nodes run which validators, the cluster's version of the
    validator set, and the nodes that exist in the test.

    prospective_validators tracks validators we have *asked* the cluster to
    add, but which haven't actually been added yet.
    """
    version: int = -1
    node_set: FrozenSet[Node] = frozenset()
    nodes: Mapping[Node, Key] = field(default_factory=dict)
    validators: Mapping[Key, Validator] = field(default_factory=dict)
    prospective_validators: Mapping[Key, Validator] = field(default_factory=dict)
    max_byzantine_vote_fraction: Fraction = DEFAULT_MAX_BYZANTINE_VOTE_FRACTION
    super_byzantine_validators: bool = False

    def evolve(self, **changes: Any) -> 'Config':
        """Return a copy of this config with the given fields replaced"""
        return replace(self, **changes)


def make_config(**opts: Any) -> Config:
    """
    Build a config from partial options, filling in defaults. A fresh config
    never carries prospective validators.
    """
    opts.pop('prospective_validators', None)
    if 'node_set' in opts:
        opts['node_set'] = frozenset(opts['node_set'])
    for name in ('nodes', 'validators'):
        if name in opts:
            opts[name] = dict(opts[name])
    if 'max_byzantine_vote_fraction' in opts:
        opts['max_byzantine_vote_fraction'] = Fraction(opts['max_byzantine_vote_fraction'])
    return Config(**opts)


class TransitionKind(Enum):
    """Kinds of state transitions the test can request"""
    CREATE = "create"
    DESTROY = "destroy"
    ADD = "add"
    REMOVE = "remove"
    ALTER_VOTES = "alter-votes"


@dataclass(frozen=True)
class Create:
    """Create an instance of a validator on a node"""
    node: Node
    validator: Validator
    kind = TransitionKind.CREATE

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'node': self.node,
                'validator': self.validator.to_dict()}


@dataclass(frozen=True)
class Destroy:
    """Destroy whatever validator instance runs on a node"""
    node: Node
    kind = TransitionKind.DESTROY

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'node': self.node}


@dataclass(frozen=True)
class Add:
    """Add a new validator to the validator set"""
    version: int
    validator: Validator
    kind = TransitionKind.ADD

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'version': self.version,
                'validator': self.validator.to_dict()}


@dataclass(frozen=True)
class Remove:
    """Remove a validator from the validator set"""
    version: int
    pub_key: Key
    kind = TransitionKind.REMOVE

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'version': self.version,
                'pub_key': self.pub_key.to_dict()}


@dataclass(frozen=True)
class AlterVotes:
    """Change the votes allocated to a validator"""
    version: int
    pub_key: Key
    votes: int
    kind = TransitionKind.ALTER_VOTES

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.kind.value, 'version': self.version,
                'pub_key': self.pub_key.to_dict(), 'votes': self.votes}


Transition = Union[Create, Destroy, Add, Remove, AlterVotes]

TRANSITION_TYPES = (Create, Destroy, Add, Remove, AlterVotes)
