"""
Two-phase transition engine

The cluster does not apply membership changes atomically: we *request* that a
validator be added or removed, but we only learn whether it happened later.
Each transition is therefore split into a requested half (pre_step) and a
confirmed half (post_step), and both intermediate results must be valid
configs.
"""

import logging
from dataclasses import dataclass
from typing import Union

from .errors import (
    AlreadyExists,
    InvalidConfig,
    NodeOccupied,
    StructuralError,
    UnknownValidator,
)
from .invariants import assert_valid
from .types import Add, AlterVotes, Config, Create, Destroy, Remove, Transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Valid:
    """A transition applied cleanly, yielding config"""
    config: Config


@dataclass(frozen=True)
class Invalid:
    """A transition was rejected"""
    reason: Union[InvalidConfig, StructuralError]


StepResult = Union[Valid, Invalid]


def _unknown_transition(transition: object) -> TypeError:
    return TypeError(f"Unknown transition type: {type(transition).__name__}")


def pre_step(config: Config, transition: Transition) -> Config:
    """
    Move a config into the in-between state after a transition has been
    requested but before we know it took effect. Only Add has a requested
    half; every other kind is observed only once confirmed.
    """
    if isinstance(transition, Add):
        key = transition.validator.pub_key
        if key in config.validators:
            raise AlreadyExists(f"Validator {key.data[:5]} is already in the validator set")
        prospective = dict(config.prospective_validators)
        prospective[key] = transition.validator
        return config.evolve(prospective_validators=prospective)
    if isinstance(transition, (Create, Destroy, Remove, AlterVotes)):
        return config
    raise _unknown_transition(transition)


def post_step(config: Config, transition: Transition) -> Config:
    """Complete a transition once we know it has been executed"""
    if isinstance(transition, Create):
        if transition.node in config.nodes:
            raise NodeOccupied(f"Node {transition.node} is already running a validator")
        nodes = dict(config.nodes)
        nodes[transition.node] = transition.validator.pub_key
        return config.evolve(nodes=nodes)

    if isinstance(transition, Destroy):
        nodes = dict(config.nodes)
        nodes.pop(transition.node, None)
        return config.evolve(nodes=nodes)

    if isinstance(transition, Add):
        validator = transition.validator
        if validator.pub_key in config.validators:
            raise AlreadyExists(f"Validator {validator.pub_key.data[:5]} is already in the validator set")
        prospective = dict(config.prospective_validators)
        prospective.pop(validator.pub_key, None)
        validators = dict(config.validators)
        validators[validator.pub_key] = validator
        return config.evolve(validators=validators, prospective_validators=prospective)

    if isinstance(transition, Remove):
        validators = dict(config.validators)
        validators.pop(transition.pub_key, None)
        return config.evolve(validators=validators)

    if isinstance(transition, AlterVotes):
        validator = config.validators.get(transition.pub_key)
        if validator is None:
            raise UnknownValidator(f"Can't alter votes of unknown validator {transition.pub_key.data[:5]}")
        validators = dict(config.validators)
        validators[transition.pub_key] = validator.with_votes(transition.votes)
        return config.evolve(validators=validators)

    raise _unknown_transition(transition)


def step(config: Config, transition: Transition) -> Config:
    """
    Apply a transition to a config, returning the new config. Both the
    requested and the confirmed state must be valid.

    Raises:
        InvalidConfig: if either phase yields an invalid config
        StructuralError: if the transition's preconditions do not hold
    """
    requested = assert_valid(pre_step(config, transition))
    return assert_valid(post_step(requested, transition))


def try_step(config: Config, transition: Transition) -> StepResult:
    """Apply a transition, reporting rejection as a value rather than raising"""
    try:
        return Valid(step(config, transition))
    except (InvalidConfig, StructuralError) as e:
        logger.debug(f"Rejected {transition.kind.value} transition: {e}")
        return Invalid(e)
