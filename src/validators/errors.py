"""
Error taxonomy for validator set configuration

InvalidConfig and StructuralError abort a single attempted transition and are
safe to retry. RetryExhausted and UnknownClusterValidator are fatal for a test
run and carry the offending config for diagnosis.
"""

from enum import Enum
from typing import Any, Optional


class Invariant(Enum):
    """Configuration invariants, in the order they are checked"""
    RUNNING_VALIDATOR = "at least one validator runs on some node"
    BOUNDED_BYZANTINE = "no byzantine validator reaches the max byzantine vote fraction"
    GHOST_LIMIT = "at most 2 ghost validators"
    ZOMBIE_LIMIT = "at most 2 zombie nodes"
    QUORUM = "running votes exceed 2/3 of total"
    FAULT_BOUND = "byzantine and ghost votes stay under 1/3 of total"
    KNOWN_NODES = "every node running a validator belongs to the node set"
    POSITIVE_VOTES = "every validator has positive votes"


def _describe(config: Any) -> str:
    if config is None:
        return "<no config>"
    from .genesis import compact_config
    try:
        return repr(compact_config(config))
    except (AttributeError, TypeError, ValueError):
        return repr(config)


class ValidatorConfigError(Exception):
    """Base class for all validator configuration errors"""


class InvalidConfig(ValidatorConfigError):
    """A config violates one of the configuration invariants"""

    def __init__(self, invariant: Invariant, config: Any = None):
        self.invariant = invariant
        self.config = config
        super().__init__(f"Invalid config ({invariant.value}): {_describe(config)}")


class StructuralError(ValidatorConfigError):
    """A transition's preconditions are violated by construction"""


class AlreadyExists(StructuralError):
    """A validator key is already part of the validator set"""


class NodeOccupied(StructuralError):
    """A node is already running a validator"""


class UnknownValidator(StructuralError):
    """A validator key is not known to the config"""


class UnsupportedTopology(StructuralError):
    """Vote allocation only supports zero or one byzantine validator"""


class GenesisError(ValidatorConfigError):
    """A genesis validator cannot be traced to a node"""


class RetryExhausted(ValidatorConfigError):
    """
    No legal transition could be found within the attempt budget. Terminal
    for a test run.
    """

    def __init__(
        self,
        config: Any,
        transition: Any,
        attempts: int,
        reason: Optional[ValidatorConfigError] = None
    ):
        self.config = config
        self.transition = transition
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Unable to generate state transition from {_describe(config)} "
            f"in less than {attempts} tries; aborting. Last failure was "
            f"{transition!r}: {reason}"
        )

    @property
    def invalid_config(self) -> Any:
        """The config the last rejected transition would have produced, if known"""
        return getattr(self.reason, 'config', None)


class UnknownClusterValidator(ValidatorConfigError):
    """The live cluster reports a validator the model has never heard of"""

    def __init__(self, cluster_validator: Any, config: Any = None):
        self.cluster_validator = cluster_validator
        self.config = config
        super().__init__(
            f"Don't recognize cluster validator {cluster_validator!r}; where did "
            f"it come from? Local config: {_describe(config)}"
        )
