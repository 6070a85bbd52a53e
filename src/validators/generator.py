"""
Random legal transition generator

Proposes random state transitions on a config and keeps drawing until one
leads to a valid config, so a test can drive the cluster through a long
sequence of membership changes which are legal by construction.
"""

import logging
import random
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from .errors import RetryExhausted
from .genesis import compact_config
from .transitions import Invalid, try_step
from .types import (
    Add,
    AlterVotes,
    Config,
    Create,
    Destroy,
    Node,
    Remove,
    Transition,
    TransitionKind,
    Validator,
    augment_gen_validator,
)

logger = logging.getLogger(__name__)

# Every kind of transition is equally likely
TRANSITION_WEIGHTS: Tuple[Tuple[TransitionKind, int], ...] = (
    (TransitionKind.CREATE, 1),
    (TransitionKind.DESTROY, 1),
    (TransitionKind.ADD, 1),
    (TransitionKind.REMOVE, 1),
    (TransitionKind.ALTER_VOTES, 1),
)

MAX_ATTEMPTS = 100

# Range of the random adjustment applied by AlterVotes
VOTE_DELTA = 5


def rand_validator(config: Config, rng: random.Random) -> Optional[Validator]:
    """Select a random validator from the config, if there is one"""
    if not config.validators:
        return None
    return rng.choice(list(config.validators.values()))


def rand_free_node(config: Config, rng: random.Random) -> Optional[Node]:
    """Select a random node which isn't running anything"""
    candidates = sorted(config.node_set - set(config.nodes))
    return rng.choice(candidates) if candidates else None


def rand_taken_node(config: Config, rng: random.Random) -> Optional[Node]:
    """Select a random node that's running a validator"""
    candidates = sorted(config.nodes)
    return rng.choice(candidates) if candidates else None


def _instantiate(
    kind: TransitionKind,
    config: Config,
    minter: Any,
    rng: random.Random
) -> Optional[Transition]:
    if kind is TransitionKind.CREATE:
        validator = rand_validator(config, rng)
        node = rand_free_node(config, rng)
        if validator is None or node is None:
            return None
        return Create(node=node, validator=validator)

    if kind is TransitionKind.DESTROY:
        node = rand_taken_node(config, rng)
        return Destroy(node=node) if node is not None else None

    if kind is TransitionKind.ADD:
        validator = augment_gen_validator(minter.gen_validator())
        return Add(version=config.version, validator=validator)

    if kind is TransitionKind.REMOVE:
        validator = rand_validator(config, rng)
        if validator is None:
            return None
        return Remove(version=config.version, pub_key=validator.pub_key)

    if kind is TransitionKind.ALTER_VOTES:
        validator = rand_validator(config, rng)
        if validator is None:
            return None
        delta = rng.randint(-VOTE_DELTA, VOTE_DELTA)
        return AlterVotes(
            version=config.version,
            pub_key=validator.pub_key,
            votes=max(1, validator.votes + delta)
        )

    raise ValueError(f"Unknown transition kind: {kind}")


def rand_transition(
    config: Config,
    minter: Any,
    rng: Optional[random.Random] = None,
    weights: Sequence[Tuple[TransitionKind, int]] = TRANSITION_WEIGHTS,
    on_infeasible: Optional[Callable[[TransitionKind], None]] = None
) -> Transition:
    """
    Generate a random transition on the given config

    A kind is drawn from the weight table; if that kind is impossible in the
    current config, the whole draw starts over, so the weights hold
    regardless of feasibility.

    Args:
        config: Current config
        minter: Provides gen_validator() for Add transitions. Blocking; its
            I/O errors propagate.
        rng: Source of randomness
        weights: Table of (kind, weight) pairs
        on_infeasible: Called with each kind that could not be instantiated
    """
    rng = rng or random.Random()
    kinds = [kind for kind, _ in weights]
    kind_weights = [weight for _, weight in weights]
    while True:
        kind = rng.choices(kinds, weights=kind_weights)[0]
        transition = _instantiate(kind, config, minter, rng)
        if transition is not None:
            return transition
        if on_infeasible is not None:
            on_infeasible(kind)


def rand_legal_transition(
    config: Config,
    minter: Any,
    rng: Optional[random.Random] = None,
    max_attempts: int = MAX_ATTEMPTS,
    on_infeasible: Optional[Callable[[TransitionKind], None]] = None
) -> Transition:
    """
    Generate a random transition on the given config which results in a
    legal state. The resulting state is discarded: committing the transition
    is up to the caller.

    Raises:
        RetryExhausted: if max_attempts transitions in a row were illegal
    """
    rng = rng or random.Random()
    transition: Optional[Transition] = None
    reason = None
    for attempt in range(max_attempts):
        transition = rand_transition(config, minter, rng, on_infeasible=on_infeasible)
        result = try_step(config, transition)
        if not isinstance(result, Invalid):
            logger.debug(f"Found legal {transition.kind.value} transition after "
                         f"{attempt + 1} attempts")
            return transition
        reason = result.reason
    raise RetryExhausted(config, transition, max_attempts, reason)


class TransitionGenerator:
    """
    Produces the next legal transition for a test, given its current config

    Holds no iteration state beyond its random source and counters; the
    config comes in on every call.
    """

    def __init__(
        self,
        minter: Any,
        rng: Optional[random.Random] = None,
        max_attempts: int = MAX_ATTEMPTS
    ):
        self.minter = minter
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts

        self.metrics = {
            'transitions_generated': 0,
            'infeasible_draws': 0,
            'retries_exhausted': 0,
            'by_kind': {kind.value: 0 for kind, _ in TRANSITION_WEIGHTS}
        }

    def _record_infeasible(self, kind: TransitionKind) -> None:
        self.metrics['infeasible_draws'] += 1

    def next_transition(self, config: Config) -> Transition:
        """Generate a legal transition on config"""
        try:
            transition = rand_legal_transition(
                config, self.minter, self.rng,
                max_attempts=self.max_attempts,
                on_infeasible=self._record_infeasible
            )
        except RetryExhausted:
            self.metrics['retries_exhausted'] += 1
            raise
        self.metrics['transitions_generated'] += 1
        self.metrics['by_kind'][transition.kind.value] += 1
        return transition

    def op(self, refresh: Callable[[], Config]) -> Dict[str, Any]:
        """
        Refresh the shared config and produce a harness operation carrying
        the next legal transition
        """
        try:
            logger.info("Refreshing config")
            config = refresh()
            logger.info(f"Config refreshed: {compact_config(config)}")
            return {
                'type': 'info',
                'f': 'transition',
                'value': self.next_transition(config).to_dict()
            }
        except Exception as e:
            logger.warning(f"Error generating transition: {e}")
            raise

    def reset_metrics(self) -> None:
        self.metrics['transitions_generated'] = 0
        self.metrics['infeasible_draws'] = 0
        self.metrics['retries_exhausted'] = 0
        self.metrics['by_kind'] = {kind.value: 0 for kind, _ in TRANSITION_WEIGHTS}
