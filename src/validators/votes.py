"""
Byzantine vote allocation

Computes the initial distribution of votes for a test. When one validator key
runs on several nodes, that duplicate validator gets a carefully chosen share
of the vote:

Regular mode. Let an honest validator have weight 2, so the honest bloc holds
2(n-1) votes. We want that to be just over twice the duplicate's votes d:

    2(n-1) = 2d + e,  choose e = 2  =>  d = n - 2

The total is 3n - 4, so the duplicate alone holds (n-2)/(3n-4), which is
always under 1/3, while the duplicate plus one honest validator holds
n/(3n-4), which is always over 1/3.

Super-byzantine mode. The duplicate should hold just shy of 2/3 on its own,
so the honest bloc 2(n-1) must be just over 1/3. Choose d = 4(n-1) - 1 for a
total of 6(n-1) - 1. The duplicate's fraction (4(n-1)-1)/(6(n-1)-1)
approaches 2/3 from below as n grows, and any single honest validator tips
the duplicate's bloc over 2/3.
"""

import logging
from fractions import Fraction
from typing import Dict

from .errors import UnknownValidator, UnsupportedTopology
from .invariants import byzantine_validators
from .types import Config, Key

logger = logging.getLogger(__name__)

HONEST_VOTES = 2


def duplicate_votes(n: int, super_byzantine: bool = False) -> int:
    """
    Votes allocated to the single duplicate validator

    Args:
        n: Total number of validators, duplicate included
        super_byzantine: Allocate just shy of 2/3 instead of just shy of 1/3
    """
    if super_byzantine:
        return 4 * (n - 1) - 1
    return n - 2


def duplicate_vote_fraction(n: int, super_byzantine: bool = False) -> Fraction:
    """Fraction of the vote the duplicate validator controls on its own"""
    dup = duplicate_votes(n, super_byzantine)
    return Fraction(dup, dup + HONEST_VOTES * (n - 1))


def duplicate_with_ally_fraction(n: int, super_byzantine: bool = False) -> Fraction:
    """Fraction of the vote held by the duplicate plus one honest validator"""
    dup = duplicate_votes(n, super_byzantine)
    return Fraction(dup + HONEST_VOTES, dup + HONEST_VOTES * (n - 1))


def initial_validator_votes(config: Config) -> Dict[Key, int]:
    """
    Compute a map of validator keys to their initial votes

    Raises:
        UnsupportedTopology: if more than one validator runs on several nodes,
            or there are too few validators to give the duplicate any votes
    """
    votes = {k: HONEST_VOTES for k in config.validators}

    byzantines = byzantine_validators(config)
    if not byzantines:
        return votes
    if len(byzantines) != 1:
        raise UnsupportedTopology(
            f"Only know how to deal with 1 or 0 byzantine validators, "
            f"got {len(byzantines)}"
        )

    dup_key = byzantines[0].pub_key
    n = len(config.validators)
    dup_votes = duplicate_votes(n, config.super_byzantine_validators)
    if dup_votes <= 0:
        raise UnsupportedTopology(
            f"{n} validators leave the duplicate validator {dup_votes} votes"
        )
    votes[dup_key] = dup_votes
    logger.debug(f"Allocated {votes[dup_key]} votes to duplicate validator "
                 f"{dup_key.data[:5]} out of {sum(votes.values())}")
    return votes


def with_initial_validator_votes(config: Config) -> Config:
    """Assign the initial vote distribution to the config's validators"""
    validators = dict(config.validators)
    for key, votes in initial_validator_votes(config).items():
        validator = validators.get(key)
        if validator is None:
            raise UnknownValidator(f"No validator for key {key!r}")
        validators[key] = validator.with_votes(votes)
    return config.evolve(validators=validators)
