"""
Config construction and projections

Builds the initial config for a test run and projects configs into the
genesis document the cluster boots from, or into a compact human-readable
form for logs.
"""

import logging
from fractions import Fraction
from typing import Any, Dict, Sequence

from .errors import GenesisError, UnknownValidator
from .invariants import total_votes
from .types import (
    DEFAULT_MAX_BYZANTINE_VOTE_FRACTION,
    Config,
    Key,
    Node,
    ShortKey,
    Validator,
    augment_gen_validator,
    make_config,
)
from .votes import with_initial_validator_votes

logger = logging.getLogger(__name__)

GENESIS_CHAIN_ID = "jepsen"
GENESIS_TIME = "0001-01-01T00:00:00.000Z"


def initial_config(
    nodes: Sequence[Node],
    minter: Any,
    dup_validators: bool = False,
    super_byzantine_validators: bool = False,
    max_byzantine_vote_fraction: Fraction = DEFAULT_MAX_BYZANTINE_VOTE_FRACTION
) -> Config:
    """
    Construct the initial configuration for a test over the given nodes

    Args:
        nodes: Test nodes, in order. Every node gets a freshly minted validator.
        minter: Anything with a gen_validator() method, usually a ClusterClient
        dup_validators: Run the second node's validator on the first node too,
            dropping the first node's own validator
        super_byzantine_validators: Give the duplicate just shy of 2/3 votes
        max_byzantine_vote_fraction: Bound on any byzantine validator's vote

    Returns:
        A config with initial votes allocated
    """
    by_node: Dict[Node, Validator] = {
        node: augment_gen_validator(minter.gen_validator()) for node in nodes
    }
    node_keys: Dict[Node, Key] = {node: v.pub_key for node, v in by_node.items()}
    validators: Dict[Key, Validator] = {v.pub_key: v for v in by_node.values()}

    if dup_validators:
        if len(nodes) < 2:
            raise ValueError("Duplicate validators need at least two nodes")
        n1, n2 = nodes[0], nodes[1]
        del validators[node_keys[n1]]
        dup = validators.get(node_keys[n2])
        if dup is None:
            raise UnknownValidator(f"No validator running on {n2}")
        node_keys[n1] = dup.pub_key

    config = make_config(
        validators=validators,
        nodes=node_keys,
        node_set=nodes,
        super_byzantine_validators=super_byzantine_validators,
        max_byzantine_vote_fraction=max_byzantine_vote_fraction
    )
    config = with_initial_validator_votes(config)
    logger.info(f"Initial config: {len(config.validators)} validators on "
                f"{len(config.nodes)} nodes, {total_votes(config)} votes")
    return config


def genesis(config: Config) -> Dict[str, Any]:
    """
    Compute the genesis document for a config. Every validator must be
    running on some node, which names it.

    Raises:
        GenesisError: if a validator runs on no node
    """
    genesis_validators = []
    for validator in config.validators.values():
        names = sorted(node for node, key in config.nodes.items()
                       if key == validator.pub_key)
        if not names:
            raise GenesisError(
                f"Validator {compact_key(validator.pub_key)} runs on no node"
            )
        genesis_validators.append({
            'amount': validator.votes,
            'name': names[0],
            'pub_key': validator.pub_key.to_dict()
        })

    return {
        'app_hash': "",
        'chain_id': GENESIS_CHAIN_ID,
        'genesis_time': GENESIS_TIME,
        'validators': genesis_validators
    }


def compact_key(key: Key) -> ShortKey:
    """A compact, lossy, human-friendly representation of a key"""
    return key.data[:5]


def compact_config(config: Config) -> Dict[str, Any]:
    """Just the essentials of a config, for debugging"""
    return {
        'version': config.version,
        'total_votes': total_votes(config),
        'prospective_validators': sorted(
            compact_key(k) for k in config.prospective_validators
        ),
        'validators': {
            compact_key(k): {'votes': v.votes}
            for k, v in sorted(config.validators.items(), key=lambda kv: kv[0].data)
        },
        'nodes': {node: compact_key(k) for node, k in sorted(config.nodes.items())},
        'max_byzantine_vote_fraction': str(config.max_byzantine_vote_fraction)
    }
