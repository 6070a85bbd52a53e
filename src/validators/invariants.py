"""
Configuration invariant checking

Vote accounting and the predicates that decide whether a validator
configuration is safe: enough running votes for a quorum, bounded byzantine
power, and bounded ghost and zombie skew between the validator set and the
processes actually running on nodes.
"""

from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Set

from .errors import InvalidConfig, Invariant
from .types import Config, Key, Node, Validator

# Fraction of voting power that must be online and non-byzantine
QUORUM = Fraction(2, 3)

# Fraction of votes that may be byzantine or ghosts
FAULT_LIMIT = Fraction(1, 3)

# Ghosts are souls without bodies: validators which run on no node
GHOST_LIMIT = 2

# Zombies are bodies without souls: nodes running a validator that isn't
# part of the cluster
ZOMBIE_LIMIT = 2


def _fraction(part: int, total: int) -> Fraction:
    if total == 0:
        return Fraction(0)
    return Fraction(part, total)


def _sum_votes(validators: Iterable[Validator]) -> int:
    return sum(v.votes for v in validators)


def total_votes(config: Config) -> int:
    """How many votes are in the validator set in total?"""
    return _sum_votes(config.validators.values())


def vote_fractions(config: Config) -> Dict[Key, Fraction]:
    """Map of validator keys to the fraction of the vote they control"""
    total = total_votes(config)
    return {k: _fraction(v.votes, total) for k, v in config.validators.items()}


def pub_key_on_node(config: Config, node: Node) -> Optional[Key]:
    """What key is running on the given node?"""
    return config.nodes.get(node)


def nodes_running_validators(config: Config) -> Dict[Key, Set[Node]]:
    """Map of validator keys to the set of nodes running that key"""
    running: Dict[Key, Set[Node]] = {}
    for node, key in config.nodes.items():
        running.setdefault(key, set()).add(node)
    return running


def byzantine_validators(config: Config) -> List[Validator]:
    """Validators in the validator set which run on more than one node"""
    return [
        config.validators[key]
        for key, nodes in nodes_running_validators(config).items()
        if len(nodes) > 1 and key in config.validators
    ]


def byzantine_validator_keys(config: Config) -> List[Key]:
    return [v.pub_key for v in byzantine_validators(config)]


def running_validators(config: Config) -> List[Validator]:
    """Validators in the validator set running on at least one node"""
    running_keys = set(config.nodes.values())
    return [v for k, v in config.validators.items() if k in running_keys]


def ghost_validators(config: Config) -> Set[Validator]:
    """Validators in the validator set not running on any node"""
    return set(config.validators.values()) - set(running_validators(config))


def zombie_nodes(config: Config) -> List[Node]:
    """Nodes running a key which is not part of the validator set"""
    return sorted(node for node, key in config.nodes.items()
                  if key not in config.validators)


def dup_groups(config: Config) -> Dict[str, List[Set[Node]]]:
    """
    Group nodes by the validator they run

    Returns:
        Dictionary with 'groups' (every group of nodes sharing a key),
        'singles' (groups of one node) and 'dups' (groups of several nodes)
    """
    groups = list(nodes_running_validators(config).values())
    return {
        'groups': groups,
        'singles': [g for g in groups if len(g) == 1],
        'dups': [g for g in groups if len(g) > 1]
    }


def at_least_one_running_validator(config: Config) -> bool:
    return bool(running_validators(config))


def omnipotent_byzantines(config: Config) -> bool:
    """
    Does any byzantine validator control at least max_byzantine_vote_fraction
    of the vote?
    """
    fractions = vote_fractions(config)
    threshold = config.max_byzantine_vote_fraction
    return any(threshold <= fractions[k] for k in byzantine_validator_keys(config))


def too_many_ghosts(config: Config) -> bool:
    return GHOST_LIMIT < len(set(config.validators) - set(config.nodes.values()))


def too_many_zombies(config: Config) -> bool:
    return ZOMBIE_LIMIT < len(zombie_nodes(config))


def running_vote_fraction(config: Config) -> Fraction:
    return _fraction(_sum_votes(running_validators(config)), total_votes(config))


def faulty_vote_fraction(config: Config) -> Fraction:
    """Fraction of the vote held by byzantine or ghost validators"""
    faulty = set(byzantine_validators(config)) | ghost_validators(config)
    return _fraction(_sum_votes(faulty), total_votes(config))


def has_quorum(config: Config) -> bool:
    """Does the config provide strictly more than 2/3 running votes?"""
    return QUORUM < running_vote_fraction(config)


def is_faulty(config: Config) -> bool:
    """Are at least 1/3 of the votes byzantine or down?"""
    return FAULT_LIMIT <= faulty_vote_fraction(config)


def check_config(config: Config) -> Optional[Invariant]:
    """
    Find the first invariant the config violates

    Returns:
        The violated invariant, or None if the config is valid
    """
    if not at_least_one_running_validator(config):
        return Invariant.RUNNING_VALIDATOR
    if omnipotent_byzantines(config):
        return Invariant.BOUNDED_BYZANTINE
    if too_many_ghosts(config):
        return Invariant.GHOST_LIMIT
    if too_many_zombies(config):
        return Invariant.ZOMBIE_LIMIT
    if not has_quorum(config):
        return Invariant.QUORUM
    if is_faulty(config):
        return Invariant.FAULT_BOUND
    if not all(node in config.node_set for node in config.nodes):
        return Invariant.KNOWN_NODES
    if not all(v.votes > 0 for v in config.validators.values()):
        return Invariant.POSITIVE_VOTES
    return None


def assert_valid(config: Config) -> Config:
    """
    Ensure the given config is valid and return it unchanged

    Raises:
        InvalidConfig: naming the first violated invariant
    """
    violation = check_config(config)
    if violation is not None:
        raise InvalidConfig(violation, config)
    return config


def is_valid(config: Config) -> bool:
    return check_config(config) is None
