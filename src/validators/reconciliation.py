"""
Cluster reconciliation

Merges the locally tracked config with the validator set the live cluster
reports. Add, Remove and AlterVotes requests take effect asynchronously; this
is how local belief catches up with what the cluster actually confirmed.
"""

import logging
import random
import threading
from typing import Dict, Iterable, Optional

from ..cluster.client import ClusterClient, ClusterValidatorSet
from .errors import UnknownClusterValidator, UnknownValidator
from .genesis import compact_config
from .types import Config, Key, Node, ShortKey, Validator

logger = logging.getLogger(__name__)


class ConfigCell:
    """
    The test's single shared config. Configs are immutable, so readers get a
    consistent snapshot; writers replace the whole value under the lock.
    """

    def __init__(self, config: Config):
        self._config = config
        self._lock = threading.RLock()

    def get(self) -> Config:
        with self._lock:
            return self._config

    def set(self, config: Config) -> Config:
        with self._lock:
            self._config = config
            return config

    @property
    def lock(self) -> threading.RLock:
        """Hold this to make a read-modify-write sequence atomic"""
        return self._lock


def validator_by_short_key(config: Config, short_key: ShortKey) -> Optional[Validator]:
    """Look up a validator by key data alone"""
    for validator in config.validators.values():
        if validator.pub_key.data == short_key:
            return validator
    return None


def prospective_validator_by_short_key(config: Config, short_key: ShortKey) -> Optional[Validator]:
    """Look up a prospective validator by key data alone"""
    for validator in config.prospective_validators.values():
        if validator.pub_key.data == short_key:
            return validator
    return None


def tendermint_validator_set_to_vote_map(
    config: Config,
    validator_set: ClusterValidatorSet
) -> Dict[Key, int]:
    """
    Convert the cluster's short-keyed validator set into a map of full
    public keys to votes

    Raises:
        UnknownClusterValidator: if the cluster reports a key we never saw
    """
    votes: Dict[Key, int] = {}
    for cluster_validator in validator_set.validators:
        short_key = cluster_validator.pub_key
        validator = (validator_by_short_key(config, short_key)
                     or prospective_validator_by_short_key(config, short_key))
        if validator is None:
            raise UnknownClusterValidator(cluster_validator, config)
        votes[validator.pub_key] = cluster_validator.power
    return votes


def clear_removed_nodes(config: Config, votes: Dict[Key, int]) -> Config:
    """Drop validators which no longer appear in the votes map"""
    validators = {k: v for k, v in config.validators.items() if k in votes}
    return config.evolve(validators=validators)


def update_known_nodes(config: Config, votes: Dict[Key, int]) -> Config:
    """
    Update every validator's votes from the votes map, promoting keys the
    cluster has confirmed from prospective_validators to validators

    Raises:
        UnknownValidator: if a key is neither a validator nor prospective
    """
    validators = dict(config.validators)
    prospective = dict(config.prospective_validators)
    for key, power in votes.items():
        validator = validators.get(key)
        if validator is None:
            validator = prospective.pop(key, None)
            if validator is None:
                raise UnknownValidator(
                    f"Don't recognize validator {key!r}; where did it come from? "
                    f"Local config: {compact_config(config)}"
                )
            logger.info(f"Promoting prospective validator {key.data[:5]}")
        validators[key] = validator.with_votes(power)
    return config.evolve(validators=validators, prospective_validators=prospective)


def merge_validator_set(local_config: Config, cluster_set: ClusterValidatorSet) -> Config:
    """Fold a validator set read from the cluster into the local config"""
    votes = tendermint_validator_set_to_vote_map(local_config, cluster_set)
    config = update_known_nodes(clear_removed_nodes(local_config, votes), votes)
    return config.evolve(version=cluster_set.version)


def current_config(local_config: Config, client: ClusterClient, node: Node) -> Config:
    """
    Combine our view of which nodes run which validators with a read of the
    cluster's current validator votes from node. Blocking.
    """
    return merge_validator_set(local_config, client.validator_set(node))


def refresh_config(
    cell: ConfigCell,
    client: ClusterClient,
    nodes: Iterable[Node],
    rng: Optional[random.Random] = None
) -> Config:
    """
    Update the shared config with fresh information from the cluster

    Tries nodes in random order, skipping any that fail with an I/O error.
    If none answers, the last known config is returned unchanged. The cluster
    is polled without holding the cell's lock; the answer is merged into
    whatever the cell holds by then.

    Returns:
        Our best estimate of the current config
    """
    rng = rng or random.Random()
    candidates = list(nodes)
    rng.shuffle(candidates)
    for node in candidates:
        try:
            cluster_set = client.validator_set(node)
        except OSError as e:
            logger.debug(f"Unable to fetch validator set from {node}: {e}")
            continue
        with cell.lock:
            config = merge_validator_set(cell.get(), cluster_set)
            logger.debug(f"Refreshed config from {node}: {compact_config(config)}")
            return cell.set(config)
    logger.warning("No node returned a validator set; keeping last known config")
    return cell.get()
