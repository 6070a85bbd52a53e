#!/usr/bin/env python3
"""
Validator Set Simulation

Drives a simulated BFT cluster through a long sequence of random, legal
validator set changes, the way a fault-injection test drives a real one:

- Refresh the believed config from the live cluster
- Pick a random transition that leads to a legal config
- Request it of the cluster, committing locally whatever definitely happened
- Check the believed config's invariants after every cycle

Usage:
    python -m src.validator_simulation --cycles 200 --nodes n1 n2 n3 n4 n5
    python -m src.validator_simulation --dup-validators --set simulation.drop_probability=0.3
"""

import argparse
import random
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .cluster.simulated import ApplyOutcome, SimulatedCluster
from .utils.config import (
    ConfigValidator,
    apply_overrides,
    create_default_config,
    load_config,
    max_byzantine_vote_fraction,
    merge_configs,
)
from .utils.logger import get_logger, setup_logger
from .utils.metrics import SimulationMetrics
from .validators.errors import RetryExhausted
from .validators.generator import TransitionGenerator
from .validators.genesis import compact_config, initial_config
from .validators.invariants import (
    check_config,
    faulty_vote_fraction,
    running_vote_fraction,
    total_votes,
)
from .validators.reconciliation import ConfigCell, refresh_config
from .validators.transitions import post_step, pre_step
from .validators.types import Add, Config, Transition


@dataclass
class SimulationResult:
    """Results from a validator set simulation"""
    cycles_run: int
    transitions_generated: int
    outcomes: Dict[str, int]
    invariant_violations: int
    retry_exhausted: bool
    final_config: Dict[str, Any]
    violations: List[str] = field(default_factory=list)


class ValidatorSetSimulator:
    """
    Runs the refresh / generate / apply cycle against a simulated cluster

    The simulator owns the shared config cell and is its only writer.
    """

    def __init__(self, settings: Dict[str, Any]):
        ConfigValidator.validate_simulation_config(settings)
        self.settings = settings

        cluster_settings = settings['cluster']
        generator_settings = settings['generator']
        simulation_settings = settings['simulation']

        self.nodes: List[str] = list(cluster_settings['nodes'])
        seed = generator_settings.get('seed')
        seed = int(seed) if seed is not None else None
        self.rng = random.Random(seed)

        self.cluster = SimulatedCluster(
            self.nodes,
            rng=random.Random(self.rng.random()),
            drop_probability=simulation_settings.get('drop_probability', 0.0),
            unreachable_probability=simulation_settings.get('unreachable_probability', 0.0)
        )
        self.generator = TransitionGenerator(
            self.cluster,
            rng=self.rng,
            max_attempts=generator_settings.get('max_attempts', 100)
        )
        self.metrics = SimulationMetrics(run_id=f"seed-{seed}")
        self.cell: Optional[ConfigCell] = None

        # A super-byzantine duplicate starts past the fault bound, so no
        # transition out of the initial config is legal. Such runs only watch
        # the cluster's config.
        self.fault_check_only = bool(
            cluster_settings.get('dup_validators')
            and cluster_settings.get('super_byzantine_validators')
        )

        self.log = get_logger(__name__, seed=seed)
        self.log.info("simulator_initialized", nodes=self.nodes,
                      fault_check_only=self.fault_check_only)

    def setup(self) -> Config:
        """Mint validators, build the initial config and boot the cluster"""
        cluster_settings = self.settings['cluster']
        config = initial_config(
            self.nodes,
            self.cluster,
            dup_validators=cluster_settings.get('dup_validators', False),
            super_byzantine_validators=cluster_settings.get('super_byzantine_validators', False),
            max_byzantine_vote_fraction=max_byzantine_vote_fraction(cluster_settings)
        )
        self.cluster.bootstrap(config)
        self.cell = ConfigCell(config)
        self.log.info("cluster_bootstrapped", config=compact_config(config))
        return config

    def refresh(self) -> Config:
        return refresh_config(self.cell, self.cluster, self.nodes, self.rng)

    def apply_transition(self, transition: Transition) -> ApplyOutcome:
        """
        Request a transition of the cluster. The requested half is committed
        up front; the confirmed half only once the cluster acknowledges it.
        Unknown outcomes are left for reconciliation to sort out.
        """
        with self.cell.lock:
            self.cell.set(pre_step(self.cell.get(), transition))

        outcome = self.cluster.apply(transition)

        with self.cell.lock:
            config = self.cell.get()
            if outcome is ApplyOutcome.OK:
                self.cell.set(post_step(config, transition))
            elif outcome is ApplyOutcome.FAILED and isinstance(transition, Add):
                prospective = dict(config.prospective_validators)
                prospective.pop(transition.validator.pub_key, None)
                self.cell.set(config.evolve(prospective_validators=prospective))
        return outcome

    def run_cycle(self, cycle: int) -> Optional[str]:
        """
        Run one cycle, returning the name of the invariant the believed config
        violates afterwards, if any. Fault-check-only runs skip the transition.
        """
        config = self.refresh()
        if not self.fault_check_only:
            transition = self.generator.next_transition(config)
            outcome = self.apply_transition(transition)

            self.metrics.increment(f"outcome.{outcome.value}")
            self.metrics.increment(f"transition.{transition.kind.value}")
            self.log.info("transition_applied", cycle=cycle,
                          transition=transition.kind.value, outcome=outcome.value)

        believed = self.cell.get()
        self.metrics.record('total_votes', total_votes(believed), cycle)
        self.metrics.record('running_vote_fraction', float(running_vote_fraction(believed)), cycle)
        self.metrics.record('faulty_vote_fraction', float(faulty_vote_fraction(believed)), cycle)
        self.metrics.record('validators', len(believed.validators), cycle)

        violation = check_config(believed)
        if violation is not None:
            self.metrics.increment('invariant_violations')
            self.log.warning("invariant_violated", cycle=cycle,
                             invariant=violation.name, config=compact_config(believed))
            return violation.name
        return None

    def run(self, cycles: Optional[int] = None) -> SimulationResult:
        """Run the simulation until cycles complete or no legal move remains"""
        if cycles is None:
            cycles = self.settings['simulation']['cycles']
        if self.cell is None:
            self.setup()

        violations: List[str] = []
        retry_exhausted = False
        cycles_run = 0
        for cycle in range(cycles):
            try:
                violation = self.run_cycle(cycle)
            except RetryExhausted as e:
                retry_exhausted = True
                self.log.error("retry_exhausted", cycle=cycle, attempts=e.attempts,
                               config=compact_config(e.config))
                break
            cycles_run += 1
            if violation is not None:
                violations.append(violation)

        final = self.refresh()
        outcomes = {o.value: self.metrics.counters.get(f"outcome.{o.value}", 0)
                    for o in ApplyOutcome}
        return SimulationResult(
            cycles_run=cycles_run,
            transitions_generated=self.generator.metrics['transitions_generated'],
            outcomes=outcomes,
            invariant_violations=len(violations),
            retry_exhausted=retry_exhausted,
            final_config=compact_config(final),
            violations=violations
        )

    def export_metrics(self, filepath: str):
        """Export detailed metrics to file"""
        self.metrics.increment('validators_minted', self.cluster.metrics['validators_minted'])
        self.metrics.export_json(filepath)
        self.log.info("metrics_exported", path=filepath)


def build_settings(args: argparse.Namespace) -> Dict[str, Any]:
    """Layer defaults, an optional config file, flags and overrides"""
    settings = create_default_config()
    if args.config:
        settings = merge_configs(settings, load_config(args.config))

    flags: Dict[str, Any] = {'cluster': {}, 'generator': {}, 'simulation': {}}
    if args.nodes:
        flags['cluster']['nodes'] = args.nodes
    if args.dup_validators:
        flags['cluster']['dup_validators'] = True
    if args.super_byzantine:
        flags['cluster']['super_byzantine_validators'] = True
    if args.seed is not None:
        flags['generator']['seed'] = args.seed
    if args.cycles is not None:
        flags['simulation']['cycles'] = args.cycles
    settings = merge_configs(settings, flags)

    return apply_overrides(settings, args.set or [])


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Validator Set Simulation')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML or JSON settings file')
    parser.add_argument('--nodes', type=str, nargs='+',
                        help='Cluster node names')
    parser.add_argument('--cycles', type=int, default=None,
                        help='Number of transition cycles')
    parser.add_argument('--dup-validators', action='store_true',
                        help='Run one validator key on two nodes')
    parser.add_argument('--super-byzantine', action='store_true',
                        help='Give the duplicate validator just shy of 2/3 votes')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed')
    parser.add_argument('--metrics', type=str, default=None,
                        help='Output path for detailed metrics')
    parser.add_argument('--set', type=str, nargs='*',
                        help='Dotted overrides, e.g. simulation.drop_probability=0.3')

    args = parser.parse_args(argv)

    try:
        settings = build_settings(args)
        ConfigValidator.validate_simulation_config(settings)
    except (ValueError, FileNotFoundError) as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    logging_settings = settings.get('logging', {})
    setup_logger(
        level=logging_settings.get('level', 'INFO'),
        log_file=logging_settings.get('log_file'),
        structured=logging_settings.get('structured', True)
    )

    simulator = ValidatorSetSimulator(settings)
    result = simulator.run()

    if args.metrics:
        simulator.export_metrics(args.metrics)

    cluster = settings['cluster']
    print("\n" + "="*50)
    print("VALIDATOR SET SIMULATION SUMMARY")
    print("="*50)
    print(f"Nodes: {', '.join(cluster['nodes'])}")
    print(f"Dup Validators: {cluster.get('dup_validators', False)}")
    print(f"Super Byzantine: {cluster.get('super_byzantine_validators', False)}")
    print(f"Fault Check Only: {simulator.fault_check_only}")
    print("-"*50)
    print(f"Cycles Run: {result.cycles_run}")
    print(f"Transitions Generated: {result.transitions_generated}")
    print(f"Outcomes: {result.outcomes}")
    print(f"Invariant Violations: {result.invariant_violations}")
    print(f"Retries Exhausted: {result.retry_exhausted}")
    print(f"Final Config: {result.final_config}")
    print("="*50)

    return 1 if result.retry_exhausted else 0


if __name__ == '__main__':
    sys.exit(main())
