"""
Tests for the simulated cluster and the end-to-end simulation harness
"""

import pytest
import json
import random

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent))

from src.cluster.client import ClusterIOError
from src.cluster.simulated import ApplyOutcome, SimulatedCluster
from src.utils.config import apply_overrides, create_default_config
from src.validator_simulation import ValidatorSetSimulator, main
from src.validators.genesis import initial_config
from src.validators.invariants import is_valid
from src.validators.reconciliation import ConfigCell, refresh_config
from src.validators.transitions import pre_step
from src.validators.types import Add, AlterVotes, Create, Destroy, Remove, augment_gen_validator

NODES = ['n1', 'n2', 'n3', 'n4', 'n5']


@pytest.fixture
def cluster():
    return SimulatedCluster(NODES, rng=random.Random(5))


@pytest.fixture
def booted(cluster):
    config = initial_config(NODES, cluster)
    cluster.bootstrap(config)
    return cluster, config


def quiet_settings(**overrides):
    """Settings for a lossless cluster"""
    settings = apply_overrides(create_default_config(), [
        "simulation.drop_probability=0.0",
        "simulation.unreachable_probability=0.0",
        "simulation.cycles=30",
        "generator.seed=11",
    ])
    for section, values in overrides.items():
        settings[section].update(values)
    return settings


class TestSimulatedCluster:
    """In-memory cluster behaviour"""

    def test_gen_validator(self, cluster):
        first = cluster.gen_validator()
        second = cluster.gen_validator()
        assert first.pub_key != second.pub_key
        assert first.pub_key.type == "ed25519"
        # Raw Ed25519 public keys are 32 bytes
        assert len(bytes.fromhex(first.pub_key.data)) == 32
        assert len(bytes.fromhex(first.priv_key.data)) == 64
        assert first.priv_key.data.endswith(first.pub_key.data)
        assert len(first.address) == 40
        assert cluster.metrics['validators_minted'] == 2

    def test_bootstrap(self, booted):
        cluster, config = booted
        vset = cluster.validator_set('n1')
        assert vset.version == 0
        assert {v.pub_key for v in vset.validators} == {k.data for k in config.validators}
        assert all(v.power == 2 for v in vset.validators)

    def test_unreachable_nodes(self, booted):
        cluster, _ = booted
        cluster.partition(['n1', 'n2'])
        with pytest.raises(ClusterIOError):
            cluster.validator_set('n1')
        cluster.validator_set('n3')
        cluster.heal()
        cluster.validator_set('n1')
        assert cluster.metrics['reads_failed'] == 1

    def test_idle_node_cannot_answer(self, booted):
        cluster, _ = booted
        cluster.apply(Destroy(node='n4'))
        with pytest.raises(ClusterIOError):
            cluster.validator_set('n4')

    def test_membership_requests_bump_version(self, booted):
        cluster, config = booted
        key = next(iter(config.validators))
        assert cluster.apply(AlterVotes(version=0, pub_key=key, votes=5)) is ApplyOutcome.OK
        assert cluster.version == 1
        assert cluster.validators[key.data] == 5

    def test_stale_version_rejected(self, booted):
        cluster, config = booted
        key = next(iter(config.validators))
        assert cluster.apply(Remove(version=3, pub_key=key)) is ApplyOutcome.FAILED
        assert cluster.version == 0
        assert key.data in cluster.validators

    def test_add_then_create(self, booted):
        cluster, _ = booted
        validator = augment_gen_validator(cluster.gen_validator())
        assert cluster.apply(Add(version=0, validator=validator)) is ApplyOutcome.OK
        assert cluster.apply(Add(version=1, validator=validator)) is ApplyOutcome.FAILED
        cluster.apply(Destroy(node='n5'))
        assert cluster.apply(Create(node='n5', validator=validator)) is ApplyOutcome.OK
        assert cluster.apply(Create(node='n5', validator=validator)) is ApplyOutcome.FAILED
        assert cluster.running['n5'] == validator.pub_key.data

    def test_dropped_requests_are_unknown(self, booted):
        cluster, config = booted
        cluster.drop_probability = 1.0
        key = next(iter(config.validators))
        outcomes = {cluster.apply(AlterVotes(version=cluster.version, pub_key=key, votes=3))
                    for _ in range(20)}
        assert outcomes == {ApplyOutcome.UNKNOWN}
        assert cluster.metrics['requests_dropped'] + cluster.metrics['acks_dropped'] > 0

    def test_reconciliation_catches_up(self, booted):
        cluster, config = booted
        cell = ConfigCell(config)
        validator = augment_gen_validator(cluster.gen_validator())
        cell.set(pre_step(config, Add(version=0, validator=validator)))
        cluster.apply(Add(version=0, validator=validator))

        refreshed = refresh_config(cell, cluster, NODES, random.Random(0))
        assert refreshed.version == 1
        assert validator.pub_key in refreshed.validators
        assert refreshed.prospective_validators == {}


class TestValidatorSetSimulator:
    """End-to-end runs"""

    def test_lossless_run_has_no_violations(self):
        simulator = ValidatorSetSimulator(quiet_settings())
        result = simulator.run()
        assert result.retry_exhausted is False
        assert result.cycles_run == 30
        assert result.invariant_violations == 0
        assert result.transitions_generated == 30
        assert result.outcomes['unknown'] == 0
        assert sum(result.outcomes.values()) == 30
        assert is_valid(simulator.cell.get())

    def test_believed_config_matches_cluster(self):
        simulator = ValidatorSetSimulator(quiet_settings())
        simulator.run(cycles=20)
        config = simulator.cell.get()
        assert config.version == simulator.cluster.version
        assert {k.data: v.votes for k, v in config.validators.items()} == simulator.cluster.validators
        assert {n: k.data for n, k in config.nodes.items()} == simulator.cluster.running

    def test_dup_validators_run(self):
        simulator = ValidatorSetSimulator(quiet_settings(cluster={'dup_validators': True}))
        config = simulator.setup()
        assert len(config.validators) == 4
        result = simulator.run(cycles=10)
        assert result.invariant_violations == 0

    def test_super_byzantine_run_only_checks_faults(self):
        simulator = ValidatorSetSimulator(quiet_settings(cluster={
            'dup_validators': True,
            'super_byzantine_validators': True,
        }))
        assert simulator.fault_check_only is True
        initial = simulator.setup()
        result = simulator.run(cycles=10)
        assert result.retry_exhausted is False
        assert result.cycles_run == 10
        assert result.transitions_generated == 0
        assert sum(result.outcomes.values()) == 0
        # The duplicate holds 11 of 17 votes throughout
        assert result.violations == ['FAULT_BOUND'] * 10
        assert simulator.cell.get().validators == initial.validators

    def test_super_byzantine_without_duplicates_transitions(self):
        simulator = ValidatorSetSimulator(quiet_settings(cluster={'super_byzantine_validators': True}))
        assert simulator.fault_check_only is False
        result = simulator.run(cycles=5)
        assert result.transitions_generated == 5

    def test_zero_cycles(self):
        simulator = ValidatorSetSimulator(quiet_settings())
        result = simulator.run(cycles=0)
        assert result.cycles_run == 0
        assert result.transitions_generated == 0
        assert simulator.cell is not None

    def test_too_few_nodes_for_duplicates(self):
        with pytest.raises(ValueError):
            ValidatorSetSimulator(quiet_settings(cluster={'nodes': ['n1', 'n2', 'n3'],
                                                          'dup_validators': True}))

    def test_lossy_run_completes(self):
        settings = quiet_settings(simulation={
            'drop_probability': 0.3,
            'unreachable_probability': 0.3,
        })
        result = ValidatorSetSimulator(settings).run(cycles=20)
        assert result.cycles_run + int(result.retry_exhausted) >= 1
        assert result.transitions_generated == result.cycles_run

    def test_same_seed_same_run(self):
        first = ValidatorSetSimulator(quiet_settings()).run(cycles=10)
        second = ValidatorSetSimulator(quiet_settings()).run(cycles=10)
        assert first.outcomes == second.outcomes
        assert first.final_config['total_votes'] == second.final_config['total_votes']

    def test_export_metrics(self, tmp_path):
        simulator = ValidatorSetSimulator(quiet_settings())
        simulator.run(cycles=5)
        path = tmp_path / "metrics.json"
        simulator.export_metrics(str(path))
        data = json.loads(path.read_text())
        assert data['counters']['validators_minted'] >= len(NODES)
        assert len(data['values']['total_votes']) == 5

    def test_invalid_settings(self):
        settings = quiet_settings()
        settings['simulation']['cycles'] = 0
        with pytest.raises(ValueError):
            ValidatorSetSimulator(settings)


@pytest.mark.usefixtures("restore_logging")
class TestMain:
    """Command line entry point"""

    def test_main(self, tmp_path, capsys):
        metrics_path = tmp_path / "metrics.json"
        code = main([
            '--cycles', '5',
            '--seed', '3',
            '--metrics', str(metrics_path),
            '--set', 'simulation.drop_probability=0.0', 'simulation.unreachable_probability=0.0',
        ])
        assert code == 0
        assert metrics_path.exists()
        assert "VALIDATOR SET SIMULATION SUMMARY" in capsys.readouterr().out

    def test_main_config_file(self, tmp_path):
        settings = tmp_path / "settings.yaml"
        settings.write_text(
            "cluster:\n  nodes: [a1, a2, a3, a4]\n"
            "simulation:\n  cycles: 3\n  drop_probability: 0.0\n  unreachable_probability: 0.0\n"
        )
        assert main(['--config', str(settings)]) == 0

    def test_main_super_byzantine(self, capsys):
        code = main(['--dup-validators', '--super-byzantine', '--cycles', '5', '--seed', '3'])
        assert code == 0
        assert "Fault Check Only: True" in capsys.readouterr().out

    def test_main_invalid_settings(self, capsys):
        assert main(['--set', 'simulation.cycles=0']) == 2
        assert "Invalid settings" in capsys.readouterr().err

    def test_main_missing_config_file(self, tmp_path):
        assert main(['--config', str(tmp_path / "missing.yaml")]) == 2


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
