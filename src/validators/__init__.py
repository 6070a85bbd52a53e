"""
Validator set configuration: data model, invariants, vote allocation,
transitions, random legal transition generation and cluster reconciliation.
"""

_EXPORTS = {
    'Key': 'types',
    'Validator': 'types',
    'GeneratedValidator': 'types',
    'Config': 'types',
    'TransitionKind': 'types',
    'Create': 'types',
    'Destroy': 'types',
    'Add': 'types',
    'Remove': 'types',
    'AlterVotes': 'types',
    'make_config': 'types',
    'Invariant': 'errors',
    'InvalidConfig': 'errors',
    'StructuralError': 'errors',
    'RetryExhausted': 'errors',
    'UnknownClusterValidator': 'errors',
    'assert_valid': 'invariants',
    'check_config': 'invariants',
    'has_quorum': 'invariants',
    'is_faulty': 'invariants',
    'initial_validator_votes': 'votes',
    'with_initial_validator_votes': 'votes',
    'step': 'transitions',
    'try_step': 'transitions',
    'rand_legal_transition': 'generator',
    'TransitionGenerator': 'generator',
    'initial_config': 'genesis',
    'genesis': 'genesis',
    'compact_config': 'genesis',
    'ConfigCell': 'reconciliation',
    'refresh_config': 'reconciliation',
}

__all__ = list(_EXPORTS)


def __getattr__(name):
    """Lazy import to keep the cluster client boundary out of plain model use"""
    if name in _EXPORTS:
        import importlib
        module = importlib.import_module(f".{_EXPORTS[name]}", __name__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
