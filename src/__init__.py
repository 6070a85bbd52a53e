"""
Validator set configuration model for BFT fault-injection testing

Tracks which validator identities exist, which nodes run which identity, and
how voting power is distributed, so a test harness can drive a cluster through
random but legal membership changes while checking quorum and byzantine
safety invariants.
"""

__version__ = "0.1.0"

__all__ = [
    "Config",
    "Validator",
    "assert_valid",
    "step",
    "rand_legal_transition",
    "refresh_config",
    "SimulatedCluster",
]


def __getattr__(name):
    """Lazy import so submodules load only when needed"""
    if name in ("Config", "Validator"):
        from src.validators import types
        return getattr(types, name)
    elif name == "assert_valid":
        from src.validators.invariants import assert_valid
        return assert_valid
    elif name == "step":
        from src.validators.transitions import step
        return step
    elif name == "rand_legal_transition":
        from src.validators.generator import rand_legal_transition
        return rand_legal_transition
    elif name == "refresh_config":
        from src.validators.reconciliation import refresh_config
        return refresh_config
    elif name == "SimulatedCluster":
        from src.cluster.simulated import SimulatedCluster
        return SimulatedCluster
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
