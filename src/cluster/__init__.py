"""
Cluster boundary for validator tests: the client interface the model
consumes, and an in-memory simulated cluster implementing it.
"""

__all__ = [
    'ClusterClient',
    'ClusterIOError',
    'ClusterValidator',
    'ClusterValidatorSet',
    'SimulatedCluster',
    'ApplyOutcome',
]


def __getattr__(name):
    """Lazy import to avoid loading cryptography unless needed"""
    if name in ('SimulatedCluster', 'ApplyOutcome'):
        from . import simulated
        return getattr(simulated, name)
    if name in __all__:
        from . import client
        return getattr(client, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
