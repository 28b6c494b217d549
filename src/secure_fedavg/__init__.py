"""
Secure federated averaging coordinator.

Components:
- Registry and training-cycle lifecycle
- Plain aggregation (just-in-time decryption with derived keys)
- sMPC aggregation (additive pairwise masks, fixed-point sums)
- Versioned global model store and state snapshots
"""

__all__ = ["aggregation", "config", "coordinator", "crypto", "errors", "service", "state", "storage", "utils"]
