from .models import (
    DEFAULT_DERIVATION_SEED,
    DEFAULT_KEY_ID,
    DEFAULT_SMPC_SCALE,
    AggregationMode,
    CoordinatorConfig,
    DropoutPolicy,
)
from .system import CONFIG_ENV_VAR, load_coordinator_config, resolve_config_path

__all__ = [
    "AggregationMode",
    "CoordinatorConfig",
    "DropoutPolicy",
    "DEFAULT_DERIVATION_SEED",
    "DEFAULT_KEY_ID",
    "DEFAULT_SMPC_SCALE",
    "CONFIG_ENV_VAR",
    "load_coordinator_config",
    "resolve_config_path",
]
