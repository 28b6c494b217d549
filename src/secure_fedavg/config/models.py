import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class AggregationMode(str, Enum):
    PLAIN = "plain"
    SMPC = "smpc"

    @classmethod
    def parse(cls, value: "str | AggregationMode") -> "AggregationMode":
        if isinstance(value, AggregationMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown aggregation mode '{value}'") from exc


class DropoutPolicy(str, Enum):
    """How sMPC aggregation treats clients that submitted only one of s/t."""

    STRICT = "strict"
    LENIENT = "lenient"


DEFAULT_SMPC_SCALE = 1_000_000
DEFAULT_DERIVATION_SEED = "model_update_encryption"
DEFAULT_KEY_ID = "test_key_1"


@dataclass
class CoordinatorConfig:
    aggregation_mode: AggregationMode = AggregationMode.PLAIN
    smpc_scale: int = DEFAULT_SMPC_SCALE
    smpc_dropout_policy: DropoutPolicy = DropoutPolicy.STRICT
    derivation_seed: str = DEFAULT_DERIVATION_SEED
    key_id: str = DEFAULT_KEY_ID
    history_limit: int = 16
    state_path: Optional[str] = None
    admin_principals: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    json_logs: bool = False
    metrics_port: Optional[int] = None

    @property
    def derivation_seed_bytes(self) -> bytes:
        return self.derivation_seed.encode()

    @classmethod
    def from_file(cls, path: Path) -> "CoordinatorConfig":
        return cls.from_dict(json.loads(Path(path).read_text()))

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "CoordinatorConfig":
        if not data:
            return cls()
        known = {
            "aggregation_mode",
            "smpc_scale",
            "smpc_dropout_policy",
            "derivation_seed",
            "key_id",
            "history_limit",
            "state_path",
            "admin_principals",
            "log_level",
            "json_logs",
            "metrics_port",
        }
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown coordinator config keys {sorted(unknown)}")

        aggregation_mode = AggregationMode.parse(data.get("aggregation_mode", AggregationMode.PLAIN))
        try:
            dropout_policy = DropoutPolicy(str(data.get("smpc_dropout_policy", "strict")).lower())
        except ValueError as exc:
            raise ValueError(f"Unknown sMPC dropout policy '{data['smpc_dropout_policy']}'") from exc

        smpc_scale = int(data.get("smpc_scale", DEFAULT_SMPC_SCALE))
        if smpc_scale <= 0:
            raise ValueError("smpc_scale must be positive")
        history_limit = int(data.get("history_limit", 16))
        if history_limit <= 0:
            raise ValueError("history_limit must be positive")

        derivation_seed = str(data.get("derivation_seed", DEFAULT_DERIVATION_SEED))
        if not derivation_seed:
            raise ValueError("derivation_seed cannot be empty")
        key_id = str(data.get("key_id", DEFAULT_KEY_ID)).strip()
        if not key_id:
            raise ValueError("key_id cannot be empty")

        state_path = data.get("state_path")
        if state_path is not None:
            state_path = str(state_path).strip() or None

        admin_principals = [str(p) for p in (data.get("admin_principals") or [])]
        if len(set(admin_principals)) != len(admin_principals):
            raise ValueError("admin_principals must be unique")

        metrics_port = data.get("metrics_port")
        if metrics_port is not None:
            metrics_port = int(metrics_port)
            if metrics_port <= 0 or metrics_port > 65535:
                raise ValueError("metrics_port must be within 1-65535")

        return cls(
            aggregation_mode=aggregation_mode,
            smpc_scale=smpc_scale,
            smpc_dropout_policy=dropout_policy,
            derivation_seed=derivation_seed,
            key_id=key_id,
            history_limit=history_limit,
            state_path=state_path,
            admin_principals=admin_principals,
            log_level=str(data.get("log_level", "INFO")).upper(),
            json_logs=bool(data.get("json_logs", False)),
            metrics_port=metrics_port,
        )

    def is_admin(self, principal: str) -> bool:
        """An empty admin list leaves administrative operations ungated."""
        if not self.admin_principals:
            return True
        return principal in self.admin_principals
