"""
HTTP surface for the coordinator.

Authentication is handled by the deployment in front of this app; the
authenticated caller principal arrives in the ``X-Caller-Principal`` header.

Run with: uvicorn secure_fedavg.service.app:build_default_app --factory --host 0.0.0.0 --port 8000
"""

import base64
import binascii
import os
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from secure_fedavg.aggregation import AggregationOutcome
from secure_fedavg.config import AggregationMode, load_coordinator_config
from secure_fedavg.coordinator import Coordinator, CycleStatus
from secure_fedavg.crypto.kdf import HkdfKeyDeriver
from secure_fedavg.errors import CoordinatorError, ErrorKind, Forbidden, Unauthenticated
from secure_fedavg.storage.model_store import GlobalModelVersion
from secure_fedavg.utils import configure_logging, get_logger
from secure_fedavg.utils.prometheus_metrics import PrometheusMetrics

logger = get_logger("service")

PRINCIPAL_HEADER = "X-Caller-Principal"

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INCOMPLETE_CYCLE: 409,
    ErrorKind.LENGTH_MISMATCH: 422,
    ErrorKind.OVERFLOW: 422,
    ErrorKind.DECRYPTION_FAILURE: 422,
    ErrorKind.KEY_DERIVATION: 502,
}


class RegisterResponse(BaseModel):
    client_id: int


class CycleResponse(BaseModel):
    cycle: int


class CycleStatusResponse(BaseModel):
    number: int
    state: str
    participants: List[int]
    plain_submitters: List[int]
    s_submitters: List[int]
    t_submitters: List[int]
    vector_length: Optional[int]
    committed_version: Optional[int]

    @classmethod
    def from_status(cls, status: CycleStatus) -> "CycleStatusResponse":
        return cls(
            number=status.number,
            state=status.state.value,
            participants=status.participants,
            plain_submitters=status.plain_submitters,
            s_submitters=status.s_submitters,
            t_submitters=status.t_submitters,
            vector_length=status.vector_length,
            committed_version=status.committed_version,
        )


class ParticipantsResponse(BaseModel):
    cycle: int
    participants: List[int]


class GlobalModelResponse(BaseModel):
    version: int
    cycle: Optional[int]
    weights: List[float]
    hash: str

    @classmethod
    def from_version(cls, version: GlobalModelVersion) -> "GlobalModelResponse":
        return cls(**version.to_dict())


class ModeRequest(BaseModel):
    mode: AggregationMode

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, value):
        return AggregationMode.parse(value)


class ModeResponse(BaseModel):
    mode: AggregationMode


class KeyRequest(BaseModel):
    derivation_path: str

    @field_validator("derivation_path")
    @classmethod
    def _check_hex(cls, value: str) -> str:
        try:
            bytes.fromhex(value)
        except ValueError as exc:
            raise ValueError("derivation_path must be hex encoded") from exc
        return value


class KeyResponse(BaseModel):
    key: str


class PlainUpdateRequest(BaseModel):
    ciphertext: str

    @field_validator("ciphertext")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("ciphertext must be base64 encoded") from exc
        return value


class VectorRequest(BaseModel):
    vector: List[int]


class AggregationResponse(BaseModel):
    cycle: int
    mode: AggregationMode
    version: int
    included: List[int]
    skipped: List[int]

    @classmethod
    def from_outcome(cls, outcome: AggregationOutcome) -> "AggregationResponse":
        return cls(
            cycle=outcome.cycle,
            mode=outcome.mode,
            version=outcome.version.version,
            included=outcome.included,
            skipped=outcome.skipped,
        )


def create_app(coordinator: Coordinator) -> FastAPI:
    app = FastAPI(
        title="Secure FedAvg Coordinator",
        description="Training-cycle coordination with plain and sMPC secure aggregation",
        version="0.1.0",
    )

    @app.exception_handler(CoordinatorError)
    async def _coordinator_error(request: Request, exc: CoordinatorError) -> JSONResponse:
        status = 403 if isinstance(exc, Forbidden) else STATUS_BY_KIND.get(exc.kind, 400)
        logger.info("%s %s -> %d %s", request.method, request.url.path, status, exc.kind.value)
        return JSONResponse(status_code=status, content=exc.to_dict())

    def caller(principal: Optional[str] = Header(default=None, alias=PRINCIPAL_HEADER)) -> str:
        if not principal:
            raise Unauthenticated(f"Missing {PRINCIPAL_HEADER} header")
        return principal

    def admin(principal: str = Depends(caller)) -> str:
        if not coordinator.config.is_admin(principal):
            raise Forbidden(f"{principal} may not run administrative operations")
        return principal

    @app.get("/health")
    def health_check() -> Dict[str, str]:
        return {"status": "healthy"}

    @app.post("/register")
    def register(principal: str = Depends(caller)) -> RegisterResponse:
        return RegisterResponse(client_id=coordinator.register(principal))

    @app.post("/cycles", status_code=201)
    def start_new_cycle(_: str = Depends(admin)) -> CycleResponse:
        return CycleResponse(cycle=coordinator.start_new_cycle())

    @app.get("/cycles/current")
    def current_cycle() -> CycleStatusResponse:
        return CycleStatusResponse.from_status(coordinator.current_cycle())

    @app.get("/cycles/{cycle}")
    def cycle_status(cycle: int) -> CycleStatusResponse:
        return CycleStatusResponse.from_status(coordinator.get_cycle_status(cycle))

    @app.get("/cycles/{cycle}/participants")
    def cycle_participants(cycle: int) -> ParticipantsResponse:
        return ParticipantsResponse(cycle=cycle, participants=coordinator.get_cycle_participants(cycle))

    @app.get("/global_model")
    def global_model() -> GlobalModelResponse:
        return GlobalModelResponse.from_version(coordinator.get_global_model())

    @app.get("/global_model/history")
    def global_model_history() -> List[GlobalModelResponse]:
        return [GlobalModelResponse.from_version(v) for v in coordinator.get_global_model_history()]

    @app.get("/aggregation_mode")
    def get_mode() -> ModeResponse:
        return ModeResponse(mode=coordinator.get_aggregation_mode())

    @app.put("/aggregation_mode")
    def set_mode(request: ModeRequest, _: str = Depends(admin)) -> ModeResponse:
        return ModeResponse(mode=coordinator.set_aggregation_mode(request.mode))

    @app.post("/keys")
    def symmetric_key(request: KeyRequest, principal: str = Depends(caller)) -> KeyResponse:
        path = bytes.fromhex(request.derivation_path)
        return KeyResponse(key=coordinator.get_symmetric_key_for_client(principal, path))

    @app.post("/updates/plain", status_code=202)
    def upload_model_update(request: PlainUpdateRequest, principal: str = Depends(caller)) -> CycleResponse:
        blob = base64.b64decode(request.ciphertext)
        return CycleResponse(cycle=coordinator.upload_model_update(principal, blob))

    @app.post("/aggregations/plain")
    def run_aggregation(_: str = Depends(admin)) -> AggregationResponse:
        return AggregationResponse.from_outcome(coordinator.run_aggregation())

    @app.post("/updates/smpc/s", status_code=202)
    def upload_masked_update_s(request: VectorRequest, principal: str = Depends(caller)) -> CycleResponse:
        return CycleResponse(cycle=coordinator.upload_masked_update_s(principal, request.vector))

    @app.post("/updates/smpc/t", status_code=202)
    def upload_mask_sum_t(request: VectorRequest, principal: str = Depends(caller)) -> CycleResponse:
        return CycleResponse(cycle=coordinator.upload_mask_sum_t(principal, request.vector))

    @app.post("/aggregations/smpc")
    def run_smpc_aggregation(_: str = Depends(admin)) -> AggregationResponse:
        return AggregationResponse.from_outcome(coordinator.run_smpc_aggregation())

    return app


def build_default_app() -> FastAPI:
    """
    App factory for deployments: config from SECURE_FEDAVG_CONFIG, local HKDF
    key derivation seeded from SECURE_FEDAVG_MASTER_SECRET (hex) when set.
    """
    config, path = load_coordinator_config()
    configure_logging(config.log_level, json_output=config.json_logs)
    logger.info("Loaded coordinator config from %s", path)
    secret_hex = os.getenv("SECURE_FEDAVG_MASTER_SECRET")
    master_secret = bytes.fromhex(secret_hex) if secret_hex else None
    metrics = PrometheusMetrics()
    if config.metrics_port:
        metrics.start_server(config.metrics_port)
    coordinator = Coordinator.from_config(HkdfKeyDeriver(master_secret, key_id=config.key_id), config, metrics)
    return create_app(coordinator)
