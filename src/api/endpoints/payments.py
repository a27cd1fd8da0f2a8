"""
Payment routes: one typed POST per supported instrument x phase.

    POST /api/v1/payments/dqr/init
    POST /api/v1/payments/static-qr/transaction/list
    POST /api/v1/payments/payment-link/refund
    ...

Request bodies are the caller-facing contracts (amounts in major units).
Gateway faults are turned into ``{success: false, code, message}`` by the
exception handlers in src/error_handler.py.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header

from src.api.dependencies import get_orchestrator
from src.integrations.gateway.instruments import INSTRUMENTS, InstrumentDescriptor, PhaseDescriptor
from src.integrations.gateway.orchestrator import TransactionOrchestrator


api = APIRouter()
payments_api = api


def _make_endpoint(instrument: str, phase: str, request_model: type):
    async def endpoint(
        payload: request_model,  # type: ignore[valid-type]
        orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
        x_transaction_id: Optional[str] = Header(default=None, alias="X-TRANSACTION-ID"),
    ) -> Dict[str, Any]:
        response = await orchestrator.execute(instrument, phase, payload, transaction_id=x_transaction_id)
        return response.model_dump(mode="json", by_alias=True, exclude_none=True)

    endpoint.__name__ = f"{instrument}_{phase}"
    return endpoint


def _register(router: APIRouter, instrument: InstrumentDescriptor, phase: PhaseDescriptor) -> None:
    router.add_api_route(
        f"/{instrument.route}/{phase.route}",
        _make_endpoint(instrument.name, phase.name, phase.request_model),
        methods=["POST"],
        name=f"{instrument.name}_{phase.name}",
        summary=f"{instrument.label}: {phase.name.replace('_', ' ')}",
        tags=["Payments"],
    )


for _instrument in INSTRUMENTS.values():
    for _phase in _instrument.phases.values():
        _register(api, _instrument, _phase)


@api.get("/instruments", tags=["Payments"])
async def list_instruments() -> List[Dict[str, Any]]:
    return [
        {
            "instrument": inst.name,
            "label": inst.label,
            "routes": [f"/api/v1/payments/{inst.route}/{p.route}" for p in inst.phases.values()],
        }
        for inst in INSTRUMENTS.values()
    ]
