from __future__ import annotations

import json

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from searchscope.agents.orchestrator import is_terminal
from searchscope.api.deps import Services, get_services
from searchscope.api.requests import AgentRequest
from searchscope.exceptions import ValidationError
from searchscope.models.schemas import ProviderId
from searchscope.services import logger as log_service

router = APIRouter(prefix="/api", tags=["agent"])


@router.post("/agent")
async def run_agent(body: AgentRequest, services: Services = Depends(get_services)):
    """Stream an agent run as server-sent events."""
    if not body.prompt.strip():
        raise ValidationError("Prompt is required")

    providers: list[ProviderId | str] = list(body.providers or [services.settings.default_provider])
    if body.include_pubmed and ProviderId.PUBMED.value not in providers:
        providers.append(ProviderId.PUBMED)
    orchestrator = services.new_orchestrator()

    async def event_generator():
        log_service.log_event(
            event_type="agent_started",
            message="Agent run started",
            prompt=body.prompt[:100],
            model=body.platform_model or services.settings.default_model,
        )
        async for event in orchestrator.run(
            body.prompt,
            model_id=body.platform_model,
            time_window=body.time_filter,
            providers=providers,
        ):
            yield {"event": event.event.value, "data": json.dumps(event.data)}
            if is_terminal(event):
                log_service.log_event(
                    event_type="agent_finished",
                    message=f"Agent run ended with {event.event.value}",
                    stage=orchestrator.state.stage.value,
                )

    return EventSourceResponse(event_generator())
