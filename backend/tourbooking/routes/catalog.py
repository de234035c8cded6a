from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from tourbooking.services.tour_api_client import TourApiClient, get_tour_api_client

router = APIRouter(tags=["catalog"])


@router.get("/sales-agents")
async def list_sales_agents(client: TourApiClient = Depends(get_tour_api_client)) -> Dict[str, Any]:
    """Referral agents for the sales-code field; empty when the list is unavailable."""

    agents = await client.list_sales_agents()
    return {"agents": [agent.model_dump() for agent in agents], "available": bool(agents)}
