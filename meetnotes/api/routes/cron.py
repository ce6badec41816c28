"""
Scheduled sweep endpoint, called by an external scheduler.

Guarded by ``CronAuthMiddleware`` when ``cron_secret`` is configured.
"""

from fastapi import APIRouter, Depends

from meetnotes.api.deps import get_services
from meetnotes.core.models import SweepResponse
from meetnotes.services.container import Services

router = APIRouter(prefix="/cron", tags=["cron"])


@router.api_route("/process-recordings", methods=["GET", "POST"], response_model=SweepResponse)
async def process_recordings(services: Services = Depends(get_services)):
    """Advance up to one batch of pending/processing recordings by one step."""
    items = await services.sweeper.sweep()
    if not items:
        return SweepResponse(message="No recordings to process")
    return SweepResponse(message=f"Processed {len(items)} recordings", processed=items)
