import asyncio
import logging
from datetime import datetime, timedelta, timezone

from warwatch.core.timestamps import to_utc_iso
from warwatch.services.context import PipelineContext

logger = logging.getLogger(__name__)


class AlertExpirySweep:
    """Marks alerts older than the configured age inactive."""

    name = "alert-expiry"

    def __init__(self, ctx: PipelineContext) -> None:
        self.ctx = ctx
        self.max_age = timedelta(minutes=ctx.settings.alert_expiry_minutes)

    async def run(self) -> int:
        cutoff = to_utc_iso(datetime.now(timezone.utc) - self.max_age)
        expired = await asyncio.to_thread(self.ctx.store.expire_alerts, cutoff)
        if expired:
            logger.info(f"[{self.name}] Expired {expired} alerts issued before {cutoff}")
        return expired
