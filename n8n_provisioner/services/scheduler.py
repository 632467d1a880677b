"""
Health sweep scheduling using APScheduler.
Runs a health check for every deployed workflow on a fixed interval.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError
from typing import Callable, Dict, Optional

from n8n_provisioner.core.logging import get_logger
from n8n_provisioner.services.health import HealthMonitor
from n8n_provisioner.services.n8n import RemoteAutomationClient, create_n8n_client
from n8n_provisioner.services.store import DeploymentRecord, DeploymentStore

logger = get_logger(__name__, component="scheduler")

HEALTH_SWEEP_JOB_ID = "health-sweep"

ClientFactory = Callable[[DeploymentRecord], RemoteAutomationClient]

_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone="UTC")
    return _scheduler


def start_scheduler():
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")


def _default_client_factory(record: DeploymentRecord) -> RemoteAutomationClient:
    return create_n8n_client(record.n8n_url, record.n8n_api_key)


async def run_health_sweep(store: DeploymentStore,
                           client_factory: Optional[ClientFactory] = None) -> Dict[str, int]:
    """
    Check every deployed workflow once and record the outcome.

    A deployment whose check cannot be recorded is logged and skipped so the
    rest of the sweep still runs.

    Returns:
        Counts of checked, healthy, unhealthy and failed deployments
    """
    client_factory = client_factory or _default_client_factory
    summary = {"checked": 0, "healthy": 0, "unhealthy": 0, "failed": 0}

    for record in await store.list_deployed():
        if not record.workflow_id:
            continue
        try:
            monitor = HealthMonitor(record.monitor_config(), client=client_factory(record))
            result = await monitor.check_health()
            await store.record_health(record.deployment_id, result, monitor.generate_alerts(result))
        except Exception as e:
            summary["failed"] += 1
            logger.error("Health check failed", deployment_id=record.deployment_id,
                         error=str(e), exc_info=True)
            continue

        summary["checked"] += 1
        summary["healthy" if result.is_healthy else "unhealthy"] += 1

    logger.info("Health sweep completed", **summary)
    return summary


def start_health_monitoring(
    store: DeploymentStore,
    interval_seconds: int = 300,
    client_factory: Optional[ClientFactory] = None,
) -> str:
    """
    Register the health sweep as an interval job and start the scheduler.

    Args:
        store: Store providing deployed records and receiving results
        interval_seconds: Seconds between sweeps
        client_factory: Builds the n8n client for a record (default: N8nClient)

    Returns:
        The job_id
    """
    scheduler = get_scheduler()
    scheduler.add_job(
        run_health_sweep,
        trigger=IntervalTrigger(seconds=interval_seconds, timezone="UTC"),
        id=HEALTH_SWEEP_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        kwargs={"store": store, "client_factory": client_factory},
    )
    start_scheduler()

    logger.info("Registered health sweep", interval_seconds=interval_seconds)
    return HEALTH_SWEEP_JOB_ID


def stop_health_monitoring() -> bool:
    """
    Remove the health sweep job.

    Returns:
        True if job was removed, False if not found
    """
    scheduler = get_scheduler()
    try:
        scheduler.remove_job(HEALTH_SWEEP_JOB_ID)
        logger.info("Removed health sweep")
        return True
    except JobLookupError:
        logger.warning("Health sweep job not found")
        return False


def get_job_info(job_id: str = HEALTH_SWEEP_JOB_ID) -> Optional[Dict]:
    """
    Get information about a scheduled job.

    Args:
        job_id: The job identifier

    Returns:
        Dict with job info or None if not found
    """
    scheduler = get_scheduler()
    job = scheduler.get_job(job_id)
    if job:
        return {
            "id": job.id,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        }
    return None
