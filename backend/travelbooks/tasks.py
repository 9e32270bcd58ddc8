from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from travelbooks.core.config import settings
from travelbooks.schemas.payment import PaymentConfirmation

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    """Get or create Redis pool for arq"""
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job:
    """
    Enqueue a task to the arq worker.

    Args:
        task_name: Name of the task function
        *args: Positional arguments for the task
        **kwargs: Keyword arguments for the task

    Returns:
        Job object from arq
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        return job  # type: ignore[return-value]
    finally:
        await pool.close()


async def enqueue_payment_confirmation(event: PaymentConfirmation) -> Job | None:
    """Queue a gateway event. The intent id doubles as the arq job id, so a
    redelivered event is not queued twice while the first is pending."""
    return await enqueue_task(
        "apply_payment_confirmation_task",
        event.model_dump(mode="json"),
        _job_id=f"payment:{event.payment_intent_id}",
    )

