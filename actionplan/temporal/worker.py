"""Temporal worker for action-plan generation.

This worker:
- Connects to the configured Temporal server
- Registers the action-plan workflow and activity
- Polls the action-plan task queue
"""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker

from actionplan.core.config import settings
from actionplan.temporal.activities.action_plan import generate_action_plan
from actionplan.temporal.workflows.action_plan import ActionPlanWorkflow
from actionplan.utils.logging import get_logger, set_package_level

logger = get_logger(__name__)


async def main():
    """Start the Temporal worker."""
    set_package_level(settings.log_level)
    temporal = settings.temporal

    logger.info(f"Connecting to Temporal server at {temporal.target_host}")
    client = await Client.connect(
        target_host=temporal.target_host,
        namespace=temporal.namespace,
    )
    logger.info("Successfully connected to Temporal server")

    worker = Worker(
        client,
        task_queue=temporal.task_queue,
        workflows=[ActionPlanWorkflow],
        activities=[generate_action_plan],
        max_concurrent_activities=5,
        max_concurrent_workflow_tasks=10,
    )

    logger.info(f"Worker polling task queue: {temporal.task_queue}")
    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
