"""Action-plan workflow.

Activities are referenced by name so the workflow module stays free of
non-deterministic imports.
"""

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

# Invalid AI output; the same input will fail the same way.
NON_RETRYABLE_ERROR_TYPES = ["CycleError", "ValidationError", "ExtractionUnavailable"]

ACTION_PLAN_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_attempts=3,
    non_retryable_error_types=NON_RETRYABLE_ERROR_TYPES,
)


@workflow.defn
class ActionPlanWorkflow:
    """Runs action-plan generation for one document with bounded retries."""

    @workflow.run
    async def run(self, payload: dict) -> dict:
        document_id = payload.get("document_id")
        workflow.logger.info(f"Starting action plan generation for document {document_id}")

        result = await workflow.execute_activity(
            "generate_action_plan",
            payload,
            start_to_close_timeout=timedelta(minutes=2),
            retry_policy=ACTION_PLAN_RETRY_POLICY,
        )

        if result.get("status") == "fallback":
            workflow.logger.warning(
                f"Document {document_id} fell back to the unstructured summary: "
                f"{(result.get('error') or {}).get('code')}"
            )
        return result
