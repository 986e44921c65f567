"""Derived progress view over a checklist. Recomputed on every read, never stored."""

from actionplan.schemas.checklist import Checklist, ChecklistItemView, ProgressView, UpcomingDeadline


def percent_complete(completed: int, total: int) -> int:
    """100 * completed / total rounded half up, in integer arithmetic."""
    if total == 0:
        return 0
    return (200 * completed + total) // (2 * total)


class ProgressCalculator:
    def progress(self, checklist: Checklist) -> ProgressView:
        total = len(checklist.items)
        completed = sum(1 for item in checklist.items if item.completed)

        ordered = sorted(checklist.items, key=lambda item: item.step_number)
        next_actions = [
            ChecklistItemView(**item.model_dump(), can_complete=True)
            for item in ordered
            if not item.completed and checklist.can_complete(item)
        ]

        upcoming = sorted(
            (
                UpcomingDeadline(
                    item_id=item.id,
                    step_number=item.step_number,
                    description=item.deadline.description,
                    deadline_id=item.deadline.deadline_id,
                    due_date=item.deadline.due_date,
                )
                for item in checklist.items
                if not item.completed and item.deadline is not None
            ),
            key=lambda deadline: (deadline.due_date, deadline.step_number),
        )

        return ProgressView(
            checklist_id=checklist.id,
            percent=percent_complete(completed, total),
            completed_count=completed,
            total_count=total,
            next_actions=next_actions,
            upcoming_deadlines=upcoming,
        )
