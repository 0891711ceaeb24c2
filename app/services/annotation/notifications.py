"""
User-facing notifications for storage outcomes

Write results and save reports are turned into a message plus a severity
(success, info, warning, error) that the UI shows as a toast/alert.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .reconciler import SaveOutcome, SaveReport

if TYPE_CHECKING:
    from app.services.storage.base import WriteResult

SEVERITIES = ("success", "info", "warning", "error")

MESSAGES = {
    "IMAGE_UPLOADED": "Image uploaded successfully",
    "IMAGE_DELETED": "Image deleted successfully",
    "IMAGE_UPDATED": "Image updated successfully",
    "CATEGORY_CREATED": "Category created successfully",
    "CATEGORY_UPDATED": "Category updated successfully",
    "CATEGORY_DELETED": "Category deleted successfully",
    "ANNOTATIONS_SAVED": "Annotations saved successfully",
    "ANNOTATION_DELETED": "Annotation deleted",
    "ANNOTATION_UPDATED": "Annotation updated",
    "NOTHING_TO_SAVE": "No new annotations to save",
    "READ_ONLY": "Note: API is read-only. Changes are stored locally.",
    "ANNOTATIONS_READ_ONLY": "Note: API is read-only. Annotations are stored locally.",
    "UPLOAD_FAILED": "Failed to upload",
    "DELETE_FAILED": "Failed to delete",
    "UPDATE_FAILED": "Failed to update",
    "CREATE_FAILED": "Failed to create",
    "SAVE_FAILED": "Failed to save annotations",
}


@dataclass(frozen=True)
class Notification:
    """Message shown to the user"""
    message: str
    severity: str = "success"

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity!r}")


def notify_write(result: "WriteResult", success_message: str, failure_message: str) -> Notification:
    """
    Notification for a single create/update/delete

    Expected rejections (read-only backend) are informational; anything
    else that kept the change only locally or lost it is an error.
    """
    if result.persisted:
        return Notification(success_message, "success")
    kept_locally = result.status.value == "local_only"
    if kept_locally and result.severity == "info":
        return Notification(MESSAGES["READ_ONLY"], "info")
    message = f"{failure_message}: {result.error}"
    if kept_locally:
        message += ". Changes are stored locally."
    return Notification(message, result.severity)


def notify_save(report: SaveReport) -> Notification:
    """Notification for an annotation save"""
    if report.outcome is SaveOutcome.NOTHING_TO_SAVE:
        return Notification(MESSAGES["NOTHING_TO_SAVE"], "info")

    if report.outcome is SaveOutcome.SAVED:
        return Notification(f"{MESSAGES['ANNOTATIONS_SAVED']} ({report.succeeded})", "success")

    transport_errors = any(
        r.error is not None and r.severity == "error" for r in report.results
    )
    if report.outcome is SaveOutcome.FAILED and report.local_only == report.failed and not transport_errors:
        return Notification(MESSAGES["ANNOTATIONS_READ_ONLY"], "info")

    message = (
        f"{report.succeeded} of {report.attempted} annotation(s) saved, "
        f"{report.failed} failed"
    )
    if report.local_only:
        message += f" ({report.local_only} stored locally)"
    if report.outcome is SaveOutcome.FAILED:
        message = f"{MESSAGES['SAVE_FAILED']}: {message}"
    return Notification(message, "error" if transport_errors else "warning")
