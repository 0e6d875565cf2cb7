"""Report delivery channels: PR comment, comment relay, step summary, artifact."""

from vetci.delivery.comments import COMMENT_MARKER, CommentUpserter
from vetci.delivery.runner import ReportDelivery
from vetci.delivery.summary import MAX_SUMMARY_BYTES, StepSummary

__all__ = [
    "COMMENT_MARKER",
    "MAX_SUMMARY_BYTES",
    "CommentUpserter",
    "ReportDelivery",
    "StepSummary",
]
