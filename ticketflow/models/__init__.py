"""Domain models for ticketflow."""

from ticketflow.models.domain import (
    Attachment,
    BrokenLink,
    ChangeEntry,
    ChangeSet,
    DocWriteIntent,
    KnowledgeDocument,
    Plan,
    PlanIntent,
    PullRequestDescriptor,
    PullRequestHandle,
    ReviewPackage,
    StageFailure,
    TestResult,
    Ticket,
    TicketComment,
    TicketKey,
    TicketLink,
    WorkflowResult,
    WorkItem,
)

__all__ = [
    "Attachment",
    "BrokenLink",
    "ChangeEntry",
    "ChangeSet",
    "DocWriteIntent",
    "KnowledgeDocument",
    "Plan",
    "PlanIntent",
    "PullRequestDescriptor",
    "PullRequestHandle",
    "ReviewPackage",
    "StageFailure",
    "TestResult",
    "Ticket",
    "TicketComment",
    "TicketKey",
    "TicketLink",
    "WorkItem",
    "WorkflowResult",
]
