"""Ticket Client: typed facade over the issue tracker."""

from ticketflow.tracker.base import TicketClient, TicketQuery, Transition
from ticketflow.tracker.jira_rest import JiraRestClient

__all__ = ["JiraRestClient", "TicketClient", "TicketQuery", "Transition"]
