"""ticketflow: ticket-driven development workflow orchestration.

Selects a ticket from an issue tracker, drives it through planning,
implementation, testing, pull-request creation and documentation sync, and
reports the outcome back on the ticket.
"""

__version__ = "0.3.0"
