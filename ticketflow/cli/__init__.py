"""Command groups registered on the ``ticketflow`` CLI."""
