"""Jira implementation of the Ticket Client using direct REST API calls."""

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import httpx
import structlog

from ticketflow.credentials import CredentialProvider
from ticketflow.enums import LinkType, TicketStatus
from ticketflow.exceptions import AuthError, CredentialError, InvalidTransitionError, RemoteError
from ticketflow.models.domain import (
    Attachment,
    Ticket,
    TicketComment,
    TicketKey,
    TicketLink,
)
from ticketflow.tracker.base import TicketClient, TicketQuery, Transition
from ticketflow.utils.connection_pool import HTTPConnectionPool

log = structlog.get_logger(__name__)

SEARCH_FIELDS = "summary,description,status,priority,components,labels,issuelinks,updated"
DETAIL_FIELDS = f"{SEARCH_FIELDS},comment,attachment"

_LINK_FAMILIES = {
    "blocker": (LinkType.BLOCKS, LinkType.IS_BLOCKED_BY),
    "blocks": (LinkType.BLOCKS, LinkType.IS_BLOCKED_BY),
    "relates": (LinkType.RELATES, LinkType.RELATES),
    "relate": (LinkType.RELATES, LinkType.RELATES),
    "duplicate": (LinkType.DUPLICATES, LinkType.DUPLICATES),
    "duplicates": (LinkType.DUPLICATES, LinkType.DUPLICATES),
}


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse Jira timestamps such as ``2024-01-15T10:30:00.000+0000``."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%f%z")
    except ValueError:
        return datetime.fromisoformat(value)


class JiraRestClient(TicketClient):
    """Jira REST API v2 client.

    The bearer token is resolved from the credential provider on every
    request, so a token is never cached beyond the provider's run scope.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        credential_name: str = "tracker",
        page_size: int = 50,
        timeout: float = 30.0,
        max_connections: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Jira client.

        Args:
            base_url: Tracker base URL (e.g., https://issues.apache.org/jira)
            credentials: Run-scoped credential provider
            credential_name: Symbolic name of the tracker token
            page_size: Search page size
            timeout: HTTP timeout in seconds
            max_connections: Connection pool size
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = str(base_url).rstrip("/")
        self.credentials = credentials
        self.credential_name = credential_name
        self.page_size = page_size
        self._pool = HTTPConnectionPool(
            base_url=f"{self.base_url}/rest/api/2",
            max_connections=max_connections,
            timeout=timeout,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            transport=transport,
        )

    async def connect(self) -> None:
        await self._pool.initialize()
        log.info("tracker_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> "JiraRestClient":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            token = await self.credentials.get_secret(self.credential_name)
        except CredentialError as e:
            raise AuthError(f"Cannot resolve tracker token: {e.message}", service="tracker") from e

        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await self._pool.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteError(f"Tracker request {method} {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"Tracker rejected credentials (HTTP {response.status_code})", service="tracker"
            )
        if not response.is_success:
            raise RemoteError(
                f"Tracker request {method} {path} failed",
                status_code=response.status_code,
                response_text=response.text,
            )
        return response

    async def fetch(self, key: TicketKey) -> Ticket:
        """Get full ticket detail."""
        log.info("fetch_ticket", ticket=str(key))

        response = await self._request("GET", f"/issue/{key}", params={"fields": DETAIL_FIELDS})
        return self._parse_ticket(response.json())

    async def search(self, query: TicketQuery) -> AsyncIterator[Ticket]:
        """Page through search results, skipping blocked tickets."""
        jql = query.to_jql()
        page_size = query.page_size or self.page_size
        log.info("search_tickets", jql=jql)

        start_at = 0
        yielded = 0
        while True:
            response = await self._request(
                "GET",
                "/search",
                params={
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": page_size,
                    "fields": SEARCH_FIELDS,
                },
            )
            payload = response.json()
            issues = payload.get("issues", [])

            for issue in issues:
                ticket = self._parse_ticket(issue)
                blockers = ticket.unresolved_blockers
                if blockers:
                    log.debug(
                        "ticket_skipped_blocked",
                        ticket=str(ticket.key),
                        blocked_by=[str(b) for b in blockers],
                    )
                    continue
                yield ticket
                yielded += 1
                if query.limit is not None and yielded >= query.limit:
                    return

            start_at += len(issues)
            if not issues or start_at >= payload.get("total", 0):
                return

    async def comment(self, key: TicketKey, body: str) -> None:
        """Add comment to ticket."""
        log.info("add_comment", ticket=str(key))
        await self._request("POST", f"/issue/{key}/comment", json={"body": body})

    async def link(self, source: TicketKey, target: TicketKey, link_type: LinkType) -> None:
        """Create issue link ``source <link_type> target``."""
        log.info("link_tickets", source=str(source), target=str(target), type=str(link_type))

        outward, inward = (
            (target, source) if link_type == LinkType.IS_BLOCKED_BY else (source, target)
        )
        await self._request(
            "POST",
            "/issueLink",
            json={
                "type": {"name": link_type.tracker_name},
                "outwardIssue": {"key": str(outward)},
                "inwardIssue": {"key": str(inward)},
            },
        )

    async def available_transitions(self, key: TicketKey) -> list[Transition]:
        response = await self._request("GET", f"/issue/{key}/transitions")
        return [
            Transition(
                id=str(item["id"]),
                name=item.get("name", ""),
                to_status=item.get("to", {}).get("name", item.get("name", "")),
            )
            for item in response.json().get("transitions", [])
        ]

    async def transition(self, key: TicketKey, target_status: str) -> None:
        """Apply the transition leading to ``target_status``.

        The allowed transitions are queried first; nothing is written when
        the target is not offered.
        """
        transitions = await self.available_transitions(key)
        wanted = _normalize(target_status)
        match = next(
            (
                t
                for t in transitions
                if _normalize(t.to_status) == wanted or _normalize(t.name) == wanted
            ),
            None,
        )
        if match is None:
            raise InvalidTransitionError(
                str(key), target_status, available=[t.to_status for t in transitions]
            )

        log.info("transition_ticket", ticket=str(key), target=target_status, transition=match.id)
        await self._request(
            "POST", f"/issue/{key}/transitions", json={"transition": {"id": match.id}}
        )

    def _parse_ticket(self, data: dict[str, Any]) -> Ticket:
        """Convert API response to Ticket model."""
        fields = data.get("fields") or {}
        key = TicketKey.parse(data["key"])

        status_name = (fields.get("status") or {}).get("name", "")
        priority = (fields.get("priority") or {}).get("name", "")

        comments = [
            TicketComment(
                author=(c.get("author") or {}).get("displayName", "unknown"),
                body=c.get("body", ""),
                created_at=parse_timestamp(c.get("created")),
            )
            for c in (fields.get("comment") or {}).get("comments", [])
        ]
        attachments = [
            Attachment(
                filename=a.get("filename", ""),
                url=a.get("content", ""),
                size=int(a.get("size", 0)),
            )
            for a in fields.get("attachment") or []
        ]

        return Ticket(
            key=key,
            summary=fields.get("summary", ""),
            description=fields.get("description") or "",
            status=TicketStatus.from_name(status_name) or status_name,
            priority=priority,
            components=[c["name"] for c in fields.get("components") or []],
            labels=list(fields.get("labels") or []),
            comments=comments,
            attachments=attachments,
            links=self._parse_links(fields.get("issuelinks") or []),
            updated_at=parse_timestamp(fields.get("updated")),
            url=f"{self.base_url}/browse/{key}",
        )

    @staticmethod
    def _parse_links(items: list[dict[str, Any]]) -> list[TicketLink]:
        """Map Jira issue links to typed links seen from the owning ticket.

        An ``inwardIssue`` entry reads with the type's inward description
        (e.g. "is blocked by"); ``outwardIssue`` with the outward one.
        """
        links: list[TicketLink] = []
        for item in items:
            family = _LINK_FAMILIES.get((item.get("type") or {}).get("name", "").lower())
            if family is None:
                continue
            outward_type, inward_type = family

            if "inwardIssue" in item:
                other, link_type = item["inwardIssue"], inward_type
            elif "outwardIssue" in item:
                other, link_type = item["outwardIssue"], outward_type
            else:
                continue

            links.append(
                TicketLink(
                    type=link_type,
                    target=TicketKey.parse(other["key"]),
                    target_status=((other.get("fields") or {}).get("status") or {}).get("name"),
                )
            )
        return links


def _normalize(name: str) -> str:
    return "".join(name.split()).lower()
