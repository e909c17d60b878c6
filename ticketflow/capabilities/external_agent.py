"""Code generation through an external assistant CLI (GitHub Copilot CLI or
``claude``) run non-interactively in the workspace.

Each call sends one prompt and expects a JSON object somewhere in the reply,
either bare or in a fenced ``json`` block.
"""

import json
import re
import subprocess
from typing import Any

import structlog

from ticketflow.capabilities.base import CodeGenerator
from ticketflow.enums import ChangeAction
from ticketflow.exceptions import AgentError
from ticketflow.models.domain import (
    ChangeEntry,
    DocWriteIntent,
    Plan,
    PlanIntent,
    ReviewPackage,
    Ticket,
    WorkItem,
)
from ticketflow.repository.workspace import GitWorkspace
from ticketflow.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
CONTEXT_LIMIT = 4000

PLAN_FORMAT = """Respond with a single JSON object:
{"summary": "...",
 "intents": [{"path": "relative/file", "action": "create|modify|delete",
              "summary": "...", "rationale": "...", "component": "..."}],
 "documentation": [{"path": "components/x.md", "title": "...", "category": "components",
                    "body": "...", "links": ["architecture/overview.md"], "reason": "..."}]}
List intents in the order they must be applied. Do not modify any files yet."""

REVIEW_FORMAT = """Respond with a single JSON object:
{"focus_areas": ["..."], "critical_files": ["path"], "testing_instructions": "...",
 "checklist": ["..."], "concerns": ["..."]}"""


def extract_json(output: str) -> dict[str, Any]:
    """Parse the JSON object from an assistant reply.

    Raises:
        AgentError: If the reply contains no JSON object
    """
    candidates = FENCED_JSON.findall(output)
    start, end = output.find("{"), output.rfind("}")
    if start != -1 and end > start:
        candidates.append(output[start : end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise AgentError("Assistant reply did not contain a JSON object")


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in value or [] if str(item).strip()]


class ExternalAgentGenerator(CodeGenerator):
    """Drives an assistant CLI that edits files in the workspace directly."""

    def __init__(
        self,
        workspace: GitWorkspace,
        command: str = "copilot",
        model: str | None = None,
        timeout: float = 600.0,
        extra_args: list[str] | None = None,
    ):
        """Initialize external agent generator.

        Args:
            workspace: Checkout the assistant works in
            command: Assistant CLI, ``copilot`` or ``claude``
            model: Optional model identifier
            timeout: Seconds allowed per invocation
            extra_args: Additional CLI arguments
        """
        self.workspace = workspace
        self.command = command
        self.model = model
        self.timeout = timeout
        self.extra_args = extra_args or []

    def _argv(self, prompt: str) -> tuple[list[str], str | None]:
        """Command line and stdin payload for one prompt."""
        model = ["--model", self.model] if self.model else []
        if self.command == "claude":
            # Large prompts go through stdin to avoid argument length limits
            return ["claude", "--print", "--dangerously-skip-permissions", *model, *self.extra_args], prompt
        return [self.command, "-p", prompt, "--allow-all-tools", *model, *self.extra_args], None

    async def _invoke(self, prompt: str, purpose: str) -> str:
        argv, stdin = self._argv(prompt)
        log.debug("agent_invoked", agent=self.command, purpose=purpose, prompt_length=len(prompt))

        try:
            stdout, stderr, _ = await run_command(
                *argv,
                cwd=self.workspace.path,
                timeout=self.timeout,
                input_text=stdin,
            )
        except FileNotFoundError as e:
            raise AgentError(f"{self.command} CLI not found in PATH") from e
        except TimeoutError as e:
            raise AgentError(f"{self.command} did not finish {purpose} within {self.timeout:.0f}s") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()[-500:]
            raise AgentError(f"{self.command} failed during {purpose} (exit {e.returncode}): {detail}") from e

        return stdout

    async def plan(self, ticket: Ticket, context: dict[str, str]) -> Plan:
        prompt = "\n\n".join(
            [
                f"Plan the implementation of ticket {ticket.key}: {ticket.summary}",
                f"Description:\n{ticket.description}",
                self._comments_section(ticket),
                self._knowledge_section(context),
                PLAN_FORMAT,
            ]
        )
        data = extract_json(await self._invoke(prompt, "planning"))

        intents = []
        for item in data.get("intents") or []:
            if not item.get("path"):
                continue
            try:
                action = ChangeAction(str(item.get("action", "modify")).lower())
            except ValueError:
                action = ChangeAction.MODIFY
            intents.append(
                PlanIntent(
                    path=item["path"],
                    summary=item.get("summary", ""),
                    action=action,
                    rationale=item.get("rationale", ""),
                    component=item.get("component") or None,
                )
            )

        documentation = [
            DocWriteIntent(
                path=doc["path"],
                title=doc.get("title", doc["path"]),
                category=doc.get("category", doc["path"].split("/", 1)[0]),
                body=doc.get("body", ""),
                links=_strings(doc.get("links")),
                reason=doc.get("reason", ""),
            )
            for doc in data.get("documentation") or []
            if doc.get("path")
        ]

        log.info("plan_generated", ticket=str(ticket.key), intents=len(intents))
        return Plan(intents=intents, summary=data.get("summary", ""), documentation=documentation)

    async def propose(self, intent: PlanIntent, context: dict[str, Any]) -> ChangeEntry:
        ticket: Ticket | None = context.get("ticket")
        feedback: str = context.get("feedback", "")

        sections = [
            f"Working on ticket {ticket.key}: {ticket.summary}" if ticket else "",
            f"Apply this change ({intent.action}) to `{intent.path}`:\n{intent.summary}",
            f"Rationale: {intent.rationale}" if intent.rationale else "",
            f"The previous attempt failed its tests. Test output:\n{feedback[-CONTEXT_LIMIT:]}" if feedback else "",
            'Edit only what this change needs. When done, reply with JSON: {"ok": true, "detail": "..."}',
        ]
        before = set(await self.workspace.changed_files())
        output = await self._invoke("\n\n".join(s for s in sections if s), f"applying {intent.path}")
        after = set(await self.workspace.changed_files())

        try:
            reply = extract_json(output)
        except AgentError:
            reply = {"ok": True, "detail": output.strip()[-500:]}

        files = sorted(after - before) or ([intent.path] if intent.path in after else [])
        ok = bool(reply.get("ok", True)) and (bool(files) or bool(feedback))
        detail = str(reply.get("detail", "")) or ("" if ok else "no file was changed")

        log.info("intent_applied" if ok else "intent_failed", path=intent.path, files=files)
        return ChangeEntry(intent=intent, ok=ok, files=files, detail=detail)

    async def review(self, work_item: WorkItem) -> ReviewPackage:
        ticket = work_item.ticket
        test_output = work_item.change_set.test_result.output if work_item.change_set.test_result else ""
        changes = "\n".join(f"- {path}" for path in work_item.change_set.files)

        prompt = "\n\n".join(
            [
                f"Prepare review notes for ticket {work_item.ticket_key}: {ticket.summary if ticket else ''}",
                f"Plan summary: {work_item.plan.summary}",
                f"Changed files:\n{changes}",
                f"Latest test output:\n{test_output[-CONTEXT_LIMIT:]}",
                REVIEW_FORMAT,
            ]
        )
        data = extract_json(await self._invoke(prompt, "review packaging"))
        return ReviewPackage(
            focus_areas=_strings(data.get("focus_areas")),
            critical_files=_strings(data.get("critical_files")),
            testing_instructions=str(data.get("testing_instructions") or ""),
            checklist=_strings(data.get("checklist")),
            concerns=_strings(data.get("concerns")),
        )

    @staticmethod
    def _comments_section(ticket: Ticket) -> str:
        if not ticket.comments:
            return ""
        recent = ticket.comments[-5:]
        return "Recent comments:\n" + "\n".join(f"- {c.author}: {c.body}" for c in recent)

    @staticmethod
    def _knowledge_section(context: dict[str, str]) -> str:
        if not context:
            return ""
        docs = [f"### {path}\n{content[:CONTEXT_LIMIT]}" for path, content in context.items()]
        return "Project knowledge:\n\n" + "\n\n".join(docs)
