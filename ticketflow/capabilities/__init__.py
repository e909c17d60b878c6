"""Opaque capabilities the orchestrator delegates to: code generation and
test execution."""

from ticketflow.capabilities.base import CodeGenerator, TestRunner
from ticketflow.capabilities.external_agent import ExternalAgentGenerator
from ticketflow.capabilities.test_runner import ShellTestRunner

__all__ = ["CodeGenerator", "ExternalAgentGenerator", "ShellTestRunner", "TestRunner"]
