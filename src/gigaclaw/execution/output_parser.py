"""Two-stage extraction of the result payload from container stdout.

Stage one looks for the OUTPUT_START/END sentinel pair anywhere in the
stream; stage two falls back to the last non-empty line for children that
don't emit markers.
"""

from __future__ import annotations

from pydantic import ValidationError

from gigaclaw.execution.errors import ProtocolParseFailure
from gigaclaw.execution.types import ContainerOutput

OUTPUT_START_MARKER = "---GIGACLAW_OUTPUT_START---"
OUTPUT_END_MARKER = "---GIGACLAW_OUTPUT_END---"


def extract_between_markers(stdout: str) -> str | None:
    start = stdout.find(OUTPUT_START_MARKER)
    end = stdout.find(OUTPUT_END_MARKER)
    if start == -1 or end == -1 or end <= start:
        return None
    return stdout[start + len(OUTPUT_START_MARKER) : end].strip()


def extract_last_line(stdout: str) -> str | None:
    for line in reversed(stdout.splitlines()):
        if line.strip():
            return line.strip()
    return None


class ContainerOutputParser:
    """Locates and decodes the single ContainerOutput in a noisy stdout."""

    strategies = (extract_between_markers, extract_last_line)

    def extract(self, stdout: str) -> str:
        for strategy in self.strategies:
            payload = strategy(stdout)
            if payload is not None:
                return payload
        raise ProtocolParseFailure("stdout is empty")

    def parse(self, stdout: str) -> ContainerOutput:
        payload = self.extract(stdout)
        try:
            return ContainerOutput.model_validate_json(payload)
        except ValidationError as err:
            raise ProtocolParseFailure(str(err)) from err
