from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from notebridge.entities import CompletionOutcome, CompletionSuccess


@dataclass
class InMemoryDocumentStore:
    """`DocumentStore` double that records every mutating call."""

    documents: dict[str, str] = field(default_factory=dict)
    folders: set[str] = field(default_factory=set)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_on: str | None = None

    def _maybe_fail(self, op: str) -> None:
        if self.fail_on == op:
            raise OSError(f"{op} failed")

    def exists(self, path: str) -> bool:
        return path in self.documents

    def read(self, path: str) -> str:
        self._maybe_fail("read")
        return self.documents[path]

    def create(self, path: str, content: str) -> None:
        self._maybe_fail("create")
        self.calls.append(("create", path))
        self.documents[path] = content

    def modify(self, path: str, content: str) -> None:
        self._maybe_fail("modify")
        self.calls.append(("modify", path))
        self.documents[path] = content

    def create_folder(self, path: str) -> None:
        if path not in self.folders:
            self.calls.append(("create_folder", path))
        self.folders.add(path)

    @property
    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in {"create", "modify"}]


@dataclass
class ScriptedCompletion:
    """Completion double returning `outcome` and recording its inputs."""

    outcome: CompletionOutcome = field(
        default_factory=lambda: CompletionSuccess(content="m" * 120)
    )
    calls: list[tuple[str, str]] = field(default_factory=list)

    async def complete(self, original_content: str, message: str) -> CompletionOutcome:
        self.calls.append((original_content, message))
        return self.outcome


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def completion() -> ScriptedCompletion:
    return ScriptedCompletion()
