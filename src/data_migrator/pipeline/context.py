from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


class ContextSealedError(RuntimeError):
    """Raised when something writes to a context after the fetch stage committed."""


@dataclass
class PipelineContext:
    """Run-scoped state threaded from the fetch stage to the write stage.

    Single writer: only the fetch stage stages documents, then seals the
    context. The write stage refuses to read an unsealed context, so it can
    never observe a partially populated one.
    """

    run_id: str
    _staged: list[Any] = field(default_factory=list)
    _sealed: bool = False

    @classmethod
    def create(cls, *, run_id: str | None = None) -> "PipelineContext":
        return cls(run_id=run_id or str(uuid.uuid4()))

    def stage(self, document: Any) -> None:
        if self._sealed:
            raise ContextSealedError("staged objects are already committed for this run")
        self._staged.append(document)

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def staged_objects(self) -> tuple[Any, ...]:
        """Read-only view of the staged documents, in staging order."""
        if not self._sealed:
            raise ContextSealedError("staged objects are read before the fetch stage committed them")
        return tuple(self._staged)
