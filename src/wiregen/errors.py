"""Generation-time failures.

These abort the generation unit (service) being processed. Runtime validation errors raised
by generated code live in :mod:`wiregen.runtime.errors` instead.
"""

from __future__ import annotations


class GenerationError(Exception):
    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        method: str | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.method = method
        self.path = path

    def with_context(self, *, service: str | None = None, method: str | None = None) -> GenerationError:
        """Fill in missing context as the error travels up to the generation driver."""
        if self.service is None:
            self.service = service
        if self.method is None:
            self.method = method
        return self

    def __str__(self) -> str:
        context = []
        if self.service:
            context.append(f"service {self.service!r}")
        if self.method:
            context.append(f"method {self.method!r}")
        if self.path:
            context.append(f"at {self.path}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class SchemaError(GenerationError):
    """The description is malformed: unknown references, illegal locations, bad views."""


class NamingError(GenerationError):
    """A generated symbol name could not be made unique."""


class CycleError(GenerationError):
    def __init__(self, chain: list[str], **context: str | None) -> None:
        self.chain = chain
        super().__init__(
            "user types form a cycle of required fields that cannot be represented: " + " -> ".join(chain),
            **context,
        )
