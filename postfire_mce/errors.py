"""
Error kinds raised by the MCE engine.

All errors subclass ValueError so callers that only care about "bad input"
can catch one type. Pipelines attach the stage and criterion that failed.
"""


class MCEError(ValueError):
    """Base class for every engine error."""

    kind = "error"

    def __init__(self, message: str, stage: str = None, criterion: str = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.criterion = criterion

    def with_context(self, stage: str = None, criterion: str = None) -> "MCEError":
        """Fill in stage/criterion if not already set, return self for re-raise."""
        if self.stage is None:
            self.stage = stage
        if self.criterion is None:
            self.criterion = criterion
        return self

    def __str__(self):
        where = []
        if self.stage:
            where.append(f"stage={self.stage}")
        if self.criterion:
            where.append(f"criterion={self.criterion}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class DomainError(MCEError):
    """Degenerate scale, empty region, or value outside every reclass rule."""

    kind = "domain"


class ConfigError(MCEError):
    """Invalid weight vector, normalisation spec, ladder or rule set."""

    kind = "config"


class PreconditionError(MCEError):
    """Layers that must share a grid do not."""

    kind = "precondition"
