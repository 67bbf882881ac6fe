"""Result: the outcome every front-end receives for a command."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class Result(BaseModel):
    """Outcome of one command.

    ``error`` is set on failure and ``output`` is then ``None``. ``exit`` asks
    the caller to end the session.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    error: str | None = None
    output: Any = None
    exit: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str) -> "Result":
        return cls(error=message, output=None)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: ``{error, output}`` plus ``exit`` when set."""
        data: dict[str, Any] = {"error": self.error, "output": self.output}
        if self.exit:
            data["exit"] = True
        return data
