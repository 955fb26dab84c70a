"""Exception raised by individual verification stages."""

from __future__ import annotations

from skillauth.core.types import ErrorKind


class VerificationError(Exception):
    """A request failed one of the authentication stages.

    Raised by the stage functions; :class:`~skillauth.core.pipeline.RequestVerifier`
    converts it into a :class:`~skillauth.core.pipeline.VerificationResult`
    so callers never see it.

    Parameters
    ----------
    kind:
        Classified failure.
    detail:
        Human-readable explanation.  Logged, never sent to the client.

    """

    def __init__(self, kind: ErrorKind, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind}: {detail}")
