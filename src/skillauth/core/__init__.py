"""Request authentication core.

Public API::

    from skillauth.core import RequestVerifier, VerificationResult

    verifier = RequestVerifier(settings.verification, cache=cache)
    result = verifier.verify(request.headers, request.get_data())
    if result.ok:
        handle(result.event)
"""

from skillauth.core.errors import VerificationError
from skillauth.core.pipeline import RequestVerifier, VerificationResult
from skillauth.core.request import SkillEvent
from skillauth.core.types import ErrorKind

__all__ = [
    "ErrorKind",
    "RequestVerifier",
    "SkillEvent",
    "VerificationError",
    "VerificationResult",
]
