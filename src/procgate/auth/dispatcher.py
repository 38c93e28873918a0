"""
procgate.auth.dispatcher

Authentication Dispatcher: picks exactly one credential strategy per request.

Responsibilities:
- Try strategies in a fixed priority order (bearer, API key, delegated).
- Use the first strategy whose header predicate matches; never fall back to another.
- Return `Err(AUTHENTICATION_REQUIRED)` when no recognized credential is present.
"""

from __future__ import annotations

from collections.abc import Sequence

from procgate.auth.models import CallerIdentity
from procgate.auth.strategies import CredentialSource, CredentialValidator
from procgate.errors import ErrorKind
from procgate.observability.logging import get_logger
from procgate.results import Err, Result, err

log = get_logger(__name__)


class AuthenticationDispatcher:
    def __init__(self, validators: Sequence[CredentialValidator]) -> None:
        # Order is priority; the composition root passes bearer, api key, delegated.
        self._validators = tuple(validators)

    def select(self, source: CredentialSource) -> CredentialValidator | None:
        for validator in self._validators:
            if validator.matches(source):
                return validator
        return None

    async def authenticate(self, source: CredentialSource) -> Result[CallerIdentity]:
        validator = self.select(source)
        if validator is None:
            return err(ErrorKind.authentication_required, "Authentication credentials are required")

        material = validator.extract(source)
        result = await validator.validate(material)
        if isinstance(result, Err):
            log.info(
                "authentication_failed",
                scheme=validator.scheme.value,
                reason=result.failure.message,
            )
            return result

        log.debug("authenticated", scheme=validator.scheme.value, client_id=result.value.id)
        return result


# --- Module Notes -----------------------------------------------------------
# A request carrying both "Authorization: Bearer" and "X-API-Key" is judged on the
# bearer token alone, even if that token is rejected.
