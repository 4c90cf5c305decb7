import logging

from app.core.session_cache import session_cache
from app.core.validation import validate_password
from app.errors import PermissionDeniedError, RemoteError
from app.gateway.base import AuthSession, Gateway
from app.schemas.auth_schema import SessionOut, SignUpRequest

logger = logging.getLogger(__name__)


def _session_out(session: AuthSession | None) -> SessionOut:
    if session is None:
        return SessionOut(confirmation_required=True)
    return SessionOut(
        access_token=session.access_token,
        user_id=session.user_id,
        email=session.email,
    )


async def sign_up(gateway: Gateway, payload: SignUpRequest) -> SessionOut:
    validate_password(payload.password, payload.confirm_password)
    session = await gateway.sign_up(payload.email, payload.password)
    logger.info("Signed up %s", payload.email)
    return _session_out(session)


async def sign_in(gateway: Gateway, email: str, password: str) -> SessionOut:
    try:
        session = await gateway.sign_in(email, password)
    except RemoteError as exc:
        if exc.code == "invalid_credentials":
            raise PermissionDeniedError("Invalid email or password")
        raise

    await session_cache.load(gateway, session.user_id, refresh=True)
    return _session_out(session)


async def sign_out(gateway: Gateway, user_id: str) -> None:
    await gateway.sign_out()
    session_cache.forget(user_id)


async def request_password_reset(gateway: Gateway, email: str) -> None:
    await gateway.reset_password(email)
