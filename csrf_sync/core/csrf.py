import inspect
import logging
import secrets
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Literal, Mapping, get_args

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

if TYPE_CHECKING:
    from csrf_sync.core.config import CsrfSettings


logger = logging.getLogger("csrf_sync.csrf")

CSRF_SESSION_KEY = "csrfToken"
CSRF_HEADER_NAME = "x-csrf-token"
CSRF_FORM_FIELD = "csrf_token"
DEFAULT_TOKEN_SIZE = 128

RequestMethod = Literal["GET", "HEAD", "PATCH", "PUT", "POST", "DELETE", "CONNECT", "OPTIONS", "TRACE"]
REQUEST_METHODS = frozenset(get_args(RequestMethod))
DEFAULT_IGNORED_METHODS: tuple[RequestMethod, ...] = ("GET", "HEAD", "OPTIONS")

CsrfSyncedToken = str | None
CsrfTokenRetriever = Callable[[Request], CsrfSyncedToken]
CsrfRequestTokenRetriever = Callable[[Request], CsrfSyncedToken | Awaitable[CsrfSyncedToken]]
CsrfTokenStorer = Callable[..., None]
CsrfSkipPredicate = Callable[[Request], Any]


class CsrfErrorConfig(BaseModel):
    """Status, message and machine code reported for a rejected request."""

    model_config = ConfigDict(frozen=True)

    status_code: int = status.HTTP_403_FORBIDDEN
    message: str = "invalid csrf token"
    code: str | None = "EBADCSRFTOKEN"


class InvalidCsrfTokenError(HTTPException):
    """Raised when a protected request does not echo the session's CSRF token."""

    def __init__(
        self,
        status_code: int = status.HTTP_403_FORBIDDEN,
        message: str = "invalid csrf token",
        code: str | None = "EBADCSRFTOKEN",
    ):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.code = code

    @classmethod
    def from_config(cls, config: CsrfErrorConfig) -> "InvalidCsrfTokenError":
        return cls(status_code=config.status_code, message=config.message, code=config.code)


def _is_token(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def header_token(name: str = CSRF_HEADER_NAME) -> CsrfTokenRetriever:
    """Build a retriever reading the request token from a header."""

    def get_token_from_request(request: Request) -> CsrfSyncedToken:
        return request.headers.get(name)

    return get_token_from_request


def form_token(field: str = CSRF_FORM_FIELD) -> Callable[[Request], Awaitable[CsrfSyncedToken]]:
    """Build a retriever reading the request token from a submitted form field.

    Uploaded files in the field, and bodies that cannot be parsed as a form,
    are treated as a missing token.
    """

    async def get_token_from_request(request: Request) -> CsrfSyncedToken:
        try:
            form = await request.form()
        except (StarletteHTTPException, MultiPartException) as exc:
            logger.debug("csrf_form_unparseable", extra={"path": request.url.path, "error": str(exc)})
            return None
        value = form.get(field)
        return value if isinstance(value, str) else None

    return get_token_from_request


def session_token_accessors(key: str = CSRF_SESSION_KEY) -> tuple[CsrfTokenRetriever, CsrfTokenStorer]:
    """Return the (getter, storer) pair keeping the token under ``key`` in the session."""

    def get_token_from_state(request: Request) -> CsrfSyncedToken:
        return request.session.get(key)

    def store_token_in_state(request: Request, token: CsrfSyncedToken = None) -> None:
        if token is None:
            request.session.pop(key, None)
        else:
            request.session[key] = token

    return get_token_from_state, store_token_in_state


class CsrfSync:
    """Synchronizer-token CSRF guard.

    The instance bundles the canonical error, the protection dependency and the
    token helpers. Configuration is fixed at construction; the only mutable
    state is the per-session token reached through the state accessors.

    Use ``csrf_synchronised_protection`` as a FastAPI dependency::

        csrf = csrf_sync()
        app = FastAPI(dependencies=[Depends(csrf.csrf_synchronised_protection)])
    """

    def __init__(
        self,
        *,
        ignored_methods: Iterable[str] = DEFAULT_IGNORED_METHODS,
        get_token_from_request: CsrfRequestTokenRetriever | None = None,
        get_token_from_state: CsrfTokenRetriever | None = None,
        store_token_in_state: CsrfTokenStorer | None = None,
        size: int = DEFAULT_TOKEN_SIZE,
        error_config: CsrfErrorConfig | Mapping[str, Any] | None = None,
        skip_csrf_protection: CsrfSkipPredicate | None = None,
    ):
        methods = frozenset(method.upper() for method in ignored_methods)
        unknown = methods - REQUEST_METHODS
        if unknown:
            raise ValueError(f"Unknown HTTP method(s) in ignored_methods: {', '.join(sorted(unknown))}")
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ValueError("size must be a positive number of bytes.")

        default_getter, default_storer = session_token_accessors()
        if not isinstance(error_config, CsrfErrorConfig):
            error_config = CsrfErrorConfig(**(error_config or {}))

        self.ignored_methods = methods
        self.size = size
        self.error_config = error_config
        self.skip_csrf_protection = skip_csrf_protection
        self.get_token_from_request = get_token_from_request or header_token()
        self.get_token_from_state = get_token_from_state or default_getter
        self.store_token_in_state = store_token_in_state or default_storer
        # Reference value for callers; each rejection raises a fresh copy of it.
        self.invalid_csrf_token_error = InvalidCsrfTokenError.from_config(error_config)

    @classmethod
    def from_settings(cls, settings: "CsrfSettings", **overrides: Any) -> "CsrfSync":
        """Build a guard from environment-backed settings; keyword overrides win."""
        get_token_from_state, store_token_in_state = session_token_accessors(settings.session_key)
        if settings.form_field:
            get_token_from_request = form_token(settings.form_field)
        else:
            get_token_from_request = header_token(settings.header_name)

        options: dict[str, Any] = {
            "ignored_methods": settings.ignored_methods,
            "get_token_from_request": get_token_from_request,
            "get_token_from_state": get_token_from_state,
            "store_token_in_state": store_token_in_state,
            "size": settings.size,
            "error_config": CsrfErrorConfig(
                status_code=settings.error_status_code,
                message=settings.error_message,
                code=settings.error_code,
            ),
        }
        options.update(overrides)
        return cls(**options)

    def generate_token(self, request: Request, overwrite: bool = False) -> str:
        """Return the session's token, minting and storing a new one when absent or when overwriting."""
        if not overwrite:
            existing = self.get_token_from_state(request)
            if _is_token(existing):
                return existing

        token = secrets.token_hex(self.size)
        self.store_token_in_state(request, token)
        logger.debug("csrf_token_generated", extra={"overwrite": overwrite})
        return token

    def revoke_token(self, request: Request) -> None:
        self.store_token_in_state(request, None)
        logger.debug("csrf_token_revoked")

    async def is_request_valid(self, request: Request) -> bool:
        """True when the request carries exactly the token stored for its session."""
        return await self._rejection_reason(request) is None

    async def csrf_synchronised_protection(self, request: Request) -> None:
        request.state.csrf_token = lambda overwrite=False: self.generate_token(request, overwrite)

        if request.method in self.ignored_methods:
            return
        if self._should_skip(request):
            logger.debug("csrf_protection_skipped", extra={"method": request.method, "path": request.url.path})
            return

        reason = await self._rejection_reason(request)
        if reason is not None:
            logger.warning(
                "csrf_token_rejected",
                extra={"method": request.method, "path": request.url.path, "reason": reason},
            )
            raise InvalidCsrfTokenError.from_config(self.error_config)

        logger.debug("csrf_token_verified", extra={"method": request.method, "path": request.url.path})

    def _should_skip(self, request: Request) -> bool:
        # Only a literal True bypasses; truthy values such as 1 or {} do not.
        if self.skip_csrf_protection is None:
            return False
        return self.skip_csrf_protection(request) is True

    async def _read_request_token(self, request: Request) -> CsrfSyncedToken:
        token = self.get_token_from_request(request)
        if inspect.isawaitable(token):
            token = await token
        return token

    async def _rejection_reason(self, request: Request) -> str | None:
        received = await self._read_request_token(request)
        stored = self.get_token_from_state(request)

        if not _is_token(received):
            return "missing_request_token"
        if not _is_token(stored):
            return "missing_state_token"
        if not secrets.compare_digest(received.encode("utf-8"), stored.encode("utf-8")):
            return "mismatch"
        return None


def csrf_sync(**options: Any) -> CsrfSync:
    """Create a CSRF guard; see ``CsrfSync`` for the accepted options."""
    return CsrfSync(**options)
