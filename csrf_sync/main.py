from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from csrf_sync.core.config import CsrfSettings, Settings, get_csrf_settings, get_settings
from csrf_sync.core.csrf import CSRF_FORM_FIELD, CsrfSync, InvalidCsrfTokenError, form_token
from csrf_sync.core.logging import configure_logging
from csrf_sync.routers import demo


def register_csrf_error_handler(app: FastAPI) -> None:
    """Render rejected requests as ``{"detail", "code"}`` with the configured status."""

    @app.exception_handler(InvalidCsrfTokenError)
    async def csrf_exception_handler(request: Request, exc: InvalidCsrfTokenError):
        return JSONResponse(
            {"detail": exc.message, "code": exc.code},
            status_code=exc.status_code,
            headers=exc.headers,
        )


def create_app(settings: Settings | None = None, csrf_settings: CsrfSettings | None = None) -> FastAPI:
    settings = settings or get_settings()
    csrf_settings = csrf_settings or get_csrf_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.project_name)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie=settings.session_cookie_name,
        same_site=settings.session_cookie_same_site,
        https_only=settings.session_cookie_secure,
        max_age=settings.session_cookie_max_age,
    )

    # Both guards share the session key, so a token minted by one is accepted by the other.
    form_field = csrf_settings.form_field or CSRF_FORM_FIELD
    app.state.csrf = CsrfSync.from_settings(csrf_settings)
    app.state.csrf_form = CsrfSync.from_settings(csrf_settings, get_token_from_request=form_token(form_field))
    app.state.csrf_form_field = form_field

    app.include_router(demo.router)
    app.include_router(demo.protected_router)

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "ok"}

    register_csrf_error_handler(app)
    return app
