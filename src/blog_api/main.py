import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blog_api.auth_utils import (
    authenticate_user,
    create_access_token,
    get_current_identity,
    get_optional_identity,
    get_settings,
    introspect_token,
    register_user,
    require_user_creation_access,
)
from blog_api.captcha import CaptchaVerifier
from blog_api.config import Settings, load_settings
from blog_api.db import Database
from blog_api.error_handlers import register_error_handlers
from blog_api.errors import NotFound, StorageUnavailable
from blog_api.logging_config import setup_logging
from blog_api.repository import Repository
from blog_api.schemas import (
    ContactRequest,
    ContactSaved,
    ContactSubmission,
    CreateUserRequest,
    CreateUserResponse,
    Identity,
    LoginRequest,
    PageCreated,
    PageDetail,
    PageSummary,
    PageWrite,
    SuccessResponse,
    TokenResponse,
    VerifyTokenRequest,
    VerifyTokenResponse,
)
from blog_api.validation import format_display_date, strip_tags

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Login, token verification, and user creation."},
    {"name": "Pages", "description": "Public blog pages."},
    {"name": "Control Panel", "description": "Authenticated page management."},
    {"name": "Contact", "description": "Contact form intake."},
]

PageId = Annotated[int, Path(description="Numeric page id")]


# =========================
# Dependencies
# =========================

def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_captcha_verifier(request: Request) -> CaptchaVerifier:
    return request.app.state.captcha


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _summary(row: Dict[str, Any]) -> Dict[str, Any]:
    return {**row, "publishedDate": format_display_date(row.get("publishedDate"))}


# =========================
# Health
# =========================

health_router = APIRouter(tags=["Health"])


@health_router.get("/", summary="Health check")
def health_check() -> Dict[str, str]:
    """Liveness probe."""
    return {"message": "Healthy"}


@health_router.get("/health/ready", summary="Readiness check")
def readiness_check(repository: Repository = Depends(get_repository)):
    """Readiness probe: 503 when the database cannot be reached."""
    if not repository.ping():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {"status": "ready"}


# =========================
# Auth
# =========================

auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])


@auth_router.post("/login", response_model=TokenResponse, summary="Login")
def login(
    payload: LoginRequest,
    request: Request,
    repository: Repository = Depends(get_repository),
    captcha: CaptchaVerifier = Depends(get_captcha_verifier),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    """Check credentials and return a one-hour access token."""
    captcha.verify(payload.captcha_token, _client_ip(request))
    username = authenticate_user(repository, payload.username, payload.password)
    return TokenResponse(token=create_access_token(username, settings))


@auth_router.post(
    "/verify",
    response_model=VerifyTokenResponse,
    response_model_exclude_none=True,
    summary="Verify token",
)
def verify_token(payload: VerifyTokenRequest, settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """Introspect a token passed in the body; invalid tokens report valid=false."""
    return introspect_token(payload.token, settings)


@auth_router.post(
    "/create-user",
    response_model=CreateUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
)
def create_user(
    payload: CreateUserRequest,
    repository: Repository = Depends(get_repository),
    _: Optional[Identity] = Depends(require_user_creation_access),
) -> CreateUserResponse:
    """Create a user. Requires a bearer token unless open creation is enabled."""
    user_id = register_user(repository, payload.username, payload.password)
    return CreateUserResponse(message="User created", user_id=user_id)


@auth_router.get("/me", response_model=Identity, summary="Current identity")
def me(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Return the identity carried by the bearer token."""
    return identity


# =========================
# Pages (public)
# =========================

pages_router = APIRouter(prefix="/api", tags=["Pages"])


@pages_router.get("/pages", response_model=List[PageSummary], summary="List pages")
def list_pages(
    repository: Repository = Depends(get_repository),
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> List[Dict[str, Any]]:
    """Active pages for the public; every page for an authenticated caller."""
    rows = repository.list_pages(include_inactive=identity is not None)
    return [_summary(r) for r in rows]


@pages_router.get("/pages/{page_id}", response_model=PageDetail, summary="Get page")
def get_page(
    page_id: PageId,
    repository: Repository = Depends(get_repository),
    identity: Optional[Identity] = Depends(get_optional_identity),
) -> Dict[str, Any]:
    """An active page, or any page for an authenticated caller."""
    row = repository.get_page(page_id, include_inactive=identity is not None)
    if not row:
        raise NotFound("Page")
    return _summary(row)


# =========================
# Control panel (protected)
# =========================

control_router = APIRouter(
    prefix="/api/control-panel",
    tags=["Control Panel"],
    dependencies=[Depends(get_current_identity)],
)


@control_router.get("/pages/all", response_model=List[PageSummary], summary="List all pages")
def admin_list_pages(repository: Repository = Depends(get_repository)) -> List[Dict[str, Any]]:
    """Every page, active or not."""
    return [_summary(r) for r in repository.list_pages(include_inactive=True)]


@control_router.get("/pages/all/{page_id}", response_model=PageDetail, summary="Get any page")
def admin_get_page(page_id: PageId, repository: Repository = Depends(get_repository)) -> Dict[str, Any]:
    """A page regardless of its active flag."""
    row = repository.get_page(page_id, include_inactive=True)
    if not row:
        raise NotFound("Page")
    return _summary(row)


@control_router.post("/pages", response_model=PageCreated, summary="Create page")
def admin_create_page(payload: PageWrite, repository: Repository = Depends(get_repository)) -> PageCreated:
    """Create a page. Tags are stripped from the content before storage."""
    page_id = repository.create_page(
        path=payload.path,
        title=payload.title,
        content=strip_tags(payload.content),
        description=payload.description,
        category_id=payload.category_id,
        published_date=payload.published_date,
        active=payload.set_active,
    )
    logger.info("Created page %s", page_id)
    return PageCreated(page_id=page_id)


@control_router.put("/pages/{page_id}", response_model=SuccessResponse, summary="Update page")
def admin_update_page(
    payload: PageWrite,
    page_id: PageId,
    repository: Repository = Depends(get_repository),
) -> SuccessResponse:
    """Replace a page's fields."""
    affected = repository.update_page(
        page_id,
        path=payload.path,
        title=payload.title,
        content=strip_tags(payload.content),
        description=payload.description,
        category_id=payload.category_id,
        published_date=payload.published_date,
        active=payload.set_active,
    )
    if affected == 0:
        raise NotFound("Page")
    return SuccessResponse()


@control_router.delete("/pages/{page_id}", response_model=SuccessResponse, summary="Delete page")
def admin_delete_page(page_id: PageId, repository: Repository = Depends(get_repository)) -> SuccessResponse:
    """Delete a page."""
    if repository.delete_page(page_id) == 0:
        raise NotFound("Page")
    logger.info("Deleted page %s", page_id)
    return SuccessResponse()


# =========================
# Contact
# =========================

contact_router = APIRouter(prefix="/api", tags=["Contact"])


@contact_router.get(
    "/contacts",
    response_model=List[ContactSubmission],
    summary="List contact submissions",
    dependencies=[Depends(get_current_identity)],
)
def list_contacts(repository: Repository = Depends(get_repository)) -> List[Dict[str, Any]]:
    """All contact submissions, newest first."""
    return repository.list_contacts()


@contact_router.post("/contact", response_model=ContactSaved, summary="Submit contact form")
def submit_contact(
    payload: ContactRequest,
    request: Request,
    repository: Repository = Depends(get_repository),
    captcha: CaptchaVerifier = Depends(get_captcha_verifier),
) -> ContactSaved:
    """Store a contact form submission after the CAPTCHA check."""
    captcha.verify(payload.captcha_token, _client_ip(request))
    repository.create_contact(payload.first_name, payload.last_name, payload.email, payload.comments)
    return ContactSaved()


# =========================
# Application
# =========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build shared resources on startup; release them after requests drain."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    captcha = CaptchaVerifier.from_settings(settings)
    try:
        db = Database.from_settings(settings)
    except StorageUnavailable:
        captcha.close()
        raise
    app.state.captcha = captcha
    app.state.repository = Repository(db)
    logger.info("Blog API started")
    try:
        yield
    finally:
        logger.info("Blog API shutting down")
        captcha.close()
        db.close()


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application around an explicit Settings object."""
    settings = settings or load_settings()

    app = FastAPI(
        title="Blog API",
        description=(
            "Backend API for the blog: authentication, page management, and contact intake.\n\n"
            "Auth: Use the `Authorization: Bearer <token>` header for protected routes."
        ),
        version="1.0.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(pages_router)
    app.include_router(control_router)
    app.include_router(contact_router)
    return app
