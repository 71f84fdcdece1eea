import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, Path, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PayloadError
from sqlalchemy.orm import Session

from src.api.auth import (
    Claims,
    PasswordHasher,
    TokenCodec,
    get_cookie_policy,
    get_current_claims,
    get_password_hasher,
    get_token_codec,
)
from src.api.config import Settings
from src.api.cookies import SessionCookiePolicy
from src.api.database import build_engine, build_session_factory, get_db
from src.api.errors import Unauthorized, ValidationError, register_exception_handlers
from src.api.models import Base
from src.api.notes import NoteStore
from src.api.schemas import (
    LoginRequest,
    MessageResponse,
    NoteMessageEnvelope,
    NoteResponse,
    NotesListResponse,
    NoteWriteRequest,
    UserCreateRequest,
    UserEnvelope,
    UserMessageEnvelope,
    UserResponse,
)
from src.api.users import CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter()


def setup_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    if root_logger.handlers:
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)
    root_logger.setLevel(level)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credential_store(
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> CredentialStore:
    return CredentialStore(db, hasher)


def get_note_store(db: Session = Depends(get_db)) -> NoteStore:
    return NoteStore(db)


async def read_note_payload(
    request: Request,
    _claims: Claims = Depends(get_current_claims),
) -> NoteWriteRequest:
    """
    Parse a note body after the session check, so anonymous requests get 401
    whatever their body holds.
    """
    try:
        data = await request.json()
    except ValueError:
        raise ValidationError("Malformed JSON body")
    try:
        return NoteWriteRequest.model_validate(data)
    except PayloadError as exc:
        raise RequestValidationError(exc.errors())


NOTE_BODY_OPENAPI = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": NoteWriteRequest.model_json_schema()}},
    }
}


# PUBLIC_INTERFACE
@router.get("/", tags=["Health"], summary="Health Check")
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON object indicating service status and server time.
    """
    return {"ok": True, "message": "API working fine", "time": datetime.now(tz=timezone.utc).isoformat()}


# -------- Auth Routes --------

# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=UserMessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
    summary="Register a new user",
)
def register_user(payload: UserCreateRequest, users: CredentialStore = Depends(get_credential_store)):
    """
    Register a new user.

    Body:
        name: display name
        email: valid email address, stored lowercased
        password: plaintext password

    Returns:
        The created user without sensitive fields.

    Raises:
        400 on missing or invalid fields, 409 if the email is already registered.
    """
    user = users.register(payload.name, payload.email, payload.password)
    return UserMessageEnvelope(message="User registered successfully", user=UserResponse.model_validate(user))


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=UserMessageEnvelope,
    tags=["Auth"],
    summary="Login and receive a session cookie",
)
def login(
    payload: LoginRequest,
    response: Response,
    users: CredentialStore = Depends(get_credential_store),
    codec: TokenCodec = Depends(get_token_codec),
    cookie_policy: SessionCookiePolicy = Depends(get_cookie_policy),
    settings: Settings = Depends(get_settings),
):
    """
    Login with email and password.

    On success the signed session token is set as an HTTP-only cookie; it is
    never returned in the body.

    Raises:
        401 on invalid credentials, without saying which part was wrong.
    """
    user = users.authenticate(payload.email, payload.password)
    token = codec.issue(user.id, user.email, timedelta(minutes=settings.access_token_expire_minutes))
    cookie_policy.attach(response, token)
    return UserMessageEnvelope(message="Login successful", user=UserResponse.model_validate(user))


# PUBLIC_INTERFACE
@router.get("/me", response_model=UserEnvelope, tags=["Auth"], summary="Current user")
def read_current_user(
    claims: Claims = Depends(get_current_claims),
    users: CredentialStore = Depends(get_credential_store),
):
    """
    Return the user behind the session cookie.

    Raises:
        401 if the session is missing or invalid, or its user no longer exists.
    """
    user = users.get(claims.user_id)
    if user is None:
        raise Unauthorized()
    return UserEnvelope(user=UserResponse.model_validate(user))


# PUBLIC_INTERFACE
@router.post("/logout", response_model=MessageResponse, tags=["Auth"], summary="Logout")
def logout(response: Response, cookie_policy: SessionCookiePolicy = Depends(get_cookie_policy)):
    """
    Clear the session cookie. Always succeeds, with or without a session.

    Sessions are stateless: the token itself stays valid until it expires, so
    a copy taken before logout still authenticates.
    """
    cookie_policy.detach(response)
    return MessageResponse(message="Logout successful")


# -------- Notes Routes --------

# PUBLIC_INTERFACE
@router.post(
    "/notes",
    response_model=NoteMessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    tags=["Notes"],
    summary="Create a new note",
    openapi_extra=NOTE_BODY_OPENAPI,
)
def create_note(
    payload: NoteWriteRequest = Depends(read_note_payload),
    claims: Claims = Depends(get_current_claims),
    notes: NoteStore = Depends(get_note_store),
):
    """
    Create a new note for the authenticated user.

    Body:
        body: note text, trimmed; must not be blank
    """
    note = notes.create(claims.user_id, payload.body)
    return NoteMessageEnvelope(message="Note created", note=NoteResponse.model_validate(note))


# PUBLIC_INTERFACE
@router.get("/notes", response_model=NotesListResponse, tags=["Notes"], summary="List notes")
def list_notes(
    q: Optional[str] = Query(None, max_length=200, description="Search text matched against note bodies"),
    claims: Claims = Depends(get_current_claims),
    notes: NoteStore = Depends(get_note_store),
):
    """
    List notes belonging to the current user, newest first.
    """
    items = [NoteResponse.model_validate(n) for n in notes.list(claims.user_id, q=q)]
    return NotesListResponse(message="Notes fetched", notes=items)


# PUBLIC_INTERFACE
@router.get("/notes/{note_id}", response_model=NoteMessageEnvelope, tags=["Notes"], summary="Get a note by ID")
def get_note(
    note_id: str = Path(...),
    claims: Claims = Depends(get_current_claims),
    notes: NoteStore = Depends(get_note_store),
):
    """
    Retrieve a single note by ID. Notes of other users are reported as not found.
    """
    note = notes.get(claims.user_id, note_id)
    return NoteMessageEnvelope(message="Note fetched", note=NoteResponse.model_validate(note))


# PUBLIC_INTERFACE
@router.put(
    "/notes/{note_id}",
    response_model=NoteMessageEnvelope,
    tags=["Notes"],
    summary="Update a note by ID",
    openapi_extra=NOTE_BODY_OPENAPI,
)
def update_note(
    payload: NoteWriteRequest = Depends(read_note_payload),
    note_id: str = Path(...),
    claims: Claims = Depends(get_current_claims),
    notes: NoteStore = Depends(get_note_store),
):
    """
    Replace the body of a note. Only the owner can modify it.
    """
    note = notes.update(claims.user_id, note_id, payload.body)
    return NoteMessageEnvelope(message="Note updated", note=NoteResponse.model_validate(note))


# PUBLIC_INTERFACE
@router.delete("/notes/{note_id}", response_model=MessageResponse, tags=["Notes"], summary="Delete a note by ID")
def delete_note(
    note_id: str = Path(...),
    claims: Claims = Depends(get_current_claims),
    notes: NoteStore = Depends(get_note_store),
):
    """
    Delete a note. Only the owner can delete it.
    """
    notes.delete(claims.user_id, note_id)
    return MessageResponse(message="Note deleted")


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its process-wide collaborators from settings.

    The engine, password hasher, token codec and cookie policy are created
    once here and reached by handlers through app.state.
    """
    if settings is None:
        settings = Settings.from_env()
    setup_logging(settings.log_level)

    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=engine)
        yield
        engine.dispose()

    app = FastAPI(
        title="Notes API",
        description="Notes application backend API with cookie sessions and per-user notes.",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Service health and status."},
            {"name": "Auth", "description": "User registration and cookie sessions."},
            {"name": "Notes", "description": "CRUD operations for the caller's notes."},
        ],
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.password_hasher = PasswordHasher(settings.bcrypt_rounds)
    app.state.token_codec = TokenCodec(settings.secret_key, settings.algorithm)
    app.state.cookie_policy = SessionCookiePolicy.from_settings(settings)

    # CORS setup - the frontend sends the session cookie, so credentials are allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.frontend_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router)
    return app


load_dotenv()
app = create_app()
