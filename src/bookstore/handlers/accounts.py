"""
=============================================================================
ACCOUNTS: REGISTRATION, LOGIN, PROFILE
=============================================================================

    POST /api/users     JSON or multipart (+ optional "photo")
                        → 201 {"message": "User created", "user": {...}}
                        → 400 {"message": "Email already registered"}

    POST /api/login     JSON {"email", "password"}
                        → 200 + Set-Cookie: sessionId=<token>; HttpOnly; Path=/
                        → 401 {"message": "Invalid email or password"}, no cookie

    POST /api/logout    → 200 + Set-Cookie: sessionId=; HttpOnly; Path=/; Max-Age=0

    GET  /api/profile   (session) → 200 {"id", "name", "email", "photo"}
    PUT  /api/profile   (session) JSON or multipart (+ optional "photo")

Passwords are stored as PBKDF2 hashes and never appear in a response.

=============================================================================
"""

import logging
from typing import Optional

from ..db import Database
from ..errors import BookstoreError, Conflict, NotFound, Unauthenticated
from ..http.multipart import MultipartForm
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, created, ok
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..passwords import DEFAULT_ITERATIONS, hash_password, verify_password
from ..sessions import SessionStore
from ..uploads import UploadStore
from .fields import require_text

logger = logging.getLogger(__name__)


class AccountHandler:
    """Handlers for users, login/logout and the signed-in profile."""

    PHOTO_FIELD = "photo"
    SUBFOLDER = "users"

    def __init__(
        self,
        db: Database,
        sessions: SessionStore,
        uploads: UploadStore,
        password_iterations: int = DEFAULT_ITERATIONS,
    ):
        self.db = db
        self.sessions = sessions
        self.uploads = uploads
        self.password_iterations = password_iterations

    def register(self, router: Router) -> None:
        router.post("/api/users")(self.create_user)
        router.post("/api/login")(self.login)
        router.post("/api/logout")(self.logout)
        router.get("/api/profile", requires_auth=True)(self.get_profile)
        router.put("/api/profile", requires_auth=True)(self.update_profile)

    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        form = request.form()
        name = require_text(form.fields, "name")
        email = require_text(form.fields, "email")
        password = require_text(form.fields, "password")

        if self.db.get_user_by_email(email) is not None:
            raise Conflict("Email already registered")

        password_hash = hash_password(password, self.password_iterations)
        photo = self._save_photo(form)
        try:
            user = self.db.create_user(name, email, password_hash, photo)
        except BookstoreError:
            # Lost a duplicate-email race or the write failed
            self.uploads.discard(photo)
            raise
        logger.info(f"User {user['id']} registered")
        return created({"message": "User created", "user": user})

    def login(self, request: HTTPRequest) -> HTTPResponse:
        data = request.json()
        email = data.get("email")
        password = data.get("password")
        if not isinstance(email, str) or not isinstance(password, str):
            raise Unauthenticated("Invalid email or password")

        user = self.db.get_user_by_email(email)
        if user is None or not verify_password(password, user["password"]):
            logger.info(f"Failed login for {email!r}")
            raise Unauthenticated("Invalid email or password")

        token = self.sessions.create(user["id"])
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .cookie(self.sessions.cookie_name, token)
            .json({
                "message": "Login successful",
                "user": {"id": user["id"], "name": user["name"], "email": user["email"]},
            })
            .build())

    def logout(self, request: HTTPRequest) -> HTTPResponse:
        self.sessions.delete(request.cookies.get(self.sessions.cookie_name))
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .cookie(self.sessions.cookie_name, "", max_age=0)
            .json({"message": "Logged out"})
            .build())

    def get_profile(self, request: HTTPRequest) -> HTTPResponse:
        user = self.db.get_user_by_id(request.session.user_id)
        if user is None:
            raise NotFound("User not found")
        return ok(user)

    def update_profile(self, request: HTTPRequest) -> HTTPResponse:
        user_id = request.session.user_id
        form = request.form()
        name = require_text(form.fields, "name")
        email = require_text(form.fields, "email")

        photo = self._save_photo(form)
        try:
            user = self.db.update_user(user_id, name, email, photo)
            if user is None:
                raise NotFound("User not found")
        except BookstoreError:
            self.uploads.discard(photo)
            raise
        return ok(user)

    def _save_photo(self, form: MultipartForm) -> Optional[str]:
        upload = form.file(self.PHOTO_FIELD)
        if upload is None or not upload.payload:
            return None
        return self.uploads.store(upload.payload, upload.filename, self.SUBFOLDER)
