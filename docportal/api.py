# api.py
import logging
import time
from typing import List, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from .auth import Authenticator, Session, StaticCredentialAuthenticator
from .config import Settings
from .exceptions import DocumentNotFound, InvalidName, PayloadTooLarge, StoreUnavailable
from .operations import DocumentOperations
from .storage.base import StorageClient
from .storage.dto import DeleteResult, DocumentRecord, UploadResult

bearer_scheme = HTTPBearer(auto_error=False)


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    token: str
    username: str
    expires_at: str = Field(alias="expiresAt")


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str


# (status code, user-facing notice) per error; details stay in the logs.
ERROR_RESPONSES = {
    StoreUnavailable: (503, "The document store is unavailable. Please try again."),
    PayloadTooLarge: (413, "The file is larger than the allowed upload size."),
    InvalidName: (400, "The document name is empty or invalid."),
    DocumentNotFound: (404, "The document does not exist."),
}


def get_operations(request: Request) -> DocumentOperations:
    return request.app.state.operations


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def require_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    authenticator: Authenticator = Depends(get_authenticator),
) -> Session:
    session = authenticator.resolve(credentials.credentials) if credentials else None
    if session is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def create_app(
    settings: Settings,
    storage_client: StorageClient,
    authenticator: Optional[Authenticator] = None,
) -> FastAPI:
    """Builds the HTTP surface around an already-initialized storage client."""
    app = FastAPI(
        title="HR Document Portal",
        description="Admin API for uploading, listing and deleting HR documents.",
    )
    app.state.settings = settings
    app.state.operations = DocumentOperations(storage_client, settings.MAX_UPLOAD_SIZE_BYTES)
    app.state.authenticator = authenticator or StaticCredentialAuthenticator(
        settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD, settings.SESSION_TTL_SECONDS
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.monotonic()
        response = await call_next(request)
        logging.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({time.monotonic() - start_time:.3f}s)"
        )
        return response

    def _register_error(exc_class, status_code: int, message: str):
        async def handler(request: Request, exc: Exception):
            logging.warning(
                f"{request.method} {request.url.path} failed with {exc_class.__name__}: {exc}"
            )
            body = ErrorResponse(error=exc_class.__name__, message=message)
            return JSONResponse(status_code=status_code, content=body.model_dump())

        app.add_exception_handler(exc_class, handler)

    for exc_class, (status_code, message) in ERROR_RESPONSES.items():
        _register_error(exc_class, status_code, message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logging.warning(f"{request.method} {request.url.path} rejected: {exc.errors()}")
        body = ErrorResponse(
            error="ValidationError",
            message="The request is missing required fields or has invalid values.",
        )
        return JSONResponse(status_code=422, content=body.model_dump())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logging.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc
        )
        body = ErrorResponse(error="InternalError", message="Internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "provider": settings.STORAGE_PROVIDER,
            "container": settings.STORAGE_CONTAINER_NAME,
        }

    @app.post("/api/login", response_model=LoginResponse)
    def login(payload: LoginRequest, authenticator: Authenticator = Depends(get_authenticator)):
        session = authenticator.authenticate(payload.username, payload.password)
        if session is None:
            return JSONResponse(
                status_code=401,
                content=ErrorResponse(
                    error="InvalidCredentials", message="Invalid username or password."
                ).model_dump(),
            )
        return LoginResponse(
            token=session.token,
            username=session.username,
            expires_at=session.expires_at.isoformat(),
        )

    @app.post("/api/logout", response_model=DeleteResult)
    def logout(
        session: Session = Depends(require_session),
        authenticator: Authenticator = Depends(get_authenticator),
    ):
        authenticator.revoke(session.token)
        return DeleteResult(success=True)

    @app.get("/api/documents", response_model=List[DocumentRecord])
    def list_documents(
        _: Session = Depends(require_session),
        operations: DocumentOperations = Depends(get_operations),
    ):
        return operations.list_documents()

    @app.post("/api/documents", response_model=UploadResult)
    def upload_document(
        file: UploadFile = File(...),
        file_name: Optional[str] = Form(None, alias="fileName"),
        _: Session = Depends(require_session),
        operations: DocumentOperations = Depends(get_operations),
    ):
        name = file_name if file_name is not None else (file.filename or "")
        # One byte past the limit is enough to reject an oversized upload.
        data = file.file.read(settings.MAX_UPLOAD_SIZE_BYTES + 1)
        return operations.upload_document(name, data)

    @app.get("/api/documents/{file_name:path}/content")
    def fetch_document(
        file_name: str,
        _: Session = Depends(require_session),
        operations: DocumentOperations = Depends(get_operations),
    ):
        data = operations.fetch_document(file_name)
        return Response(
            content=data,
            media_type="application/octet-stream",
            headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name.split('/')[-1])}"},
        )

    @app.delete("/api/documents/{file_name:path}", response_model=DeleteResult)
    def delete_document(
        file_name: str,
        _: Session = Depends(require_session),
        operations: DocumentOperations = Depends(get_operations),
    ):
        return operations.delete_document(file_name)

    return app
