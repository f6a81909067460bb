import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

import accounts
from database import UserStore, make_engine
from errors import InternalError, ServiceError, ValidationError
from schemas import AnalysisResponse, ErrorResponse, LoginRequest, LoginResponse, MessageResponse, SignupRequest
from settings import Settings, get_settings
from vision import GeminiVisionClient, UploadedImage, analyze_food

logger = logging.getLogger(__name__)

HEALTH_MESSAGE = "Calorie Vision API is running!"

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owned_store = None

    if app.state.vision_client is None:
        settings.require_keys()
        app.state.vision_client = GeminiVisionClient.from_settings(settings)
        logger.info(f"Gemini client ready (model={settings.GEMINI_MODEL}, mode={settings.response_mode.value})")

    if app.state.user_store is None:
        owned_store = UserStore(make_engine(settings.DATABASE_URL))
        if settings.CREATE_TABLES:
            owned_store.create_schema()
        app.state.user_store = owned_store
        logger.info(f"User store ready ({owned_store.engine.dialect.name})")

    yield

    if owned_store is not None:
        owned_store.dispose()


def get_vision_client(request: Request) -> GeminiVisionClient:
    return request.app.state.vision_client


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def _describe_validation(exc: RequestValidationError) -> str:
    fields = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        fields.append(f"{'.'.join(loc) or 'body'}: {err.get('msg')}")
    return "; ".join(fields)


def create_app(settings: Optional[Settings] = None,
               vision_client: Optional[GeminiVisionClient] = None,
               user_store: Optional[UserStore] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Calorie Vision API", lifespan=lifespan)
    app.state.settings = settings
    app.state.vision_client = vision_client
    app.state.user_store = user_store

    # Registered before CORS so it sits inside it and 500s still carry CORS headers
    @app.middleware("http")
    async def internal_error_envelope(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            return InternalError(details=type(exc).__name__).to_response()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return ValidationError("Invalid request body.", details=_describe_validation(exc)).to_response()

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return HEALTH_MESSAGE

    @app.post("/analyze-food", response_model=AnalysisResponse, responses=ERROR_RESPONSES,
              summary="Analyze a food image and estimate calories")
    async def analyze_food_image(foodImage: Optional[UploadFile] = File(None),
                                 client: GeminiVisionClient = Depends(get_vision_client)):
        if foodImage is None:
            raise ValidationError("No image file uploaded.")
        image_bytes = await foodImage.read()
        if not image_bytes:
            raise ValidationError("No image file uploaded.")
        mime_type = foodImage.content_type or ""
        if not mime_type.startswith("image/"):
            raise ValidationError("Uploaded file is not an image.", details=f"Unsupported content type: {mime_type or 'unknown'}")

        result = await analyze_food(client, UploadedImage(data=image_bytes, mime_type=mime_type))
        return AnalysisResponse(data=result)

    @app.post("/register", response_model=MessageResponse, responses=ERROR_RESPONSES)
    def register(payload: SignupRequest, store: UserStore = Depends(get_user_store)):
        accounts.register(store, payload)
        return MessageResponse(message="User registered successfully.")

    @app.post("/login", response_model=LoginResponse, responses=ERROR_RESPONSES)
    def login(payload: LoginRequest, store: UserStore = Depends(get_user_store)):
        user = accounts.login(store, payload)
        return LoginResponse(message="Login successful.", user=user)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().PORT)
