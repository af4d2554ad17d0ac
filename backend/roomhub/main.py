from fastapi import FastAPI
from .routers.api import api_router
from .routers.errors import install_error_handlers
from .db.session import Base, engine
from .core.config import settings
from .core.logging import setup_logging
from fastapi.middleware.cors import CORSMiddleware

setup_logging()

app = FastAPI(title=f"{settings.app_name} API", debug=settings.app_debug)
install_error_handlers(app)

@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return {"status": "ok"}

app.include_router(api_router)
