# app/main.py
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from app.api.error_handlers import register_exception_handlers
from app.api.routers import badges, loyalty, wheels
from app.core.config import settings
from app.core.logging import setup_logging
from app.core.metrics import export_metrics
from app.middleware import ObservabilityMiddleware

# --- Models registration (necesario para que Alembic los detecte) ---
import app.models.badge          # noqa: F401
import app.models.loyalty        # noqa: F401
import app.models.reward_wheel   # noqa: F401

# --- Celery tasks (registra events.loyalty y loyalty.expire_points) ---
import app.tasks                 # noqa: F401

setup_logging()

# --- Metadatos de la API para la documentación ---
TAGS_METADATA = [
    {"name": "loyalty", "description": "Puntos, niveles, eventos de compra/interaccion y leaderboard."},
    {"name": "badges", "description": "Catalogo de insignias y asignacion a miembros."},
    {"name": "wheels", "description": "Ruletas de premios, tiradas e historial."},
]

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "Motor de fidelizacion para e-commerce.\n\n"
        "- **Loyalty**: Puntos con multiplicador, niveles bronze→diamond y tokens de tirada.\n"
        "- **Badges**: Insignias con disparadores por umbral, nivel o condiciones personalizadas.\n"
        "- **Wheels**: Ruletas ponderadas con reglas de elegibilidad por nivel, puntos y topes."
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Ajustar en producción para mayor seguridad
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(loyalty.router, prefix=settings.API_V1_STR)
app.include_router(badges.router, prefix=settings.API_V1_STR)
app.include_router(wheels.router, prefix=settings.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics():
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


# --- Endpoint raíz ---
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
