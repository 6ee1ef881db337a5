# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.metrics import export_metrics
from app.api.error_handlers import register_exception_handlers
from app.api.routers import (
    admin,
    auth,
    cart,
    checkout,
    orders,
    products,
    users,
)
from app.initial_data import init_data
from app.middleware import ObservabilityMiddleware

# --- Models registration (necesario para que Alembic los detecte) ---
import app.models.user           # noqa: F401
import app.models.product        # noqa: F401
import app.models.coupon         # noqa: F401
import app.models.cart           # noqa: F401
import app.models.order          # noqa: F401

setup_logging()

# --- Metadatos de la API para la documentación ---
TAGS_METADATA = [
    {"name": "auth", "description": "Registro, login y refresh de tokens."},
    {"name": "users", "description": "Perfil del usuario y direcciones de entrega."},
    {"name": "products", "description": "Consulta pública del catálogo."},
    {"name": "admin", "description": "Gestión de catálogo y cupones (administración)."},
    {"name": "cart", "description": "Carritos de compra para usuarios e invitados, con cupones."},
    {"name": "checkout", "description": "Checkout con pago PIX simulado."},
    {"name": "orders", "description": "Pedidos del cliente."},
    {"name": "metrics", "description": "Métricas Prometheus."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    await init_data()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "API de tienda online.\n\n"
        "- **Cart**: carrito persistente para invitados (header `X-Guest-Cart-Id`) y usuarios, "
        "con promociones por ítem y cupones revalidados en cada cambio.\n"
        "- **Checkout**: convierte el carrito en un pedido y genera un código PIX copia y pega.\n"
        "- **Admin**: catálogo y cupones.\n\n"
        "Usa el botón **Authorize** para probar los endpoints protegidos."
    ),
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "tryItOutEnabled": True,
    },
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Ajustar en producción para mayor seguridad
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.CART_GUEST_HEADER, "X-Request-ID"],
)

register_exception_handlers(app)

# --- Routers ---
app.include_router(auth.router, prefix=settings.API_V1_STR)
app.include_router(users.router, prefix=settings.API_V1_STR)
app.include_router(products.router, prefix=settings.API_V1_STR)
app.include_router(admin.router, prefix=settings.API_V1_STR)
app.include_router(cart.router, prefix=settings.API_V1_STR)
app.include_router(checkout.router, prefix=settings.API_V1_STR)
app.include_router(orders.router, prefix=settings.API_V1_STR)


@app.get(f"{settings.API_V1_STR}/metrics", tags=["metrics"], include_in_schema=settings.METRICS_ENABLED)
def metrics() -> Response:
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


# --- Configuración personalizada de OpenAPI ---
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=TAGS_METADATA,
    )

    comps = openapi_schema.setdefault("components", {}).setdefault("securitySchemes", {})
    comps["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "Pega tu access token aquí. Formato: `Bearer <token>`",
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


# --- Endpoint raíz ---
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
