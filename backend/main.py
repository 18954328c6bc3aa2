from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from fastapi import Request
from mangum import Mangum
from contextlib import asynccontextmanager
from config import ENVIRONMENT, LOG_LEVEL
from utils.errors import register_exception_handlers
import logging

from routers.auth.auth import router as auth_router
from routers.users.users import router as users_router
from routers.products.products import router as products_router
from routers.reviews.reviews import router as reviews_router
from routers.orders.orders import router as orders_router
from routers.payments.payments import router as payments_router
from routers.notifications.notifications import router as notifications_router
from routers.payments.poller import payment_poller

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

IS_PRODUCTION = ENVIRONMENT == "prod"
API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # in-flight payment polls die with the process; their transactions stay pending
    await payment_poller.shutdown()


app = FastAPI(
    title="Farming Products Marketplace API",
    description="Marketplace API connecting farmers and buyers: products, orders, payments, reviews and notifications.",
    version="1.0.0",
    root_path="/Prod" if IS_PRODUCTION else "",
    docs_url="/apidocs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    servers=[
        {"url": "https://your-aws-api.execute-api.region.amazonaws.com/Prod", "description": "Production Server"},
        {"url": "http://localhost:8000", "description": "Local Development Server"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(products_router, prefix=API_PREFIX)
app.include_router(reviews_router, prefix=API_PREFIX)
app.include_router(orders_router, prefix=API_PREFIX)
app.include_router(payments_router, prefix=API_PREFIX)
app.include_router(notifications_router, prefix=API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "ok", "environment": ENVIRONMENT}


@app.get("/docs", include_in_schema=False)
async def api_documentation(request: Request):
    openapi_url = "/Prod/openapi.json" if IS_PRODUCTION else "/openapi.json"

    return HTMLResponse(
        f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1, shrink-to-fit=no">
    <title>Farming Marketplace API DOCS</title>

    <script src="https://unpkg.com/@stoplight/elements/web-components.min.js"></script>
    <link rel="stylesheet" href="https://unpkg.com/@stoplight/elements/styles.min.css">
  </head>
  <body>

    <elements-api
      apiDescriptionUrl="{openapi_url}"
      router="hash"
      theme="dark"
    />

  </body>
</html>"""
    )


@app.get("/", response_class=HTMLResponse)
def home():
    """Landing page listing the documentation endpoints"""
    return """
    <html>
      <head>
        <title>Farming Marketplace API</title>
        <style>
          body { font-family: Arial, sans-serif; margin: 40px; background-color: #f4f8f2; }
          h1 { color: #2f5d2a; }
          ul { list-style-type: none; padding: 0; }
          li { margin: 10px 0; }
          a { color: #3a7d34; text-decoration: none; }
          a:hover { text-decoration: underline; }
        </style>
      </head>
      <body>
        <h1>Farming Products Marketplace API</h1>
        <hr>
        <ul>
          <li><a href="/docs">Stoplight API Documentation</a></li>
          <li><a href="/redoc">Redoc API Documentation</a></li>
          <li><a href="/apidocs">Swagger API Documentation</a></li>
          <li><a href="/openapi.json">OpenAPI Specification</a></li>
          <li><a href="/health">Health Check</a></li>
        </ul>
      </body>
    </html>
    """


handler = Mangum(app)
