import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import backoffice.models  # ensure models are registered
from backoffice.core.config import CORS_ORIGINS
from backoffice.utils.database import engine, Base
from backoffice.initial_data import init_seed

from backoffice.routers import (
    auth_router,
    branches_router,
    users_router,
    customers_router,
    loan_products_router,
    loan_applications_router,
    payments_router,
    transactions_router,
    dashboard_router,
    reports_router,
    settings_router,
    realtime_router,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Microfinance Back Office API", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Location"],
)

# Routers
app.include_router(auth_router.router)
app.include_router(branches_router.router)
app.include_router(users_router.router)
app.include_router(customers_router.router)
app.include_router(loan_products_router.router)
app.include_router(loan_applications_router.router)
app.include_router(payments_router.router)
app.include_router(transactions_router.router)
app.include_router(reports_router.router)
app.include_router(settings_router.router)
app.include_router(realtime_router.router)
app.include_router(dashboard_router.router)


@app.on_event("startup")
def on_startup():
    # DEV ONLY: schema migrations are not managed here
    Base.metadata.create_all(bind=engine)

    logger.info("Running initial database seeding")
    init_seed()
    logger.info("Seeding complete")


@app.get("/health")
def health():
    return {"message": "Microfinance back office is running"}
