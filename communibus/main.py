import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from communibus.src import schemas
from communibus.src.constants import API_TITLE, API_VERSION
from communibus.api.controller import app_customer, app_operator

logging.basicConfig(level=logging.INFO)

app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/customer", app_customer, "Customer API")
app.mount("/operator", app_operator, "Operator API")


# Health check endpoint
@app.get("/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    return {"status": "OK", "version": API_VERSION}
