# backend/supplier_portal/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///supplier_portal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", "120"))

    # Sienge (ERP) creditor API. Credentials are secrets and have no default.
    SIENGE_BASE_URL = os.environ.get(
        "SIENGE_BASE_URL",
        "https://api.sienge.com.br/ambientallimpeza/public/api/v1",
    )
    SIENGE_USERNAME = os.environ.get("SIENGE_USERNAME")
    SIENGE_PASSWORD = os.environ.get("SIENGE_PASSWORD")
    SIENGE_TIMEOUT_SECONDS = float(os.environ.get("SIENGE_TIMEOUT_SECONDS", "30"))
    SIENGE_DEFAULT_CITY_ID = int(os.environ.get("SIENGE_DEFAULT_CITY_ID", "1"))
    SIENGE_DEFAULT_AGENT_ID = int(os.environ.get("SIENGE_DEFAULT_AGENT_ID", "48"))
    # Must stay above the HTTP timeout so a live call is never reclaimed
    SIENGE_CLAIM_TTL_SECONDS = int(os.environ.get("SIENGE_CLAIM_TTL_SECONDS", "120"))

    # Supplier document storage (local blob store)
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.abspath("uploads"))
    UPLOAD_BASE_URL = os.environ.get("UPLOAD_BASE_URL", "/api/suppliers/documents")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(20 * 1024 * 1024)))

    # Static city reference dataset used to resolve ERP city ids
    CITIES_DATASET_PATH = os.environ.get("CITIES_DATASET_PATH")

    REGISTRATION_TOKEN_TTL_HOURS = int(os.environ.get("REGISTRATION_TOKEN_TTL_HOURS", "24"))

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
