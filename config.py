"""
Runtime configuration for the Family Guidance API.

Every setting comes from the environment; the defaults are suitable for a
local development run against a MongoDB on localhost.
"""
import os

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "family_guidance")

# "local" keeps accounts in MongoDB, "firebase" delegates to Firebase Auth
IDENTITY_BACKEND = os.getenv("IDENTITY_BACKEND", "local")
FIREBASE_CREDENTIALS = os.getenv("FIREBASE_CREDENTIALS")
FIREBASE_STORAGE_BUCKET = os.getenv("FIREBASE_STORAGE_BUCKET")

MEDIA_BACKEND = os.getenv("MEDIA_BACKEND", "local")
MEDIA_DIR = os.getenv("MEDIA_DIR", os.path.join(os.getcwd(), "media"))

SESSION_DAYS = int(os.getenv("SESSION_DAYS", "7"))
REPORT_BACKDATE_DAYS = int(os.getenv("REPORT_BACKDATE_DAYS", "10"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL")
BOOTSTRAP_ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD")

PORT = int(os.getenv("PORT", 8000))
