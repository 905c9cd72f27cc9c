"""
Firebase Firestore initialization.
Single-source-of-truth Firestore client for Temple Community Hub.
"""

import json
import logging
import os
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app

from temple_hub.core.settings import settings

logger = logging.getLogger(__name__)

db: Optional[Any] = None

REQUIRED_CREDENTIAL_FIELDS = ("type", "project_id", "private_key", "client_email")


def _validate_credentials_file(cred_path: str) -> None:
    if not os.path.exists(cred_path):
        raise FileNotFoundError(
            f"Firebase credentials file not found: {cred_path}\n"
            f"Check FIREBASE_CREDENTIALS_PATH in your .env file."
        )

    try:
        with open(cred_path, "r", encoding="utf-8") as f:
            cred_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Firebase credentials file is not valid JSON: {e}")

    missing_fields = [field for field in REQUIRED_CREDENTIAL_FIELDS if field not in cred_data]
    if missing_fields:
        raise ValueError(f"Firebase credentials file is missing required fields: {missing_fields}")

    logger.info("[FIRESTORE] Credentials file validated for project %s", cred_data.get("project_id"))


def initialize_firestore():
    global db

    if db is not None:
        return db

    if settings.USE_MOCK_DB:
        from temple_hub.config.mock_firestore import get_mock_db
        db = get_mock_db(settings.MOCK_DB_PATH)
        logger.info("[FIRESTORE] USING MOCK DATABASE (%s)", settings.MOCK_DB_PATH or "in-memory")
        return db

    try:
        if not firebase_admin._apps:
            if settings.FIREBASE_CREDENTIALS_PATH:
                _validate_credentials_file(settings.FIREBASE_CREDENTIALS_PATH)
                cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
                options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
                initialize_app(cred, options)
                logger.info("[FIRESTORE] Firebase Admin SDK initialized with service account")
            else:
                logger.info("[FIRESTORE] No credentials path set, using Application Default Credentials")
                initialize_app()

        db = firestore.client()
        logger.info("[FIRESTORE] USING REAL FIRESTORE DATABASE (project: %s)",
                    settings.FIREBASE_PROJECT_ID or "default")
        return db

    except (FileNotFoundError, ValueError) as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - invalid credentials.\n{e}\n"
            f"Download a fresh service account key from Firebase Console "
            f"(Project Settings > Service Accounts) and update FIREBASE_CREDENTIALS_PATH."
        ) from e
    except Exception as e:
        raise RuntimeError(
            f"Firestore initialization FAILED. Error: {e}\n"
            f"Please check your Firebase credentials and configuration."
        ) from e


def get_db():
    """
    Get the initialized Firestore client.

    Raises RuntimeError if Firestore has not been initialized and cannot be.
    """
    if db is None:
        initialize_firestore()
    return db


def reset_db() -> None:
    """Forget the current client so the next get_db() re-initializes it."""
    global db
    db = None
