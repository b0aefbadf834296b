"""
Firebase Admin initialization.

Builds the firebase_admin App and the Firestore client for either the managed
project (service account credentials) or the local emulators (no credentials).
"""

import os

import firebase_admin
from firebase_admin import credentials, firestore
from google.auth.credentials import AnonymousCredentials
from google.cloud import firestore as gcloud_firestore

from casedesk.utils.logging_config import get_logger

FIREBASE_APP_NAME = "casedesk"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def _apply_emulator_environment(config_class) -> None:
    # Must be set before any Firebase service client is created
    for key, value in config_class.get_emulator_config().items():
        os.environ.setdefault(key, value)


def get_firebase_app(config_class) -> firebase_admin.App:
    """Return the process Firebase app, initializing it on first use."""
    logger = get_logger("firebase")

    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        pass

    firebase_config = config_class.get_firebase_config()

    if config_class.USE_EMULATOR:
        _apply_emulator_environment(config_class)
        app = firebase_admin.initialize_app(
            options={"projectId": firebase_config["project_id"]}, name=FIREBASE_APP_NAME
        )
        logger.info(
            "Firebase initialized against emulators",
            extra={"event": "firebase_init", "emulator": True, "project_id": firebase_config["project_id"]},
        )
        return app

    cert = credentials.Certificate(
        {
            "type": "service_account",
            "project_id": firebase_config["project_id"],
            "client_email": firebase_config["client_email"],
            "private_key": firebase_config["private_key"],
            "token_uri": TOKEN_URI,
        }
    )
    app = firebase_admin.initialize_app(
        cert, options={"projectId": firebase_config["project_id"]}, name=FIREBASE_APP_NAME
    )
    logger.info(
        "Firebase initialized with service account",
        extra={"event": "firebase_init", "emulator": False, "project_id": firebase_config["project_id"]},
    )
    return app


def create_firestore_client(config_class):
    """Firestore client for the configured project."""
    if config_class.USE_EMULATOR:
        _apply_emulator_environment(config_class)
        return gcloud_firestore.Client(
            project=config_class.get_firebase_config()["project_id"], credentials=AnonymousCredentials()
        )
    return firestore.client(app=get_firebase_app(config_class))
