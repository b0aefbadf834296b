"""
Entry point for the Casedesk service.

This script creates and runs the Flask application using the application factory pattern.
"""

import os

from casedesk import create_app
from casedesk.config.settings import config

# Get configuration from environment or default to development
config_name = os.getenv("FLASK_ENV", "development")
app = create_app(config[config_name])

if __name__ == "__main__":
    print("Starting Casedesk client intake service")
    print(f"Environment: {config_name}")
    backend = app.config["STORE_BACKEND"]
    emulator = " (emulator)" if app.config["USE_EMULATOR"] else ""
    print(f"Store: {backend}{emulator}")
    app_host = app.config["APP_HOST"]
    app_port = app.config["APP_PORT"]
    print(f"Server: http://{app_host}:{app_port}")  # noqa: E231

    app.run(debug=app.config["DEBUG"], host=app.config["APP_HOST"], port=app.config["APP_PORT"])
