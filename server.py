"""Web server entry point for the commerce services"""

import os

import uvicorn

# Load environment variables from .env file BEFORE importing anything else
from dotenv import load_dotenv
load_dotenv()

from commerce.core.config import ConfigManager
from commerce_web.app import create_app


def main() -> None:
    settings = ConfigManager().load_settings()
    app = create_app(settings)
    host = os.getenv("HOST", settings.server.host)
    port = int(os.getenv("PORT", settings.server.port))
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
