import logging
import os

import uvicorn
from dotenv import load_dotenv

# Load .env from backend dir (where server.py runs) before settings are read.
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))
logging.basicConfig(level=logging.INFO)

from app.main import app  # noqa: E402


def main() -> None:
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))
    logging.getLogger(__name__).info("Server starting on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
