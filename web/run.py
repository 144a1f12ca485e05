"""Entry point for the Encounter Scorer web API."""

import logging
import os

from dotenv import load_dotenv

# Load .env from the web/ directory
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env"))

from app import app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

if __name__ == "__main__":
    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", 5100))

    if os.environ.get("FLASK_DEBUG", "").lower() in ("1", "true"):
        app.run(host=host, port=port, debug=True)
    else:
        from waitress import serve
        logging.getLogger("encounter_scorer.web").info(
            "Starting Encounter Scorer API on http://%s:%d", host, port
        )
        serve(app, host=host, port=port, threads=int(os.environ.get("THREADS", 4)))
