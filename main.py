"""Entry point for the local HTTP print API."""
import logging

from config.settings import SERVICE
from server.app import create_app

logging.basicConfig(
    level=SERVICE.get("log_level", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()

if __name__ == "__main__":
    app.run(host=SERVICE.get("host", "127.0.0.1"), port=SERVICE.get("port", 9100), debug=SERVICE.get("debug", False))
