"""Simple entrypoint to run the Wardrobe service locally."""

import os

import uvicorn

from wardrobe_app.logging_config import configure_logging


def main() -> None:
    configure_logging()
    uvicorn.run("server.api:app", host="0.0.0.0", port=int(os.getenv("PORT", "8080")), reload=False)


if __name__ == "__main__":
    main()
