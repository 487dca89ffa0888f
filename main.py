"""Launch the hutflight FastAPI server."""

import uvicorn

from hutflight.config import settings


def main():
    uvicorn.run("hutflight.server:app", host=settings.SERVER_HOST, port=settings.SERVER_PORT, reload=True)


if __name__ == "__main__":
    main()
