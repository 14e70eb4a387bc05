"""Run the API server: ``python -m userapi``."""

import uvicorn

from userapi.config import get_settings


def main() -> None:
    settings = get_settings()
    host, port = settings.listen_address
    uvicorn.run("userapi.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
