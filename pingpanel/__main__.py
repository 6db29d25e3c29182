import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "pingpanel.main:app",
        host=os.getenv("PINGPANEL_HOST", "127.0.0.1"),
        port=int(os.getenv("PINGPANEL_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
