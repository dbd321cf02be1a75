"""
Towel Tracker — Entry Point.

`python main.py` starts the Telegram bot in polling mode.
`python main.py web` serves the web panel and the Telegram webhook.
"""

import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def run_web() -> None:
    import os

    import uvicorn

    from towel_tracker.web.app import create_app

    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "web":
        run_web()
    else:
        from towel_tracker.bot.telegram_bot import main

        main()
