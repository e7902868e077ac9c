"""
Start point for running flask app
"""
import os
import sys

from dotenv import load_dotenv

load_dotenv()

from app import create_app
from app.flash_liquidator.logging_config import global_exception_handler

sys.excepthook = global_exception_handler

application = create_app(int(os.environ.get("CHAIN_ID", "1")))

if __name__ == "__main__":
    application.run(host="0.0.0.0", port=8080, debug=False)
