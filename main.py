# =============================================================================
# 🚀 Property Item QR – application (main.py)
# =============================================================================

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

# -------------------------------------------------------------------------
# 1️⃣ load .env (before anything reads the environment)
# -------------------------------------------------------------------------
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("qr_items")

from database import Base, engine  # noqa: E402
import models  # noqa: E402,F401
from routes import qr_codes  # noqa: E402

# -------------------------------------------------------------------------
# 2️⃣ FastAPI app
# -------------------------------------------------------------------------
app = FastAPI(title="Property Item QR", version="1.0")

if os.getenv("RECORD_STORE_BACKEND", "sql").lower() == "sql":
    Base.metadata.create_all(bind=engine)
    logger.info("🗄️ Tables ready")

# -------------------------------------------------------------------------
# 3️⃣ Routes
# -------------------------------------------------------------------------
app.include_router(qr_codes.router)
