"""Server startup - imports the app and runs it under uvicorn."""
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from api.server import app  # noqa: E402

import uvicorn  # noqa: E402

port = int(os.environ.get("PORT", "3000"))
print(f"[start.py] Starting on port {port}", flush=True)
uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
