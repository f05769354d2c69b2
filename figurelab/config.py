"""
Runtime settings, read from the environment with local-development defaults.
"""

import os

# Backend API the CLI and MCP server talk to
API_BASE = os.environ.get("FIGURELAB_API_BASE", "http://127.0.0.1:8765/api")
HOST = os.environ.get("FIGURELAB_HOST", "127.0.0.1")
PORT = int(os.environ.get("FIGURELAB_PORT", "8765"))

# Natural-language collaborator
AI_BASE_URL = os.environ.get("FIGURELAB_AI_URL", "http://localhost:3001")

MAX_HISTORY = int(os.environ.get("FIGURELAB_MAX_HISTORY", "100"))
LOG_LEVEL = os.environ.get("FIGURELAB_LOG_LEVEL", "INFO")

# Frontend dev servers allowed through CORS
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]
