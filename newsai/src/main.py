"""
NewsAI - Application Entry Point
=================================
Exposes the ASGI ``app`` and runs it under uvicorn.

Usage:
    python -m newsai.src.main
    uvicorn newsai.src.main:app --reload --port 8000
"""

import uvicorn

from newsai.src.api.app import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run("newsai.src.main:app", host="0.0.0.0", port=8000)
