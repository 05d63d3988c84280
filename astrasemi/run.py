#!/usr/bin/env python3
"""
Quick runner for AstraSemi Assistant
====================================

Usage:
    python -m astrasemi.run
    # or
    python astrasemi/run.py
"""

import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    print("Starting AstraSemi Assistant...")
    print(f"API docs: http://localhost:{port}/docs")
    print(f"Health:   http://localhost:{port}/health")
    print()

    uvicorn.run(
        "astrasemi.api:app",
        host="0.0.0.0",
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
