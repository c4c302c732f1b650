"""Inherit companion server entry point."""

import os

import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

if __name__ == "__main__":
    # Use 0.0.0.0 only if the API must be reachable from other devices on the network
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", 8000))
    debug = os.getenv("DEBUG", "false").lower() == "true"

    print(f"Starting Inherit companion API on {host}:{port}")
    # Import string keeps reload and workers usable
    uvicorn.run("companion.main:app", host=host, port=port, reload=debug)
