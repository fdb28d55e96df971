#!/usr/bin/env python3
"""
Script to run the Voice Receptionist server
"""

import os

import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    """Run the server"""
    host = os.getenv("SERVER_HOST", "0.0.0.0")
    port = int(os.getenv("SERVER_PORT", "8000"))
    reload = os.getenv("DEBUG", "false").lower() == "true"

    print(f"Starting Voice Receptionist on {host}:{port}")
    print(f"Debug mode: {reload}")
    print("-" * 50)

    uvicorn.run(
        "voice_receptionist.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="debug" if reload else "info"
    )


if __name__ == "__main__":
    main()
