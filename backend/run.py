"""
Backend Startup Script
Sets the Windows Proactor event loop policy (needed by Playwright subprocesses) BEFORE uvicorn starts
"""
import asyncio
import os
import sys

# Set Windows event loop policy BEFORE any other imports
if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

import uvicorn


def main():
    uvicorn.run(
        "backend.main:app",
        host=os.getenv("MIGRATOR_API_HOST", "0.0.0.0"),
        port=int(os.getenv("MIGRATOR_API_PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
