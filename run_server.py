#!/usr/bin/env python3
"""Shop Back Office API server.

Launch: python3 run_server.py
Serves at http://0.0.0.0:8000 (or PORT env var)
"""

import os

import uvicorn

from back_office.config import HOST, PORT


def main():
    print("=" * 60)
    print("  Shop Back Office")
    print("=" * 60)

    if not os.environ.get("SUPABASE_URL", ""):
        print("\n  WARNING: SUPABASE_URL not set. Set environment variables:")
        print("    SUPABASE_URL, SUPABASE_SERVICE_KEY")
        print("  Continuing anyway for local development...\n")

    url = f"http://{HOST}:{PORT}"
    print(f"\n  API:  {url}")
    print(f"  Docs: {url}/api/docs")
    print("  Press Ctrl+C to stop\n")

    from back_office.app import create_app
    app = create_app()
    uvicorn.run(app, host=HOST, port=PORT, log_level="info")


if __name__ == "__main__":
    main()
