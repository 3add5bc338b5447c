#!/usr/bin/env python3
"""
Repayment Service Entry Point

Starts the FastAPI server with the repayment reconciliation API.
"""

import sys

import uvicorn

from repayment_engine.config import get_config


def run_server(host: str, port: int, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "repayment_engine.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )


if __name__ == "__main__":
    config = get_config()
    print("Starting Repayment Reconciliation Service...")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down Repayment Reconciliation Service...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
