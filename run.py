#!/usr/bin/env python3
"""
FX Ledger Entry Point

Starts the FastAPI server with the transfer engine.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from fx_ledger.api import run_server
from fx_ledger.config import get_config
from fx_ledger.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    setup_logging(config.log_level, config.log_format)

    print("Starting FX Ledger...")
    print(f"Storage: {config.database_url}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down FX Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
