"""
Entry point for running the SDK CLI as a module.

Usage:
    python -m relaying_services
"""

from relaying_services.cli import main

if __name__ == "__main__":
    main()
