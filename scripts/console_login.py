#!/usr/bin/env python3
"""
Sign the local console in and print the effective context.

Reads POS_CONSOLE_USERNAME and POS_CONSOLE_PASSWORD from the .env file.
Run from project root: python scripts/console_login.py
"""

import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

# Load .env file
from dotenv import load_dotenv
load_dotenv(os.path.join(project_root, ".env"))

from pos_console.config import Settings
from pos_console.session import ConsoleSession, LoginFailedError


def main():
    username = os.getenv("POS_CONSOLE_USERNAME")
    password = os.getenv("POS_CONSOLE_PASSWORD")

    if not username or not password:
        print("Error: POS_CONSOLE_USERNAME and POS_CONSOLE_PASSWORD must be set in .env")
        sys.exit(1)

    console = ConsoleSession.from_settings(Settings())
    try:
        console.login(username, password)
    except LoginFailedError as exc:
        print(f"Login failed: {exc.message}")
        sys.exit(1)
    finally:
        console.close()

    ctx = console.context
    print("Signed in:")
    print(f"  User: {ctx.username} ({ctx.kind.value})")
    print(f"  Effective partner: {ctx.effective_partner_id}")
    print(f"  Effective store: {ctx.effective_store_id}")
    print(f"  Store filter: {console.stores.selected_store_id}")


if __name__ == "__main__":
    main()
