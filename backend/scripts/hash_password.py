"""
Script to produce the bcrypt hash for ADMIN_PASSWORD_HASH in config_local.py.
"""
import getpass
import sys
from pathlib import Path

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from app.core.auth import hash_password


if __name__ == "__main__":
    password = getpass.getpass("Operator password: ")
    if not password:
        print("❌ Empty password")
        sys.exit(1)
    print(hash_password(password))
