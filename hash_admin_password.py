"""
Print a bcrypt hash for the ADMIN_PASSWORD_HASH setting.

Usage:
    python hash_admin_password.py            # prompts for the password
    python hash_admin_password.py <password>
"""

import getpass
import sys
from typing import List, Optional

from app.core.security import hash_password


def main(argv: Optional[List[str]] = None) -> str:
    args = sys.argv[1:] if argv is None else argv
    password = args[0] if args else getpass.getpass("Admin password: ")
    if not password:
        raise SystemExit("Password must not be empty")

    hashed = hash_password(password)
    print(f"ADMIN_PASSWORD_HASH={hashed}")
    return hashed


if __name__ == "__main__":
    main()
