#!/usr/bin/env python3
"""
Issue an operator bearer token for the admin payment endpoints.
Usage:
    python scripts/issue_admin_token.py ops@example.org
    python scripts/issue_admin_token.py ops@example.org superadmin 60
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from fundraiser.core.security import ADMIN_ROLES, create_admin_access_token


def main():
    if len(sys.argv) < 2:
        print("Usage: issue_admin_token.py <subject> [role] [expires_minutes]")
        sys.exit(1)

    subject = sys.argv[1]
    role = sys.argv[2] if len(sys.argv) >= 3 else "admin"
    if role not in ADMIN_ROLES:
        print(f"Error: role must be one of {sorted(ADMIN_ROLES)}")
        sys.exit(1)
    expires = int(sys.argv[3]) if len(sys.argv) >= 4 else None

    print(create_admin_access_token(subject, role=role, expires_minutes=expires))


if __name__ == "__main__":
    main()
