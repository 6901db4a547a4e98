"""Print a bearer token for an existing user to stdout.

Usage:
    python -m clinic_backend.print_access_token someone@clinic.example
"""
import sys

from clinic_backend.auth.jwt_handler import create_access_token
from clinic_backend.database import SessionLocal
from clinic_backend.models.user import User


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m clinic_backend.print_access_token <email>", file=sys.stderr)
        return 2

    email = args[0].strip().lower()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    finally:
        db.close()

    if user is None:
        print(f"No user with email {email}", file=sys.stderr)
        return 1

    print(create_access_token(subject=user.email, role=user.role))
    return 0


if __name__ == "__main__":
    sys.exit(main())
