"""
Create an account (e.g. the first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role] [--name NAME]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password admin --name "Ops"
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.models import Role
from app.services.auth import register_user
from app.services.auth_errors import EmailAlreadyRegisteredError, StoreUnavailableError
from app.services.user_store import UserStore


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a marketplace account (admins included).")
    parser.add_argument("email", help=f"Email (1-{EMAIL_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument(
        "role",
        nargs="?",
        default=Role.OWNER.value,
        choices=[r.value for r in Role],
    )
    parser.add_argument("--name", default=None, help="Display name (defaults to the email's local part)")
    args = parser.parse_args(argv)

    email = args.email.strip()
    if not email or len(email) > EMAIL_MAX_LEN or "@" not in email:
        print("Invalid email.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1
    display_name = (args.name or email.split("@", 1)[0]).strip()

    db = SessionLocal()
    try:
        user = register_user(
            UserStore(db),
            email=email,
            password=args.password,
            display_name=display_name,
            role=Role(args.role),
        )
        print(f"Created user '{user.email}' with role '{args.role}'.")
        return 0
    except EmailAlreadyRegisteredError:
        print(f"User '{email}' already exists.", file=sys.stderr)
        return 1
    except StoreUnavailableError as e:
        print(f"Database unavailable: {e.message}", file=sys.stderr)
        return 2
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
