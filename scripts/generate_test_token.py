#!/usr/bin/env python3
"""Generate test JWT tokens for local development.

Usage:
    python scripts/generate_test_token.py --secret "your-secret" --user <user-id>
    python scripts/generate_test_token.py --secret "your-secret" --user <user-id> --expires 3600

The token authenticates both HTTP calls and the /ws socket:
    curl -H "Authorization: Bearer <token>" http://localhost:8060/catalogs
    wscat -c "ws://localhost:8060/ws?token=<token>"
"""

from __future__ import annotations

import argparse
from datetime import datetime, timezone

from jose import jwt

from catalog_svc.auth.tokens import issue_test_token


def main():
    parser = argparse.ArgumentParser(
        description="Generate test JWT tokens for local development",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Server config (config.yaml):
  auth:
    enabled: true
    jwt:
      enabled: true
      issuer: "test"
      test_secret: "my-test-secret-at-least-32-chars"
        """,
    )

    parser.add_argument(
        "--secret",
        required=True,
        help="Shared secret for signing (must match server's test_secret)",
    )
    parser.add_argument(
        "--user",
        required=True,
        help="User id to embed in token (sub claim, 32 hex chars)",
    )
    parser.add_argument(
        "--expires",
        type=int,
        default=3600,
        help="Token lifetime in seconds (default: 3600 = 1 hour)",
    )
    parser.add_argument(
        "--audience",
        help="Audience claim (optional, must match server's audience if set)",
    )

    args = parser.parse_args()

    if len(args.secret) < 32:
        print("Warning: Secret should be at least 32 characters for security")

    token = issue_test_token(
        secret=args.secret,
        user_id=args.user,
        expires_in=args.expires,
        audience=args.audience,
    )

    print(f"\n# Token for user '{args.user}' (expires in {args.expires}s):")
    print(f"export CATALOG_JWT={token}\n")

    # Also decode and show claims for verification
    claims = jwt.decode(token, args.secret, algorithms=["HS256"], options={"verify_aud": False})
    print("# Token claims:")
    for key, value in claims.items():
        if key in ("iat", "exp"):
            value = datetime.fromtimestamp(value, timezone.utc).isoformat()
        print(f"#   {key}: {value}")


if __name__ == "__main__":
    main()
