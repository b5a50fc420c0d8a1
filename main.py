#!/usr/bin/env python3
"""
glogin - "Login with Google" over OAuth2 with an encrypted cookie session.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Google login server (OAuth2 authorization-code flow + encrypted cookie session)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print a fresh value for SESSION_ENCRYPTION_KEY
  python main.py --generate-key

  # Serve on http://localhost:3000 (callback: /login/google/callback)
  GOOGLE_CLIENT_ID=... GOOGLE_CLIENT_SECRET=... SESSION_ENCRYPTION_KEY=... python main.py --serve
        """,
    )

    parser.add_argument("--serve", action="store_true", help="Run the login HTTP server")
    parser.add_argument(
        "--generate-key", action="store_true", help="Print a random value suitable for SESSION_ENCRYPTION_KEY"
    )
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=3000, help="Server listen port (default: 3000)")

    args = parser.parse_args()

    try:
        if args.generate_key:
            from glogin.auth.util import random_token

            print(random_token(32))
            return

        if args.serve:
            from glogin.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return

        # No arguments provided
        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
