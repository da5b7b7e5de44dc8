"""
Command line entry points.

    python cli.py serve
    python cli.py bootstrap-admin --email admin@example.org --password ...
    python cli.py reconcile
"""
import argparse
import json
import logging
import sys

import config
import database


def _require_db():
    if database.db is None:
        sys.exit("DATABASE_URL is not set")
    return database.db


def cmd_serve(args) -> int:
    import uvicorn
    uvicorn.run("main:app", host=args.host, port=args.port)
    return 0


def cmd_bootstrap_admin(args) -> int:
    from accounts import bootstrap_admin
    from identity import get_identity

    email = args.email or config.BOOTSTRAP_ADMIN_EMAIL
    password = args.password or config.BOOTSTRAP_ADMIN_PASSWORD
    if not email or not password:
        sys.exit("admin email and password are required (flags or BOOTSTRAP_ADMIN_* env)")
    user = bootstrap_admin(get_identity(_require_db()), email, password)
    print(json.dumps(user.model_dump()))
    return 0


def cmd_reconcile(args) -> int:
    from reconcile import reconcile

    print(json.dumps(reconcile(_require_db())))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Family Guidance API tools")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the API server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=config.PORT)
    serve.set_defaults(func=cmd_serve)

    admin = sub.add_parser("bootstrap-admin", help="create or promote the first administrator")
    admin.add_argument("--email")
    admin.add_argument("--password")
    admin.set_defaults(func=cmd_bootstrap_admin)

    rec = sub.add_parser("reconcile", help="repair one-sided assignment and child references")
    rec.set_defaults(func=cmd_reconcile)
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
