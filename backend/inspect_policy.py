#!/usr/bin/env python3
"""
Script to issue or inspect upload policies with the configured secret.

Usage:
    # Decode and verify a policy returned by /api/files/upload_policy:
    POLICY_SECRET=xxx python inspect_policy.py decode <policy>

    # Ignore expiration (inspect an old policy):
    POLICY_SECRET=xxx python inspect_policy.py decode <policy> --no-expiry

    # Issue a policy without going through the API:
    POLICY_SECRET=xxx python inspect_policy.py issue a/b.png https://cb.example/done "id=42"

The secret itself is never printed.
"""
import argparse
import json
import sys

from filegate.config import settings
from filegate.storage.errors import BackendConfigurationError, InvalidArgumentError
from filegate.storage.factory import create_policy_issuer


def build_parser():
    parser = argparse.ArgumentParser(description='Issue or inspect upload policies')
    subparsers = parser.add_subparsers(dest='command', required=True)

    decode = subparsers.add_parser('decode', help='Verify and print a policy document')
    decode.add_argument('policy', help='Policy string')
    decode.add_argument(
        '--no-expiry',
        action='store_true',
        help='Do not reject expired policies'
    )

    issue = subparsers.add_parser('issue', help='Issue a new policy')
    issue.add_argument('remote_path', help='Key the client may upload to')
    issue.add_argument('callback_url', help='Absolute callback URL')
    issue.add_argument('callback_body', help='Opaque callback body')

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        issuer = create_policy_issuer(
            settings,
            fallback_secret=settings.s3_secret_key if settings.storage_backend == 's3' else None
        )
    except BackendConfigurationError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1

    try:
        if args.command == 'decode':
            document = issuer.decode(args.policy, verify_expiration=not args.no_expiry)
            print(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(issuer.issue(args.remote_path, args.callback_url, args.callback_body))
    except InvalidArgumentError as e:
        print(f"ERROR ({e.code}): {e.message}", file=sys.stderr)
        return 2

    return 0


if __name__ == '__main__':
    sys.exit(main())
