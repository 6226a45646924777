"""Command-line helper for Keycloak tokens and directory administration.

This module serves as a CLI wrapper around idbridge.core services.
"""
from __future__ import annotations
import argparse
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from idbridge.config import BridgeSettings, load_settings
from idbridge.core.bridge import IdentityBridge
from idbridge.core.keycloak import KeycloakError


# Commands that never act as the administrative identity
USER_ONLY_COMMANDS = {"token"}


def build_bridge(settings: BridgeSettings, load_admin_password: bool = True) -> IdentityBridge:
    """Assemble the bridge against the live cluster and IdP."""
    return IdentityBridge.from_settings(settings, load_admin_password=load_admin_password)


def _settings_from_args(args: argparse.Namespace) -> BridgeSettings:
    settings = load_settings()
    overrides = {}
    if args.ui_url:
        overrides["ui_url_override"] = args.ui_url
    if args.namespace:
        overrides["backup_namespace"] = args.namespace
    if args.secret_name:
        overrides["oidc_secret_name"] = args.secret_name
    return dataclasses.replace(settings, **overrides) if overrides else settings


def _print_json(rows) -> None:
    print(json.dumps([dataclasses.asdict(row) for row in rows], indent=2))


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Keycloak identity bridge helper")
    parser.add_argument("--ui-url", default=None, help="Keycloak UI base URL (skips OIDC secret discovery)")
    parser.add_argument("--namespace", default=None, help="Namespace of the backup control plane")
    parser.add_argument("--secret-name", default=None, help="Secret holding OIDC connection details")
    parser.add_argument("--log-level", default=os.environ.get("IDBRIDGE_LOG_LEVEL", "WARNING"))

    sub = parser.add_subparsers(dest="cmd")

    st = sub.add_parser("token")
    st.add_argument("--username", required=True)
    st.add_argument("--password", required=True)

    sub.add_parser("admin-token")
    sub.add_parser("refresh-admin-token")
    sub.add_parser("list-users")
    sub.add_parser("list-groups")
    sub.add_parser("list-roles")

    sur = sub.add_parser("user-roles")
    sur.add_argument("--username", required=True)
    sur.add_argument("--effective", action="store_true", help="Include composite roles")

    sau = sub.add_parser("add-user")
    sau.add_argument("--username", required=True)
    sau.add_argument("--first", required=True)
    sau.add_argument("--last", required=True)
    sau.add_argument("--email", required=True)
    sau.add_argument("--password", required=True)

    sdu = sub.add_parser("delete-user")
    sdu.add_argument("--username", required=True)

    sud = sub.add_parser("user-details")
    sud.add_argument("--user-id", required=True)

    sag = sub.add_parser("add-group")
    sag.add_argument("--name", required=True)

    sdg = sub.add_parser("delete-group")
    sdg.add_argument("--name", required=True)

    sgu = sub.add_parser("add-group-to-user")
    sgu.add_argument("--username", required=True)
    sgu.add_argument("--group", required=True)

    for name in ("grant-role", "revoke-role"):
        sr = sub.add_parser(name)
        target = sr.add_mutually_exclusive_group(required=True)
        target.add_argument("--username")
        target.add_argument("--group")
        sr.add_argument("--role", required=True)
        sr.add_argument("--description", default="")

    args = parser.parse_args()

    if not args.cmd:
        parser.print_help()
        return

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        bridge = build_bridge(
            _settings_from_args(args),
            load_admin_password=args.cmd not in USER_ONLY_COMMANDS,
        )
        _dispatch(args, bridge)
    except KeycloakError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        sys.exit(1)


def _dispatch(args: argparse.Namespace, bridge: IdentityBridge) -> None:
    directory = bridge.directory

    if args.cmd == "token":
        print(bridge.broker.exchange_token(args.username, args.password))
    elif args.cmd == "admin-token":
        print(bridge.broker.admin_token())
    elif args.cmd == "refresh-admin-token":
        bridge.broker.refreshed_admin_token()
        print(f"[refresh-admin-token] Admin token stored in '{bridge.secrets.settings.admin_token_secret_name}'",
              file=sys.stderr)
    elif args.cmd == "list-users":
        _print_json(directory.list_users())
    elif args.cmd == "list-groups":
        _print_json(directory.list_groups())
    elif args.cmd == "list-roles":
        _print_json(directory.list_roles())
    elif args.cmd == "user-roles":
        if args.effective:
            _print_json(directory.list_effective_user_roles(args.username))
        else:
            _print_json(directory.list_user_roles(args.username))
    elif args.cmd == "add-user":
        directory.add_user(args.username, args.first, args.last, args.email, args.password)
        print(f"[add-user] User '{args.username}' created", file=sys.stderr)
    elif args.cmd == "delete-user":
        directory.delete_user(args.username)
        print(f"[delete-user] User '{args.username}' deleted", file=sys.stderr)
    elif args.cmd == "user-details":
        username, email = directory.fetch_user_details(args.user_id)
        print(f"{username} {email}")
    elif args.cmd == "add-group":
        directory.add_group(args.name)
        print(f"[add-group] Group '{args.name}' created", file=sys.stderr)
    elif args.cmd == "delete-group":
        directory.delete_group(args.name)
        print(f"[delete-group] Group '{args.name}' deleted", file=sys.stderr)
    elif args.cmd == "add-group-to-user":
        directory.add_group_to_user(args.username, args.group)
        print(f"[add-group-to-user] '{args.username}' joined '{args.group}'", file=sys.stderr)
    elif args.cmd == "grant-role":
        if args.group:
            directory.add_role_to_group(args.group, args.role, args.description)
        else:
            directory.add_role_to_user(args.username, args.role, args.description)
        print(f"[grant-role] Role '{args.role}' granted", file=sys.stderr)
    elif args.cmd == "revoke-role":
        if args.group:
            directory.delete_role_from_group(args.group, args.role, args.description)
        else:
            directory.delete_role_from_user(args.username, args.role, args.description)
        print(f"[revoke-role] Role '{args.role}' revoked", file=sys.stderr)


if __name__ == "__main__":
    main()
