#!/usr/bin/env python3
"""Command-line interface for Taskin.

Administrative commands for the sync server's data. Uses core/ modules;
serve runs the same application as the web command.

Commands:
    changes --user U [--since TS]       Changes visible to a user
    log-change --user U ...             Record a server-side change
    teams --user U                      Teams a user belongs to
    members <team>                      Members of a team
    add-member <team> <user> [--role]   Add a user to a team
    remove-member <team> <user>         Remove a user from a team
    snapshot-status --user U            Full-snapshot sync status of a user
    serve [--host H] [--port P]         Start the sync server
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from taskin.core.config import Config
from taskin.core.database import Database
from taskin.core.delta_sync import DeltaSyncService
from taskin.core.models import ACTIONS, ENTITY_TYPES
from taskin.core.snapshot_sync import SnapshotSyncService
from taskin.core.teams import TeamVisibilityResolver
from taskin.core.timestamp_utils import format_timestamp
from taskin.core.validation import (
    ValidationError,
    validate_action,
    validate_entity_id,
    validate_entity_type,
    validate_team_id,
    validate_timestamp,
    validate_user_id,
)
from taskin.web import build_app


def format_change(change: Dict[str, Any]) -> str:
    """Format a change for text display.

    Args:
        change: Change in wire form (ServerChange.to_dict())

    Returns:
        One-line summary of the change
    """
    return (
        f"{change['timestamp']} | {change['action']:<7} {change['entityType']} "
        f"{change['entityId']} (v{change['version']})"
    )


def _delta_service(db: Database, config: Config) -> DeltaSyncService:
    return DeltaSyncService(
        db,
        lookback_days=config.get_default_lookback_days(),
        far_past_years=config.get_far_past_years(),
    )


def cmd_changes(db: Database, config: Config, args: argparse.Namespace) -> int:
    """List changes visible to a user.

    Args:
        db: Database instance
        config: Config instance
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    user_id = validate_user_id(args.user)
    since = validate_timestamp(args.since, "since")

    changes = [c.to_dict() for c in _delta_service(db, config).get_changes_since(user_id, since)]

    if args.format == "json":
        print(json.dumps(changes, indent=2, ensure_ascii=False))
    else:
        if not changes:
            print("No changes found.")
            return 0
        for change in changes:
            print(format_change(change))

    return 0


def cmd_log_change(db: Database, config: Config, args: argparse.Namespace) -> int:
    """Record a change made outside of a client sync.

    Args:
        db: Database instance
        config: Config instance
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    user_id = validate_user_id(args.user)
    entity_type = validate_entity_type(args.entity_type)
    entity_id = validate_entity_id(args.entity_id)
    action = validate_action(args.action)
    team_id = validate_team_id(args.team) if args.team else None

    record = _delta_service(db, config).log_change(
        user_id, entity_type, entity_id, action, team_id, args.data
    )

    if args.format == "json":
        print(json.dumps({"id": record.id, "timestamp": format_timestamp(record.timestamp)}, indent=2))
    else:
        print(f"Logged change {record.id} at {format_timestamp(record.timestamp)}")

    return 0


def cmd_teams(db: Database, args: argparse.Namespace) -> int:
    """List the teams a user belongs to."""
    user_id = validate_user_id(args.user)
    team_ids = TeamVisibilityResolver(db).get_user_team_ids(user_id)

    if args.format == "json":
        print(json.dumps(team_ids, indent=2))
    elif not team_ids:
        print(f"{user_id} is not in any team.")
    else:
        for team_id in team_ids:
            print(team_id)

    return 0


def cmd_members(db: Database, args: argparse.Namespace) -> int:
    """List the members of a team."""
    team_id = validate_team_id(args.team)
    members = TeamVisibilityResolver(db).get_team_members(team_id)

    if args.format == "json":
        print(json.dumps([
            {
                "team_id": m.team_id,
                "user_id": m.user_id,
                "role": m.role,
                "joined_at": format_timestamp(m.joined_at),
            }
            for m in members
        ], indent=2))
    elif not members:
        print(f"Team {team_id} has no members.")
    else:
        for m in members:
            print(f"{m.user_id} ({m.role}) joined {format_timestamp(m.joined_at)}")

    return 0


def cmd_add_member(db: Database, args: argparse.Namespace) -> int:
    """Add a user to a team."""
    team_id = validate_team_id(args.team)
    user_id = validate_user_id(args.user)

    if TeamVisibilityResolver(db).add_member(team_id, user_id, args.role):
        print(f"Added {user_id} to team {team_id} as {args.role}")
    else:
        print(f"{user_id} is already a member of team {team_id}")
    return 0


def cmd_remove_member(db: Database, args: argparse.Namespace) -> int:
    """Remove a user from a team."""
    team_id = validate_team_id(args.team)
    user_id = validate_user_id(args.user)

    if TeamVisibilityResolver(db).remove_member(team_id, user_id):
        print(f"Removed {user_id} from team {team_id}")
        return 0

    print(f"Error: {user_id} is not a member of team {team_id}", file=sys.stderr)
    return 1


def cmd_snapshot_status(db: Database, args: argparse.Namespace) -> int:
    """Show full-snapshot sync status of a user."""
    user_id = validate_user_id(args.user)
    status = SnapshotSyncService(db).get_status(user_id)

    if args.format == "json":
        print(json.dumps(status, indent=2))
    else:
        print(f"User: {status['userId']}")
        print(f"Last Sync: {status['lastSyncAt'] or 'never'}")
        print(f"Has Data: {'yes' if status['hasData'] else 'no'}")

    return 0


def cmd_serve(db: Database, config: Config, args: argparse.Namespace) -> int:
    """Start the sync server.

    Args:
        db: Database instance
        config: Config instance
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    host = args.host or config.get_server_host()
    port = args.port or config.get_server_port()

    print(f"Sync server listening on http://{host}:{port}")
    print("Press Ctrl+C to stop.")
    print()

    app = build_app(db, config)
    app.run(host=host, port=port)

    return 0


def add_cli_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add CLI subparser and its nested subcommands.

    Args:
        subparsers: Parent subparsers object to add CLI parser to
    """
    cli_parser = subparsers.add_parser(
        "cli",
        help="Command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_cli_arguments(cli_parser)


def add_cli_arguments(cli_parser: argparse.ArgumentParser) -> None:
    """Add the --format option and the CLI commands to a parser."""
    cli_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    cli_subparsers = cli_parser.add_subparsers(dest="cli_command", help="CLI commands")

    # changes command
    changes_parser = cli_subparsers.add_parser(
        "changes",
        help="List changes visible to a user"
    )
    changes_parser.add_argument("--user", required=True, help="User ID")
    changes_parser.add_argument(
        "--since",
        default=None,
        help="ISO-8601 timestamp (default: the configured lookback window)"
    )

    # log-change command
    log_parser = cli_subparsers.add_parser(
        "log-change",
        help="Record a server-side change"
    )
    log_parser.add_argument("--user", required=True, help="Author of the change")
    log_parser.add_argument(
        "--entity-type",
        required=True,
        help=f"Entity type ({', '.join(sorted(ENTITY_TYPES))}, ...)"
    )
    log_parser.add_argument("--entity-id", required=True, help="Entity ID")
    log_parser.add_argument("--action", required=True, choices=sorted(ACTIONS), help="Change action")
    log_parser.add_argument("--team", default=None, help="Team the entity is shared with")
    log_parser.add_argument("--data", default=None, help="JSON snapshot of the entity")

    # teams command
    teams_parser = cli_subparsers.add_parser(
        "teams",
        help="List the teams a user belongs to"
    )
    teams_parser.add_argument("--user", required=True, help="User ID")

    # members command
    members_parser = cli_subparsers.add_parser(
        "members",
        help="List the members of a team"
    )
    members_parser.add_argument("team", help="Team ID")

    # add-member command
    add_member_parser = cli_subparsers.add_parser(
        "add-member",
        help="Add a user to a team"
    )
    add_member_parser.add_argument("team", help="Team ID")
    add_member_parser.add_argument("user", help="User ID")
    add_member_parser.add_argument(
        "--role",
        choices=["owner", "member"],
        default="member",
        help="Membership role (default: member)"
    )

    # remove-member command
    remove_member_parser = cli_subparsers.add_parser(
        "remove-member",
        help="Remove a user from a team"
    )
    remove_member_parser.add_argument("team", help="Team ID")
    remove_member_parser.add_argument("user", help="User ID")

    # snapshot-status command
    snapshot_parser = cli_subparsers.add_parser(
        "snapshot-status",
        help="Show full-snapshot sync status of a user"
    )
    snapshot_parser.add_argument("--user", required=True, help="User ID")

    # serve command
    serve_parser = cli_subparsers.add_parser(
        "serve",
        help="Start the sync server"
    )
    serve_parser.add_argument("--host", default=None, help="Host to bind to (default: from config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: from config)")


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run CLI with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have cli_command attribute)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not hasattr(args, 'cli_command') or not args.cli_command:
        print("Error: No CLI command specified. Use --help for available commands.", file=sys.stderr)
        return 1

    config = Config(config_dir=config_dir)
    db_path = config.get_database_file()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = Database(db_path)

    try:
        if args.cli_command == "changes":
            return cmd_changes(db, config, args)
        elif args.cli_command == "log-change":
            return cmd_log_change(db, config, args)
        elif args.cli_command == "teams":
            return cmd_teams(db, args)
        elif args.cli_command == "members":
            return cmd_members(db, args)
        elif args.cli_command == "add-member":
            return cmd_add_member(db, args)
        elif args.cli_command == "remove-member":
            return cmd_remove_member(db, args)
        elif args.cli_command == "snapshot-status":
            return cmd_snapshot_status(db, args)
        elif args.cli_command == "serve":
            return cmd_serve(db, config, args)
        else:
            print(f"Error: Unknown command '{args.cli_command}'", file=sys.stderr)
            return 1
    except ValidationError as e:
        print(f"Error: Invalid {e.field} - {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()


def main() -> int:
    """Standalone entry point: python -m taskin.cli [-d DIR] [--format F] COMMAND."""
    parser = argparse.ArgumentParser(
        description="Taskin sync server administration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/taskin/)"
    )
    add_cli_arguments(parser)
    args = parser.parse_args()
    return run(args.config_dir, args)


if __name__ == "__main__":
    sys.exit(main())
