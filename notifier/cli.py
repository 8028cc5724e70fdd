"""CLI entry point for the order notifier."""

import argparse
import logging
import signal

from notifier import daemon
from notifier.config.loader import get_config_value, load_config, save_config, set_config_value
from notifier.ingest.supabase_client import StoreClientError, SupabaseClient
from notifier.reporting.formatters import format_health_text
from notifier.reporting.health_checker import HealthChecker
from notifier.storage import state_repo
from notifier.storage.credential_repo import delete_credentials
from notifier.storage.database import open_database
from notifier.transport.bridge import BridgeTransport

DEFAULT_CONFIG = "ops/configs/default.yaml"
DEFAULT_DB = "data/notifier.db"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="notifier",
        description="Restaurant order notifier",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG, help="Config YAML path"
    )
    parser.add_argument("--db", default=DEFAULT_DB, help="SQLite DB path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the notifier daemon in the foreground")
    sub.add_parser("stop", help="Stop the running daemon")
    status_p = sub.add_parser("status", help="Show daemon and connection state")
    status_p.add_argument("--json", action="store_true", help="Print the raw state file")
    sub.add_parser("reconnect", help="Ask the daemon to reconnect its session")
    sub.add_parser("clear-session", help="Log out and discard stored credentials")
    sub.add_parser("health", help="Run health checks")

    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    set_p = config_sub.add_parser("set", help="Set a config value")
    set_p.add_argument("keyvalue", help="key=value to set")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    config = load_config(args.config)

    if args.command == "run":
        return _cmd_run(config, args)
    elif args.command == "stop":
        return daemon.stop_daemon()
    elif args.command == "status":
        return daemon.daemon_status(as_json=args.json)
    elif args.command == "reconnect":
        return _cmd_reconnect(args)
    elif args.command == "clear-session":
        return _cmd_clear_session(config, args)
    elif args.command == "health":
        return _cmd_health(config, args)
    elif args.command == "config":
        return _cmd_config(config, args)
    else:
        parser.print_help()
        return 1


def _cmd_run(config, args) -> int:
    daemon.NotifierDaemon(config, db_path=args.db).start()
    return 0


def _cmd_reconnect(args) -> int:
    sent = daemon.signal_daemon(signal.SIGHUP)
    conn = open_database(args.db)
    state_repo.log_operator_command(
        conn, "reconnect", result="signalled" if sent else "no daemon"
    )
    conn.close()
    if not sent:
        print("No daemon running")
        return 1
    print("Reconnect requested")
    return 0


def _cmd_clear_session(config, args) -> int:
    sent = daemon.signal_daemon(signal.SIGUSR1)
    conn = open_database(args.db)
    if sent:
        result = "signalled"
        print("Session reset requested, a new pairing code will be issued")
    else:
        removed = delete_credentials(conn, config.transport.session_id)
        result = "credentials deleted" if removed else "nothing stored"
        print(f"No daemon running; {result}")
    state_repo.log_operator_command(
        conn, "clear-session", args=config.transport.session_id, result=result
    )
    conn.close()
    return 0


def _cmd_health(config, args) -> int:
    conn = open_database(args.db)
    try:
        store = SupabaseClient(config=config.store)
    except StoreClientError as e:
        print(f"Order store not configured: {e}")
        store = None
    bridge = BridgeTransport(
        config.transport.bridge_url,
        config.transport.session_id,
        config.transport.timeout_seconds,
    )
    checker = HealthChecker(
        conn,
        store=store,
        bridge=bridge,
        state_file=daemon.STATE_FILE,
        is_running=lambda: daemon.running_pid() is not None,
    )
    status = checker.check()
    print(format_health_text(status))
    conn.close()
    healthy = status.db_connected and status.store_reachable and status.bridge_reachable
    return 0 if healthy else 1


def _cmd_config(config, args) -> int:
    if args.config_command == "show":
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "set":
        kv = args.keyvalue
        if "=" not in kv:
            print("Error: use key=value format")
            return 1
        key, value = kv.split("=", 1)
        try:
            new_config = set_config_value(config, key.strip(), value.strip())
        except (KeyError, IndexError, ValueError) as e:
            print(f"Error: {e}")
            return 1
        save_config(new_config, args.config)
        conn = open_database(args.db)
        state_repo.log_operator_command(conn, "config-set", args=kv, result="saved")
        conn.close()
        print(f"Set {key} = {get_config_value(new_config, key.strip())}")
        return 0
    else:
        print("Use: config show | config set key=value")
        return 1
