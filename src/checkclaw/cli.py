"""Command-line interface for checkclaw."""

import argparse
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from checkclaw import __version__
from checkclaw.api.client import ApiClient, ApiError
from checkclaw.config import (
    AUTH_APIKEY,
    AUTH_SESSION,
    Config,
    ConfigError,
    ENV_API_KEY,
    ENV_API_URL,
    get_config_path,
    load_config,
    save_config,
)
from checkclaw.link import LinkError, LinkFlowCoordinator, LinkMode
from checkclaw.models.link import LinkCancelled
from checkclaw.output import EXPORT_FORMATS, TableRenderer, TransactionExporter
from checkclaw.processing.summary import generate_spending_summary
from checkclaw.utils.browser import no_browser, open_url
from checkclaw.utils.date_utils import parse_date, resolve_range
from checkclaw.utils.logging_config import get_logger, setup_logging
from checkclaw.utils.prompt import confirm, prompt, prompt_secret, select

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

DEFAULT_DAYS = 30
EXPORT_LIMIT = 1000
NOT_AUTHENTICATED = (
    "Not authenticated. Run `checkclaw login` or `checkclaw login --key <key>` first."
)


def positive_int(value: str) -> int:
    """argparse type for counts and timeouts."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number, got '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def date_arg(value: str) -> date:
    """argparse type for YYYY-MM-DD dates."""
    try:
        return parse_date(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def decimal_arg(value: str) -> Decimal:
    """argparse type for money amounts."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount '{value}'") from None
    if not amount.is_finite():
        raise argparse.ArgumentTypeError(f"invalid amount '{value}'")
    return amount


def _add_range_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--days",
        type=positive_int,
        default=DEFAULT_DAYS,
        help=f"Number of days to look back (default: {DEFAULT_DAYS})",
    )
    parser.add_argument(
        "--from",
        dest="from_date",
        type=date_arg,
        default=None,
        help="Start date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--to",
        dest="to_date",
        type=date_arg,
        default=None,
        help="End date (YYYY-MM-DD)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="checkclaw",
        description="Query bank balances, transactions and billing from the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s login --key ck_live_...
  %(prog)s link
  %(prog)s tx --days 7 --category "Food and Drink"
  %(prog)s export --format json -o transactions.json
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    # Auth
    subparsers.add_parser("signup", help="Register a new checkclaw account")

    login = subparsers.add_parser("login", help="Log in to your checkclaw account")
    login.add_argument("--key", default=None, help="API key for direct login")

    subparsers.add_parser("logout", help="Forget stored credentials")
    subparsers.add_parser("whoami", help="Show the logged-in account")

    config = subparsers.add_parser("config", help="Show or change CLI settings")
    config.add_argument("--api-url", default=None, help="Set the API base URL")

    # Bank connections
    link = subparsers.add_parser("link", help="Connect a bank account")
    link.add_argument("--list", action="store_true", help="List connected bank accounts")
    link.add_argument(
        "--timeout",
        type=positive_int,
        default=None,
        help="Seconds to wait for the browser flow (default: from config or 120)",
    )
    link.add_argument(
        "--no-browser",
        action="store_true",
        help="Print the consent URL instead of opening a browser",
    )
    link.add_argument(
        "--local-page",
        action="store_true",
        help="Serve the consent page from this machine",
    )

    unlink = subparsers.add_parser("unlink", help="Disconnect a bank account")
    unlink.add_argument("--all", action="store_true", help="Disconnect all bank accounts")

    # Data
    accounts = subparsers.add_parser("accounts", help="List connected accounts with balances")
    accounts.add_argument(
        "--type",
        dest="account_type",
        default=None,
        help="Filter by account type (checking, savings, credit)",
    )

    tx = subparsers.add_parser("tx", help="Query transaction history")
    _add_range_arguments(tx)
    tx.add_argument("--category", default=None, help="Filter by category")
    tx.add_argument("--search", default=None, help="Search merchant name")
    tx.add_argument("--account", default=None, help="Filter by account type")
    tx.add_argument("--min", dest="min_amount", type=decimal_arg, default=None,
                    help="Minimum transaction amount")
    tx.add_argument("--limit", type=positive_int, default=None, help="Limit number of results")
    tx.add_argument("--recurring", action="store_true", help="Show recurring transactions only")

    export = subparsers.add_parser("export", help="Export transactions to CSV or JSON")
    export.add_argument(
        "--format",
        dest="export_format",
        type=str.lower,
        choices=EXPORT_FORMATS,
        default="csv",
        help="Output format (default: csv)",
    )
    _add_range_arguments(export)
    export.add_argument("-o", "--output", type=Path, default=None, help="Output file path")
    export.add_argument(
        "--summary",
        action="store_true",
        help="Show category spending summary instead of raw data",
    )

    # Billing
    billing = subparsers.add_parser("billing", help="View subscription plan and usage")
    billing.add_argument(
        "billing_action",
        nargs="?",
        choices=["invoices"],
        default=None,
        help="Show invoice history",
    )

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def validate_output_path(path: Path, base_dir: Path | None = None) -> Path:
    """Validate that output path is within allowed directory.

    Prevents path traversal attacks by ensuring the resolved path
    is within the base directory (defaults to current working directory).

    Args:
        path: The path to validate.
        base_dir: Base directory to constrain paths within (default: cwd).

    Returns:
        The resolved, validated path.

    Raises:
        ValueError: If the path escapes the allowed directory.
    """
    if base_dir is None:
        base_dir = Path.cwd()

    resolved_base = base_dir.resolve()
    resolved_path = (base_dir / path).resolve()

    try:
        resolved_path.relative_to(resolved_base)
    except ValueError:
        raise ValueError(
            f"Invalid path: '{path}' escapes the allowed directory. "
            f"Paths must be within '{resolved_base}'"
        ) from None

    return resolved_path


def require_auth(config: Config) -> bool:
    """Print the login hint and return False when no credentials are stored."""
    if config.is_authenticated:
        return True
    console.print(f"[red]{escape(NOT_AUTHENTICATED)}[/red]")
    return False


def create_client(config: Config) -> ApiClient:
    """Build an API client that persists any session cookie it receives."""

    def remember_session(cookies: str) -> None:
        # An explicit API key wins over a session handed out along the way
        if config.active_auth_type == AUTH_APIKEY:
            return
        if cookies != config.session_token:
            config.set_session(cookies)
            save_config(config)

    return ApiClient(config, on_session=remember_session)


def error(message: str) -> int:
    """Report a command failure and return its exit code."""
    logger.error(message)
    console.print(f"[red]Error: {escape(message)}[/red]")
    return 1


def success(message: str) -> None:
    console.print(f"[green]✓ {escape(message)}[/green]")


# Auth commands


def signup_command(args: argparse.Namespace, config: Config) -> int:
    """Register a new account and store its API key."""
    email = prompt(console, "Email: ")
    password = prompt_secret(console, "Password: ")
    confirm_password = prompt_secret(console, "Confirm password: ")

    if password != confirm_password:
        return error("Passwords do not match.")

    result = create_client(config).signup(email, password)
    config.set_api_key(result.api_key)
    save_config(config)
    success(f"Account created! Logged in as {result.user.email}")
    return 0


def login_command(args: argparse.Namespace, config: Config) -> int:
    """Store an API key, directly or by logging in with email and password."""
    client = create_client(config)

    if args.key:
        config.set_api_key(args.key)
        user = client.me()
        save_config(config)
        success(f"Logged in as {user.email}")
        return 0

    email = prompt(console, "Email: ")
    password = prompt_secret(console, "Password: ")
    result = client.login(email, password)
    config.set_api_key(result.api_key)
    save_config(config)
    success(f"Logged in as {result.user.email}")
    return 0


def logout_command(args: argparse.Namespace, config: Config) -> int:
    config.clear_auth()
    save_config(config)
    success("Logged out.")
    return 0


def whoami_command(args: argparse.Namespace, config: Config) -> int:
    if not require_auth(config):
        return 1
    user = create_client(config).me()
    console.print(f"Logged in as [bold]{escape(user.email)}[/bold]")
    if user.plan:
        console.print(f"Plan: {escape(user.plan)}")
    return 0


def config_command(args: argparse.Namespace, config: Config) -> int:
    """Show settings, or persist a new API URL."""
    if args.api_url:
        config.set_api_url(args.api_url)
        save_config(config)
        success(f"API URL set to {config.api_url}")
        return 0

    if config.env_api_key:
        auth = f"API key (from {ENV_API_KEY})"
    elif config.auth_type == AUTH_APIKEY and config.api_key:
        auth = "API key"
    elif config.auth_type == AUTH_SESSION and config.session_token:
        auth = "session"
    else:
        auth = "not logged in"

    console.print(f"Config file: {config.path or get_config_path()}")
    api_url = escape(config.active_api_url)
    if config.env_api_url:
        api_url += f" (from {ENV_API_URL})"
    console.print(f"API URL:     {api_url}")
    console.print(f"Auth:        {auth}")
    console.print(f"Log file:    {config.log_path}")
    return 0


# Bank connections


def link_command(args: argparse.Namespace, config: Config) -> int:
    """Connect a bank through the browser, or list connections with --list."""
    if not require_auth(config):
        return 1
    client = create_client(config)
    renderer = TableRenderer(console, config.output)

    if args.list:
        items = client.list_link_items()
        if not items:
            console.print("[dim]No bank accounts connected.[/dim]")
            console.print("[dim]Run `checkclaw link` to connect one.[/dim]")
            return 0
        console.print(renderer.link_items_table(items))
        console.print(f"[dim]\n {len(items)} bank(s) connected[/dim]")
        return 0

    mode = LinkMode.LOCAL_PAGE if args.local_page or config.link.local_page else LinkMode.CALLBACK
    coordinator = LinkFlowCoordinator(
        client,
        console=console,
        open_browser=no_browser if args.no_browser else open_url,
        timeout=args.timeout or config.link.timeout_seconds,
        consent_url=config.link.consent_url,
        mode=mode,
    )

    try:
        outcome = coordinator.run()
    except LinkError as e:
        return error(str(e))

    if isinstance(outcome, LinkCancelled):
        console.print(f"[yellow]Bank connection cancelled ({escape(outcome.reason)}).[/yellow]")
        return 0

    connection = outcome.connection
    success(f"Connected {connection.institution} ({connection.accounts_display})")
    return 0


def unlink_command(args: argparse.Namespace, config: Config) -> int:
    """Disconnect one bank connection, or all of them with --all."""
    if not require_auth(config):
        return 1
    client = create_client(config)

    items = client.list_link_items()
    if not items:
        console.print("[dim]No bank connections to disconnect.[/dim]")
        return 0

    if args.all:
        if not confirm(console, f"Disconnect all {len(items)} bank connection(s)?"):
            console.print("[dim]Cancelled.[/dim]")
            return 0
        failed = 0
        for item in items:
            try:
                client.delete_link_item(item.id)
            except ApiError as e:
                failed += 1
                logger.error(f"Failed to disconnect {item.id}: {e}")
                console.print(f"[red]Failed to disconnect {escape(item.institution)}: {escape(str(e))}[/red]")
                continue
            success(f"Disconnected {item.institution}")
        return 1 if failed else 0

    try:
        item_id = select(
            console,
            "Select a bank connection to disconnect:",
            [(f"{item.institution} ({item.accounts_display})", item.id) for item in items],
        )
    except ValueError as e:
        return error(str(e))

    item = next(i for i in items if i.id == item_id)
    if not confirm(console, f"Disconnect {item.institution}?"):
        console.print("[dim]Cancelled.[/dim]")
        return 0

    client.delete_link_item(item.id)
    success(f"Disconnected {item.institution}")
    return 0


# Data


def accounts_command(args: argparse.Namespace, config: Config) -> int:
    if not require_auth(config):
        return 1

    accounts = create_client(config).get_accounts()
    if not accounts:
        console.print("[dim]No accounts found.[/dim]")
        console.print("[dim]Run `checkclaw link` to connect a bank first.[/dim]")
        return 0

    if args.account_type:
        accounts = [a for a in accounts if a.matches_type(args.account_type)]
        if not accounts:
            console.print(f"[dim]No {escape(args.account_type)} accounts found.[/dim]")
            return 0

    console.print(TableRenderer(console, config.output).accounts_table(accounts))
    return 0


def tx_command(args: argparse.Namespace, config: Config) -> int:
    """Query transactions, or the detected recurring ones with --recurring."""
    if not require_auth(config):
        return 1
    client = create_client(config)
    renderer = TableRenderer(console, config.output)

    if args.recurring:
        recurring = client.get_recurring()
        if not recurring:
            console.print("[dim]No recurring transactions detected.[/dim]")
            return 0
        console.print(renderer.recurring_table(recurring))
        console.print(f"[dim] {len(recurring)} recurring transaction(s) detected[/dim]")
        return 0

    from_date, to_date = resolve_range(args.days, args.from_date, args.to_date)
    page = client.get_transactions(
        **{
            "from": from_date,
            "to": to_date,
            "category": args.category,
            "search": args.search,
            "account": args.account,
            "min": args.min_amount,
            "limit": args.limit,
        }
    )

    if not page.transactions:
        console.print("[dim]No transactions found.[/dim]")
        return 0

    renderer.print_transactions(page.transactions, has_more=page.has_more)
    return 0


def export_command(args: argparse.Namespace, config: Config) -> int:
    """Export transactions in a range as CSV/JSON, or print a spending summary."""
    if not require_auth(config):
        return 1

    output_path = None
    if args.output is not None:
        try:
            output_path = validate_output_path(args.output)
        except ValueError as e:
            return error(str(e))

    from_date, to_date = resolve_range(args.days, args.from_date, args.to_date)
    with console.status("[bold green]Fetching transactions..."):
        page = create_client(config).get_transactions(
            **{"from": from_date, "to": to_date, "limit": EXPORT_LIMIT}
        )

    transactions = page.transactions
    if not transactions:
        console.print("[dim]No transactions found.[/dim]")
        return 0

    if args.summary:
        summary = generate_spending_summary(transactions, from_date, to_date)
        TableRenderer(console, config.output).print_summary(summary)
        return 0

    exporter = TransactionExporter(config)
    if output_path is None:
        sys.stdout.write(exporter.render(transactions, args.export_format))
        sys.stdout.flush()
        return 0

    exporter.write(output_path, transactions, args.export_format)
    success(f"Exported {len(transactions)} transactions to {args.output}")
    return 0


def billing_command(args: argparse.Namespace, config: Config) -> int:
    """Show the subscription plan, or invoice history."""
    if not require_auth(config):
        return 1
    client = create_client(config)
    renderer = TableRenderer(console, config.output)

    if args.billing_action == "invoices":
        invoices = client.get_invoices()
        if not invoices:
            console.print("[dim]No invoices yet.[/dim]")
            return 0
        console.print(renderer.invoices_table(invoices))
        return 0

    renderer.print_billing_plan(client.get_billing_plan())
    return 0


COMMANDS = {
    "signup": signup_command,
    "login": login_command,
    "logout": logout_command,
    "whoami": whoami_command,
    "config": config_command,
    "link": link_command,
    "unlink": unlink_command,
    "accounts": accounts_command,
    "tx": tx_command,
    "export": export_command,
    "billing": billing_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config()
    except ConfigError as e:
        return error(str(e))

    log_level = get_log_level(args.verbose)
    setup_logging(level=log_level, log_file=config.log_path, console_output=args.verbose > 0)
    logger.debug(f"Running '{args.command}' against {config.active_api_url}")

    try:
        return COMMANDS[args.command](args, config)
    except ApiError as e:
        logger.debug(f"API error (status {e.status}): {e}")
        return error(str(e))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
