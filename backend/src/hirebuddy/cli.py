"""Command-line interface for HireBuddy referrals."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from hirebuddy.auth.tokens import TokenService
from hirebuddy.logging_config import configure_logging, get_logger
from hirebuddy.referral.errors import ReferralError
from hirebuddy.referral.service import referral_service

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="hirebuddy",
    help="HireBuddy referral rewards administration",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _fail(error: ReferralError) -> None:
    console.print(f"[bold red]✗[/bold red] {error.kind}: {error.message}")
    raise typer.Exit(code=1)


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    referral_service.database.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("issue-code")
def issue_code(
    user_id: Annotated[str, typer.Argument(help="User ID")],
) -> None:
    """Issue (or show) a user's referral code."""
    try:
        issued = referral_service.issuer.issue_or_get(user_id)
    except ReferralError as e:
        _fail(e)

    state = "created" if issued.is_new else "existing"
    console.print(f"[bold green]✓[/bold green] {issued.code} ({state})")
    console.print(f"  Link: {referral_service.share_link(issued.code)}")


@app.command("stats")
def show_stats(
    user_id: Annotated[str, typer.Argument(help="Referrer user ID")],
) -> None:
    """Show referral statistics for a user."""
    try:
        stats = referral_service.lifecycle.get_stats_for_user(user_id)
    except ReferralError as e:
        _fail(e)

    counts = stats["statistics"]
    rewards = stats["rewards"]

    console.print(f"\n[bold]Referral code:[/bold] {stats['user']['referral_code'] or '-'}")
    console.print(f"[bold]Premium granted:[/bold] {'yes' if rewards['premium_granted'] else 'no'}")
    if rewards["premium_expires_at"]:
        console.print(f"[bold]Premium expires:[/bold] {rewards['premium_expires_at']:%Y-%m-%d %H:%M}")

    table = Table(title="Referrals")
    table.add_column("Total", justify="right")
    table.add_column("Completed", justify="right", style="green")
    table.add_column("Pending", justify="right", style="yellow")
    table.add_column("Expired", justify="right", style="red")
    table.add_column("Needed for premium", justify="right")
    table.add_column("Progress", justify="right")
    table.add_row(
        str(counts["total_referrals"]),
        str(counts["completed_referrals"]),
        str(counts["pending_referrals"]),
        str(counts["expired_referrals"]),
        str(counts["referrals_needed_for_premium"]),
        f"{counts['progress_percentage']:.0f}%",
    )
    console.print(table)


@app.command("expire")
def expire_referrals() -> None:
    """Mark pending referrals past their expiry as expired."""
    try:
        count = referral_service.lifecycle.expire_stale()
    except ReferralError as e:
        _fail(e)

    console.print(f"[bold green]✓[/bold green] Expired {count} referral(s)")


@app.command("summary")
def admin_summary(
    limit: Annotated[int, typer.Option("--limit", "-l", help="Max rows to show")] = 50,
) -> None:
    """Show per-user referral summary."""
    try:
        rows = referral_service.reporting.get_admin_summary()
        totals = referral_service.reporting.get_system_statistics()
    except ReferralError as e:
        _fail(e)

    table = Table(title="Referral Summary")
    table.add_column("Email", style="cyan")
    table.add_column("Completed", justify="right", style="green")
    table.add_column("Pending", justify="right", style="yellow")
    table.add_column("Expired", justify="right", style="red")
    table.add_column("Premium")

    for row in rows[:limit]:
        table.add_row(
            row["email"],
            str(row["completed_referrals"]),
            str(row["pending_count"]),
            str(row["expired_count"]),
            "✓" if row["premium_granted"] else "",
        )

    console.print(table)
    console.print(
        f"\nTotal: {totals['total_referrals']} referrals from "
        f"{totals['unique_referrers']} referrer(s)"
    )


@app.command("token")
def mint_token(
    user_id: Annotated[str, typer.Argument(help="User ID")],
    email: Annotated[
        str | None, typer.Option("--email", help="Create or update the user with this email first")
    ] = None,
    admin: Annotated[bool, typer.Option("--admin", help="Grant admin flag (with --email)")] = False,
) -> None:
    """Print a development access token for a user."""
    tokens = TokenService(referral_service.database)
    if email:
        user = tokens.sync_user(email=email, user_id=user_id, is_admin=admin)
    else:
        user = tokens.get_user_by_id(user_id)

    if not user:
        console.print(f"[bold red]✗[/bold red] No active user {user_id} (pass --email to create one)")
        raise typer.Exit(code=1)

    console.print(f"[dim]user_id={user.id} email={user.email}[/dim]")
    # Plain echo so the token is never wrapped
    typer.echo(tokens.create_access_token(user))


if __name__ == "__main__":
    app()
