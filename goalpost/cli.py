import click
from faker import Faker
from flask import current_app
from flask.cli import with_appcontext

from goalpost.helpers import from_cents, money_str

fake = Faker()


@click.group()
def goals():
    """Goalpost CLI tools."""
    pass


@goals.command("seed-demo")
@click.option("--target", default=3000, show_default=True, help="Goal target in whole currency units.")
@click.option("--milestones", "milestone_count", default=3, show_default=True)
@click.option("--donations", default=5, show_default=True, help="Demo donations recorded through the ledger.")
@click.option("--payout-account", default="acct_demo", show_default=True)
@with_appcontext
def seed_demo(target, milestone_count, donations, payout_account):
    """Seed one demo goal with milestones and donations."""
    from goalpost.services import goal_store, ledger  # lazy import

    if target <= 0 or milestone_count <= 0:
        raise click.BadParameter("target and milestones must be positive")

    goal, secret = goal_store.create_goal(
        f"{fake.city()} {fake.word().capitalize()} Fund",
        fake.sentence(nb_words=14),
        target,
        payout_account,
        milestones=_split_target(target * 100, milestone_count),
    )
    click.secho(f"✅ Goal {goal.id} created ({len(goal.milestones)} milestones)", fg="bright_green", bold=True)

    for i in range(donations):
        result = ledger.record_completed_donation(
            goal.id,
            None,
            fake.first_name() if fake.boolean(75) else None,
            fake.sentence(nb_words=6) if fake.boolean(50) else None,
            provider_txn_id=f"demo_{goal.id[:8]}_{i}",
            amount_cents=fake.random_int(min=5, max=max(5, target // 4)) * 100,
        )
        click.secho(f"  ↳ donation {money_str(result.donation.amount)} from {result.donation.display_name}", fg="cyan")

    base = current_app.config.get("PUBLIC_BASE_URL") or ""
    click.echo(f"public: {base}/goal/{goal.id}")
    click.echo(f"edit:   {base}/goal/{goal.id}/edit/{secret}")


@goals.command("show")
@click.argument("goal_id")
@with_appcontext
def show(goal_id):
    """Print a goal's progress and milestone ladder."""
    from goalpost.exceptions import NotFound
    from goalpost.services import goal_store, ledger, progress  # lazy import

    try:
        goal = goal_store.get_goal(goal_id)
    except NotFound as e:
        raise click.ClickException(e.message)

    p = progress.goal_progress(goal, ledger.list_completed(goal.id))
    click.secho(goal.name, bold=True)
    click.echo(
        f"raised {money_str(p.current_amount)} of {money_str(p.target_amount)} "
        f"({p.progress_percent:.2f}%) from {p.donation_count} donations"
    )
    for m in p.milestones:
        mark = click.style("✓", fg="green") if m.reached else click.style("·", fg="yellow")
        click.echo(f"  {mark} {m.name:<24} {money_str(m.cumulative_threshold):>12}  gap {money_str(m.remaining)}")


# ---------- Helpers ----------
def _split_target(target_cents, count):
    """Split target_cents into `count` named milestones that add up exactly."""
    base, rest = divmod(int(target_cents), int(count))
    out = []
    for i in range(count):
        cents = base + (rest if i == count - 1 else 0)
        out.append({"name": f"{fake.word().capitalize()} stage", "target_amount": from_cents(cents)})
    return out


def register_cli(app):
    app.cli.add_command(goals)
