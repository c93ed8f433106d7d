import click
from flask.cli import with_appcontext

from judge_auth import purge_expired_sessions
from models import AdminUser, db


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create every table (and the one-active-round index) if missing."""
    db.create_all()
    click.echo("Database tables created.")


@click.command("add-admin")
@click.argument("external_user_id")
@click.argument("name")
@click.option("--email", default=None)
@click.option("--super-admin", is_flag=True, default=False)
@with_appcontext
def add_admin_command(external_user_id, name, email, super_admin):
    """Put an identity-provider user id on the admin allow-list."""
    profile = AdminUser.query.filter_by(external_user_id=external_user_id).first()
    if profile is None:
        profile = AdminUser(external_user_id=external_user_id)
        db.session.add(profile)
        action = "Added"
    else:
        action = "Updated"

    profile.name = name
    profile.email = email
    profile.is_super_admin = super_admin
    db.session.commit()
    click.echo(f"{action} admin {name} ({external_user_id}).")


@click.command("purge-judge-sessions")
@with_appcontext
def purge_judge_sessions_command():
    deleted = purge_expired_sessions(db.session)
    click.echo(f"Removed {deleted} expired judge session(s).")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(add_admin_command)
    app.cli.add_command(purge_judge_sessions_command)
