# commands.py : `flask init-db` and `flask create-admin`
import click

import repository
from extensions import db
from models.model import ROLE_ADMIN
from validators import ValidationError, check_password_policy


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables that do not exist yet."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-admin")
    @click.argument("username")
    @click.argument("email")
    @click.password_option()
    def create_admin(username, email, password):
        """Create an admin account, or promote and reset an existing one."""
        try:
            check_password_policy(password)
        except ValidationError as e:
            raise click.ClickException(e.message)

        user = repository.find_user_by_username(username)
        if user is None:
            try:
                repository.create_user(username, email, password, role=ROLE_ADMIN)
            except repository.PersistenceError:
                raise click.ClickException(f"Could not create {username}; is {email} already registered?")
            click.echo(f"Admin {username} created.")
            return

        user.role = ROLE_ADMIN
        user.set_password(password)
        db.session.commit()
        click.echo(f"Password reset and admin role granted for: {user.username}")
