from __future__ import annotations

import uuid
from typing import Optional

import typer

from .config import settings
from .db.session import SessionLocal
from .errors import DmsError
from .models import Division, Role, User
from .services.auth import AuthContext, AuthService, normalize_email
from .services.divisions import ensure_divisions
from .services.users import NewUser, create_user

app = typer.Typer(help="Ministry document management administrative CLI")


@app.command("create-user")
def create_user_cmd(
    email: str = typer.Argument(..., help="User email"),
    name: str = typer.Argument(..., help="Display name"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Initial password"),
    role: Role = typer.Option(Role.STAFF, "--role", "-r", case_sensitive=False, help="ADMIN or STAFF"),
    division: Optional[str] = typer.Option(None, "--division", "-d", help="Division name"),
) -> None:
    """Create a user, optionally attached to a division by name."""
    db = SessionLocal()
    try:
        division_id: Optional[uuid.UUID] = None
        if division:
            found = db.query(Division).filter(Division.name == division).one_or_none()
            if found is None:
                raise typer.BadParameter(f"Unknown division: {division}")
            division_id = found.id

        try:
            user = create_user(
                db,
                None,
                NewUser(email=email, name=name, password=password, role=role, division_id=division_id),
            )
        except DmsError as exc:
            typer.echo(f"Error: {exc.message}", err=True)
            raise typer.Exit(code=1) from exc
        typer.echo(f"Created {user.role.value} user {user.email} ({user.id})")
    finally:
        db.close()


@app.command()
def seed_divisions() -> None:
    """Insert the standard ministry divisions that are missing."""
    db = SessionLocal()
    try:
        created = ensure_divisions(db)
        db.commit()
        typer.echo(f"Seeded {created} new divisions")
    finally:
        db.close()


@app.command()
def issue_token(email: str = typer.Argument(..., help="User email")) -> None:
    """Print a bearer token for an existing active user."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(email)).one_or_none()
        if user is None or not user.is_active:
            typer.echo(f"No active user with email {email}", err=True)
            raise typer.Exit(code=1)
        token = AuthService(db).issue_token(AuthContext.for_user(user))
        typer.echo(token)
        typer.echo(f"Valid for {settings.token_ttl_hours} hours", err=True)
    finally:
        db.close()


if __name__ == "__main__":
    app()
