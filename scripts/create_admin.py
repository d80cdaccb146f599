import asyncio
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import AccountRole
from app.dependencies.database import engine, with_db
from app.models.error import RequestError
from app.service.account_service import AccountService
from app.service.auth import validate_full_name, validate_password

import click


async def _create_or_promote(full_name: str, email: str, password: str | None) -> str:
    async with with_db() as session:
        account = await AccountService.find_by_email(session, email)
        if account is not None:
            await AccountService.set_role(session, account, AccountRole.ADMIN)
            if not account.is_verified:
                await AccountService.mark_verified(session, account.email)
            if not account.is_active:
                await AccountService.set_active(session, account, True)
            message = f"Promoted {account.lacpa_id} ({account.email}) to admin"
        else:
            if password is None:
                raise click.UsageError("--password is required when creating a new account")
            errors = validate_full_name(full_name) + validate_password(password)
            if errors:
                raise click.ClickException("; ".join(errors))
            account = await AccountService.create(
                session, full_name, email, password, role=AccountRole.ADMIN, verified=True
            )
            message = f"Created admin {account.lacpa_id} ({account.email})"
    await engine.dispose()
    return message


@click.command()
@click.option("--email", required=True, help="Email of the admin account.")
@click.option("--full-name", default="LACPA Administrator", show_default=True, help="Display name for a new account.")
@click.option("--password", default=None, help="Password for a new account.")
def main(email: str, full_name: str, password: str | None) -> None:
    """Create a verified admin account, or promote an existing account to admin."""
    try:
        message = asyncio.run(_create_or_promote(full_name, email, password))
    except RequestError as e:
        raise click.ClickException(e.formatted_message) from e
    click.echo(message)


if __name__ == "__main__":
    main()
