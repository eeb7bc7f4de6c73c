from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from opentelemetry import trace

from ops_tools.auth_admin_client import AuthAccount, AuthAdminClient
from ops_tools.errors import LocalStoreError
from ops_tools.rest_client import RestTableClient
from ops_tools.settings import AdminCredentials

logger = logging.getLogger(__name__)

ADMIN_METADATA = {"full_name": "Admin User", "role": "admin"}


class ReconcileOutcome(str, Enum):
    SUCCESS = "success"
    SUCCESS_WITH_WARNING = "success_with_warning"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    auth_user_id: str
    created: bool
    warning: str | None = None


def find_account_by_email(accounts: list[AuthAccount], email: str) -> AuthAccount | None:
    for account in accounts:
        if account.email == email:
            return account
    return None


async def reconcile_admin_account(
    credentials: AdminCredentials,
    *,
    auth_client: AuthAdminClient,
    user_table: RestTableClient,
    users_table_name: str = "users",
) -> ReconcileResult:
    """Make the auth service hold the admin account and link it to the users table row.

    Auth service failures (listing, password update, creation) propagate as
    ``RemoteCallError``. A failed users table update only downgrades the result
    to a warning, because the created account cannot be rolled back.
    """
    tracer = trace.get_tracer("ops-tools")
    with tracer.start_as_current_span("admin_setup.reconcile") as span:
        logger.info(
            "setting up admin user %s (expected id %s)",
            credentials.email,
            credentials.expected_user_id,
            extra={"component": "admin_setup"},
        )
        accounts = await auth_client.list_users()
        existing = find_account_by_email(accounts, credentials.email)

        if existing is not None:
            span.set_attribute("admin_setup.branch", "existing")
            return await _refresh_existing(credentials, existing, auth_client=auth_client)

        span.set_attribute("admin_setup.branch", "create")
        return await _create_and_link(
            credentials,
            auth_client=auth_client,
            user_table=user_table,
            users_table_name=users_table_name,
        )


async def _refresh_existing(
    credentials: AdminCredentials,
    existing: AuthAccount,
    *,
    auth_client: AuthAdminClient,
) -> ReconcileResult:
    logger.info("admin user already exists in auth service", extra={"component": "admin_setup"})
    await auth_client.update_user_by_id(existing.id, password=credentials.password)
    logger.info("admin password updated", extra={"component": "admin_setup"})

    if existing.id != credentials.expected_user_id:
        warning = (
            f"auth user id ({existing.id}) does not match expected id "
            f"({credentials.expected_user_id}); the users table may need a manual update"
        )
        logger.warning(warning, extra={"component": "admin_setup"})
        return ReconcileResult(
            outcome=ReconcileOutcome.SUCCESS_WITH_WARNING,
            auth_user_id=existing.id,
            created=False,
            warning=warning,
        )
    logger.info("auth user id matches expected id", extra={"component": "admin_setup"})
    return ReconcileResult(outcome=ReconcileOutcome.SUCCESS, auth_user_id=existing.id, created=False)


async def _create_and_link(
    credentials: AdminCredentials,
    *,
    auth_client: AuthAdminClient,
    user_table: RestTableClient,
    users_table_name: str,
) -> ReconcileResult:
    created = await auth_client.create_user(
        email=credentials.email,
        password=credentials.password,
        email_confirm=True,
        user_metadata=dict(ADMIN_METADATA),
    )
    logger.info("admin user created in auth service: %s", created.id, extra={"component": "admin_setup"})

    try:
        await user_table.update(
            users_table_name,
            {"id": created.id},
            filters={"id": f"eq.{credentials.expected_user_id}"},
        )
    except LocalStoreError as exc:
        warning = (
            f"could not update {users_table_name} table ({exc}); "
            f"set the admin row id to {created.id} manually"
        )
        logger.warning(warning, extra={"component": "admin_setup"})
        return ReconcileResult(
            outcome=ReconcileOutcome.SUCCESS_WITH_WARNING,
            auth_user_id=created.id,
            created=True,
            warning=warning,
        )

    logger.info("%s table updated with auth user id", users_table_name, extra={"component": "admin_setup"})
    return ReconcileResult(outcome=ReconcileOutcome.SUCCESS, auth_user_id=created.id, created=True)
