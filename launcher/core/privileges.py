"""Privilege switcher.

Group identity must change before user identity: once setuid gives up
root, setgid is no longer permitted.
"""

from __future__ import annotations

import logging
import os
import pwd

from launcher.core.errors import PrivilegeDropError, UnknownUserError
from launcher.core.models import Account, PrivilegeState

logger = logging.getLogger(__name__)


def lookup_account(user: str) -> Account:
    try:
        entry = pwd.getpwnam(user)
    except KeyError:
        raise UnknownUserError(f"failed to get username information for {user}") from None
    return Account(name=entry.pw_name, uid=entry.pw_uid, gid=entry.pw_gid, home=entry.pw_dir)


def drop_privileges(account: Account) -> PrivilegeState:
    """Switch the process to ``account``. Irreversible."""
    try:
        # Only root may rewrite the supplementary group list; without this the
        # executor would keep root's groups
        if os.geteuid() == 0:
            os.initgroups(account.name, account.gid)
        os.setgid(account.gid)
    except OSError as e:
        raise PrivilegeDropError("failed to setgid", stage="group", cause=e) from e

    try:
        os.setuid(account.uid)
    except OSError as e:
        raise PrivilegeDropError("failed to setuid", stage="user", cause=e) from e

    logger.info(f"Switched to user {account.name} (uid={account.uid}, gid={account.gid})")
    return PrivilegeState(switched=True, user=account.name, uid=account.uid, gid=account.gid)
