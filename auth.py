"""
Access control: the identity provider says who the user is, the whitelist says
whether they may use the app.

Authentication is delegated entirely to Streamlit's OpenID Connect login
(st.login / st.user). Authorization is a single lookup of the verified email
in a JSON whitelist. No passwords are stored or compared here.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import streamlit as st

logger = logging.getLogger(__name__)

NOT_SIGNED_IN = "not_signed_in"
MISSING_EMAIL = "missing_email"
NOT_REGISTERED = "not_registered"

DENIAL_MESSAGES = {
    NOT_SIGNED_IN: "Sign in to your account",
    MISSING_EMAIL: "Your sign-in provider did not share an email address.",
    NOT_REGISTERED: "This email is not registered. If you previously had access, it has been revoked. Please contact support.",
}


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity asserted by the identity provider"""
    email: Optional[str]
    name: Optional[str] = None


@dataclass(frozen=True)
class WhitelistEntry:
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    identity: Optional[VerifiedIdentity] = None
    entry: Optional[WhitelistEntry] = None
    reason: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return DENIAL_MESSAGES.get(self.reason) if self.reason else None

    @property
    def display_name(self) -> Optional[str]:
        if not self.allowed:
            return None
        if self.entry and self.entry.name:
            return self.entry.name
        return self.identity.name or self.identity.email


def normalize_email(email: str) -> str:
    return email.strip().lower()


class WhitelistStore:
    """
    Email allow-list backed by a JSON file.

    The file holds either a list of emails or {"emails": [...]} where each item is
    an email string or {"email": ..., "name": ...}. The file is re-read whenever
    its modification time changes, so removing an address takes effect on the
    next check.
    """

    def __init__(self, path: str):
        self.path = path
        self._entries: Dict[str, WhitelistEntry] = {}
        self._loaded_mtime: Optional[float] = None

    def _parse(self, items: List[Any]) -> Dict[str, WhitelistEntry]:
        entries = {}
        for item in items:
            if isinstance(item, str):
                email, name = item, None
            elif isinstance(item, dict) and item.get('email'):
                email, name = item['email'], item.get('name')
            else:
                logger.warning("Skipping malformed whitelist entry in %s: %r", self.path, item)
                continue
            key = normalize_email(email)
            entries[key] = WhitelistEntry(email=key, name=name)
        return entries

    def _clear(self):
        self._entries = {}
        self._loaded_mtime = None

    def _refresh(self):
        try:
            mtime = os.path.getmtime(self.path)
        except OSError:
            if self._loaded_mtime is not None:
                logger.warning("Whitelist file %s disappeared; denying all users", self.path)
            self._clear()
            return

        if mtime == self._loaded_mtime:
            return

        try:
            with open(self.path, 'r') as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read whitelist %s, denying all users: %s", self.path, e)
            self._clear()
            return

        items = raw.get('emails', []) if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            logger.warning("Whitelist %s must hold a list of emails, denying all users", self.path)
            self._clear()
            return

        self._entries = self._parse(items)
        self._loaded_mtime = mtime
        logger.info("Loaded %d whitelisted emails from %s", len(self._entries), self.path)

    def lookup(self, email: str) -> Optional[WhitelistEntry]:
        """Find the whitelist entry for an email, case-insensitively"""
        self._refresh()
        return self._entries.get(normalize_email(email))

    def __contains__(self, email: str) -> bool:
        return self.lookup(email) is not None


class AccessPolicy:
    """Decides whether a verified identity may use the app"""

    def __init__(self, whitelist: WhitelistStore):
        self.whitelist = whitelist

    def authorize(self, identity: Optional[VerifiedIdentity]) -> AccessDecision:
        if identity is None:
            return AccessDecision(allowed=False, reason=NOT_SIGNED_IN)

        if not identity.email:
            return AccessDecision(allowed=False, identity=identity, reason=MISSING_EMAIL)

        entry = self.whitelist.lookup(identity.email)
        if entry is None:
            logger.info("Denied access for %s: not whitelisted", identity.email)
            return AccessDecision(allowed=False, identity=identity, reason=NOT_REGISTERED)

        return AccessDecision(allowed=True, identity=identity, entry=entry)


def current_identity() -> Optional[VerifiedIdentity]:
    """Identity of the signed-in Streamlit user, or None when signed out"""
    if not st.user.is_logged_in:
        return None
    return VerifiedIdentity(email=st.user.get('email'), name=st.user.get('name'))


def require_access(policy: AccessPolicy) -> AccessDecision:
    """
    Gate the current page on sign-in and whitelist membership.

    Renders the sign-in or denial screen and stops the script run unless
    access is allowed.
    """
    decision = policy.authorize(current_identity())
    if decision.allowed:
        return decision

    st.title("🧾 AI Tax Calculator")

    if decision.reason == NOT_SIGNED_IN:
        st.write(decision.message)
        if st.button("Continue with Google", type="primary"):
            st.login()
    else:
        st.error(decision.message)
        if st.button("Sign out"):
            st.logout()

    st.stop()
    return decision
