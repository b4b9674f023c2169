"""
AI Tax Calculator - Main Application Entry Point

Streamlit application pairing a charitable donation tax calculator with a
Gemini-backed chat advisor. Users sign in through the configured identity
provider and must be on the email whitelist to reach the dashboard.
"""

import streamlit as st

from auth import AccessPolicy, WhitelistStore, require_access
from config_utils import configure_logging, load_app_config


@st.cache_resource
def get_access_policy(whitelist_path: str) -> AccessPolicy:
    """One whitelist store per process, shared across sessions"""
    return AccessPolicy(WhitelistStore(whitelist_path))


st.set_page_config(
    page_title="AI Tax Calculator",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="collapsed"
)

config = load_app_config()
configure_logging(config)
st.session_state.app_config = config

decision = require_access(get_access_policy(config['whitelist_path']))

with st.sidebar:
    st.markdown(f"Signed in as **{decision.display_name}**")
    if st.button("Sign out"):
        st.logout()

pages = [
    st.Page("pages/dashboard.py", title="Dashboard", icon="📊", default=True),
]

pg = st.navigation(pages, position="hidden")
pg.run()
