"""Core identity bridge logic.

Module Structure:
    - keycloak/  : Endpoint discovery, secrets, tokens, HTTP client, directory
    - bridge.py  : Assembles the keycloak components from settings

Usage Pattern:
    from idbridge.config import load_settings
    from idbridge.core.bridge import IdentityBridge

    bridge = IdentityBridge.from_settings(load_settings())
    token = bridge.broker.refreshed_admin_token()
"""
