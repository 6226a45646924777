"""Identity & access bridge between control/test processes and a Keycloak IdP."""

__version__ = "0.1.0"
