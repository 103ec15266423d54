"""User management API with request admission guards."""
