"""HTTP routers and error handling."""
