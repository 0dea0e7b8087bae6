"""HTTP routers for the pacer service."""
