"""Live scenario tests against the deployed mercado API (opt-in)."""
