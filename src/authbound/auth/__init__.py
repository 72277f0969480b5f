"""Authentication flows: constraint policy, token issuance and SSO metadata."""
