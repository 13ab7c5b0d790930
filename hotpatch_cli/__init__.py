"""
HotPatch CLI - command-line interface for publishing hot updates.

Commands:
- login: Store a registry endpoint and API token
- release: Build, sign and publish a release (and its patch)
- patch: Generate a patch between two published releases
- rollback: Make a previous release active again
- keygen: Create the Ed25519 signing keypair
- keys: Manage bundle encryption keys
- status: Show the local configuration
"""
