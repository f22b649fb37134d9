"""Operational helpers for the pipelines CLI.

Contains the logic behind the subcommands:
- ``presence``: Presence-aware container used by partial updates
- ``config_builder``: Pure assembly of create configs and update patches
- ``credentials``: R2 bucket check, service token issuance, propagation delay
- ``commands``: One coroutine per subcommand
"""
