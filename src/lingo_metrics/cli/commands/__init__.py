"""CLI command groups for lingo_metrics.

Command groups:
- query: Registered queries and raw results
- metrics: Dashboard aggregates
- cache: Local cache management
- config: Config file management

Top-level commands:
- dashboard: Load every source at once
- refresh: Re-execute the refreshable queries
- serve: Run the proxy locally
"""
