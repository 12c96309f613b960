"""
Cluster topology agent package.

Modules:
- snapshot: node records, topology snapshots and cluster identity diff
- rest: REST client for the cluster management endpoint
- channel: event channels toward subscribers (in-memory, HTTP relay)
- scheduler: single-worker fixed-delay scheduler
- listener: watch/broadcast poll tasks and mode switching
- config: YAML + environment configuration
- api: Flask endpoints for broadcast triggers and topology views
"""
