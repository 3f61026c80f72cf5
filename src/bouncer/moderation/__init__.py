"""
Risk scoring and the moderation workflow built on top of it.

- flag_engine: pure scoring of member profiles
- suspect_roster: per-guild list of flagged members for manual triage
- verification_ledger / whitelist: persisted verification state
- moderation_workflow: join handling, roster commands and redemption
"""
