"""
Bouncer - Discord bot that screens new members

Bouncer scores every member who joins a server against a handful of
heuristic signals (default avatar, spam-like name, brand new account, ...).
Suspicious accounts are banned and sent a link to a verification page; a
user who comes back with the right code is unbanned and whitelisted.

Core Components:

- **Flag engine**: pure scoring of member profiles
- **Suspect roster**: per-server list of flagged members that moderators
  triage with ``!bb prepare``, ``!bb list``, ``!bb spare`` and ``!bb kick``
- **Verification ledger**: persisted verification records, redeemed with a
  ``verify <code>`` direct message or by the verification web server
- **Whitelist**: users exempt from further screening

Usage:
    from bouncer.main import main
    main()
"""
