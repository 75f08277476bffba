"""
Rent Reclaim Module
===================
Recovers rent the operator locked up by sponsoring account creation.

Components:
- instruction_matcher.py: Pure classification of parsed instructions
- token_layout.py: Tagged-variant SPL token account decoder
- monitor.py: Discovery from operator transaction history
- analyzer.py: Safety gates, Active -> Reclaimable
- reclaimer.py: Close / transfer execution, Reclaimable -> Reclaimed
- audit_trail.py: Plain-text audit.log
- scheduler.py: Cadences and the RunGuard
- config.py: Thresholds and constants
- cli.py: Command-line interface

Status workflow: Active -> Reclaimable -> Reclaimed (or Active -> Reclaimed
when the account disappears on-chain).
"""

from rentguard.modules.reclaim.config import ReclaimConfig

__all__ = [
    'ReclaimConfig',
]
