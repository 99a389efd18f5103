"""
Mapping records and the store that owns them.

- mapping: record/suggestion data model and enums
- store: ordered record list, the single source of truth
- provenance: manual-confirmation gate
- signature: structural hashes for change detection
"""
