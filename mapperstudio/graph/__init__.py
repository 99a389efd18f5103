"""
Node/edge view of the mapping set.

- models: nodes, edges, projection result
- orphans: nodes without a backing record
- projection: derivation from the record list, position cache
- controller: diagram gestures written back to the store
"""
