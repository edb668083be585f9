"""
Monitoring package - Commute traffic watching

Submodules:
- models: Locations, traffic readings and monitoring sessions
- classifier: Delay percentage to calm / elevated / severe
- registry: In-memory session store with per-user locking
- scheduler: Periodic and forced traffic checks
- events: SessionChecked event and publisher contract
- service: Control surface used by the API layer
"""
