"""Off-chain operator: watches the ledger for new tasks and answers them.

One :class:`~carbonx.operator.watcher.CategoryWatcher` runs per task category
as its own asyncio task. Each owns its scan cursor and processed-task memory,
so categories never share mutable state. The ledger, not the memory, is the
source of truth for exactly-once acceptance.
"""
