"""One-shot entrypoints run by GitHub Actions workflows.

``redeem`` handles a single issue event, ``sweep`` and ``reconcile`` run on a
schedule against the whole store.
"""
