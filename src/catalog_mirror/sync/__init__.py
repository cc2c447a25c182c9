"""Remote synchronization job control.

- ``controller`` -- ``SyncController``: start -> poll -> terminate.
- ``session``    -- ``SyncState``, ``SyncSession`` snapshots and the
  ``SyncPolicy`` timing config.

Usage example
-------------
::

    controller = SyncController(gateway, config.sync_policy())
    controller.subscribe(lambda s: print(s.state, s.progress))
    session = await controller.run()
    if session.state is SyncState.SUCCEEDED:
        await mirror.refresh()
"""

from .controller import SyncController
from .session import SyncPolicy, SyncSession, SyncState

__all__ = [
    "SyncController",
    "SyncPolicy",
    "SyncSession",
    "SyncState",
]
