from contextlib import contextmanager
from typing import Iterator

from ape import chain
from ape.types import SnapshotID


def create_snapshot() -> SnapshotID:
    """
    Captures the full state of the connected development chain.

    The returned identifier is valid for a single ``revert_to_snapshot`` call;
    reverting also discards every snapshot taken after it.
    """
    return chain.snapshot()


def revert_to_snapshot(snapshot_id: SnapshotID) -> None:
    """
    Restores the chain to the state captured by ``snapshot_id``.

    Raises ``ape.exceptions.ChainError`` if the identifier is unknown or was already consumed.
    """
    chain.restore(snapshot_id)


@contextmanager
def isolated_chain() -> Iterator[SnapshotID]:
    """Runs the enclosed block against the chain, then reverts every change it made."""
    snapshot_id = create_snapshot()
    try:
        yield snapshot_id
    finally:
        revert_to_snapshot(snapshot_id)
