"""Block notifications describing changes at the tip of the chain."""

from __future__ import annotations

from dataclasses import dataclass

from .wire import BlockHeader


class BlockNtfn:
    """Base of all block notifications.

    Every notification exposes the block's ``header`` and ``height`` and the
    ``chain_tip`` header after the block was processed.
    """

    __slots__ = ()

    header: BlockHeader
    height: int
    chain_tip: BlockHeader


@dataclass(frozen=True)
class Connected(BlockNtfn):
    """A block extending the current chain has been found."""

    header: BlockHeader
    height: int

    @property
    def chain_tip(self) -> BlockHeader:
        """The connected block is the new tip."""
        return self.header

    def __str__(self) -> str:
        return f"block connected (height={self.height}, hash={self.header.block_hash()})"


@dataclass(frozen=True)
class Disconnected(BlockNtfn):
    """A block at the tip was removed during a reorganisation."""

    header: BlockHeader
    height: int
    chain_tip: BlockHeader

    def __str__(self) -> str:
        return (
            f"block disconnected (height={self.height}, "
            f"hash={self.header.block_hash()})"
        )