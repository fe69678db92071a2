from collections.abc import Container


class LiveSet:
    """Addresses believed live, mapped to their last recorded allocation size.

    Sizes are Python ints, so totals never overflow no matter how long the trace.

    Example:
        live = LiveSet()
        live.record(0x10, 100)
        live.record(0x30, 50)
        freed = live.reconcile({0x30})  # 100, 0x10 was not marked
    """

    def __init__(self):
        self._sizes: dict[int, int] = {}

    def record(self, address: int, size: int) -> None:
        """Insert or overwrite the entry for address. Reusing a swept address is fine."""
        self._sizes[address] = size

    def reconcile(self, marked: Container[int]) -> int:
        """Sweep every entry whose address is not in marked.

        An empty marked set sweeps everything currently live.

        Args:
            marked: Addresses visited by the collector during the phase.

        Returns:
            Sum of the sizes of the removed entries.
        """
        unmarked = [address for address in self._sizes if address not in marked]
        freed = 0
        for address in unmarked:
            freed += self._sizes.pop(address)
        return freed

    @property
    def total(self) -> int:
        """Bytes currently live."""
        return sum(self._sizes.values())

    def get(self, address: int, default: int | None = None) -> int | None:
        return self._sizes.get(address, default)

    def snapshot(self) -> dict[int, int]:
        return dict(self._sizes)

    def __contains__(self, address: object) -> bool:
        return address in self._sizes

    def __len__(self) -> int:
        return len(self._sizes)

    def __repr__(self) -> str:
        return f"LiveSet(entries={len(self)}, total={self.total})"
