"""Known sink addresses: destinations treated as unrecoverable."""

from collections.abc import Iterable, Iterator

DEFAULT_BURN_ADDRESSES = frozenset({
    "1nc1nerator11111111111111111111111111111111",  # incinerator
    "11111111111111111111111111111111",  # system program
    "1111111111111111111111111111111111111111111",
    "Burn111111111111111111111111111111111111111",
})


class BurnAddressRegistry:
    """Read-only set of sink addresses, safe to share across audits."""

    def __init__(self, extra: Iterable[str] = ()) -> None:
        self._addresses = DEFAULT_BURN_ADDRESSES | frozenset(
            a.strip() for a in extra if a and a.strip()
        )

    @classmethod
    def from_csv(cls, value: str) -> "BurnAddressRegistry":
        """Build from a comma-separated list of extra sink addresses."""
        return cls(value.split(",") if value else ())

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address in self._addresses

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._addresses))

    def __len__(self) -> int:
        return len(self._addresses)

    def is_sink(self, *addresses: str | None) -> bool:
        """True when any of the given addresses (account or owner) is a sink."""
        return any(a in self._addresses for a in addresses if a)
