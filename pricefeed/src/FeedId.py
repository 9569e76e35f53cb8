"""FeedId: Identifier of a logical asset price target.

A feed is identified by a numeric category tag and a symbol name. The
string form is "<category>:<name>", which keeps the slash in names like
"BTC/USD" unambiguous.

.. code-block:: python

    >>> feed = FeedId(1, "BTC/USD")
    >>> str(feed)
    '1:BTC/USD'
    >>> FeedId.from_string("1:ETH/USD").name
    'ETH/USD'
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, repr=False)
class FeedId:
    """A feed identifier, hashable and compared by value.

    :ivar category: Integer category tag.
    :ivar name: Symbol identifier (e.g., "BTC/USD").
    """

    category: int
    name: str

    def __str__(self) -> str:
        """Return the "<category>:<name>" form."""
        return f"{self.category}:{self.name}"

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""
        return f"FeedId({self.category!r}, {self.name!r})"

    def to_dict(self) -> dict[str, int | str]:
        """Return a plain mapping, used in log messages."""
        return {"category": self.category, "name": self.name}

    @classmethod
    def from_string(cls, feed_str: str) -> FeedId:
        """Parse a feed string in format "category:name".

        :param feed_str: Feed string like "1:BTC/USD".
        :returns: New FeedId instance.
        :raises ValueError: If the feed string format is invalid.

        .. code-block:: python

            >>> FeedId.from_string("1:USDT/USD")
            FeedId(1, 'USDT/USD')
        """
        category, sep, name = feed_str.partition(":")
        if not sep or not name:
            raise ValueError(
                f"Invalid feed format '{feed_str}'. Expected 'category:name' (e.g., '1:BTC/USD')"
            )
        try:
            return cls(int(category), name)
        except ValueError as e:
            raise ValueError(
                f"Invalid feed format '{feed_str}'. Category must be an integer"
            ) from e


# Quote-currency conversion feed for USDT-quoted sources.
USDT_USD_FEED = FeedId(1, "USDT/USD")
