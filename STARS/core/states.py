"""
STARS/core/states.py

Fixed 50-state reference table, seeded once and exposed read-only.

License: MIT
"""
from __future__ import annotations
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import NotFoundError
from .models import State

US_STATES: Tuple[Tuple[str, str], ...] = (
    ("AL", "Alabama"), ("AK", "Alaska"), ("AZ", "Arizona"), ("AR", "Arkansas"),
    ("CA", "California"), ("CO", "Colorado"), ("CT", "Connecticut"), ("DE", "Delaware"),
    ("FL", "Florida"), ("GA", "Georgia"), ("HI", "Hawaii"), ("ID", "Idaho"),
    ("IL", "Illinois"), ("IN", "Indiana"), ("IA", "Iowa"), ("KS", "Kansas"),
    ("KY", "Kentucky"), ("LA", "Louisiana"), ("ME", "Maine"), ("MD", "Maryland"),
    ("MA", "Massachusetts"), ("MI", "Michigan"), ("MN", "Minnesota"), ("MS", "Mississippi"),
    ("MO", "Missouri"), ("MT", "Montana"), ("NE", "Nebraska"), ("NV", "Nevada"),
    ("NH", "New Hampshire"), ("NJ", "New Jersey"), ("NM", "New Mexico"), ("NY", "New York"),
    ("NC", "North Carolina"), ("ND", "North Dakota"), ("OH", "Ohio"), ("OK", "Oklahoma"),
    ("OR", "Oregon"), ("PA", "Pennsylvania"), ("RI", "Rhode Island"), ("SC", "South Carolina"),
    ("SD", "South Dakota"), ("TN", "Tennessee"), ("TX", "Texas"), ("UT", "Utah"),
    ("VT", "Vermont"), ("VA", "Virginia"), ("WA", "Washington"), ("WV", "West Virginia"),
    ("WI", "Wisconsin"), ("WY", "Wyoming"),
)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class StateCatalog:
    """
    Immutable catalog of states, iterated in seeding order.

    Examples
    --------
    >>> catalog = StateCatalog.default()
    >>> catalog.get("ca").name
    'California'
    >>> len(catalog)
    50
    """

    def __init__(self, states: Iterable[State]):
        self._by_code: Dict[str, State] = {}
        for st in states:
            self._by_code[normalize_code(st.code)] = st

    @classmethod
    def default(cls) -> "StateCatalog":
        return cls(State(code=c, name=n, abbreviation=c) for c, n in US_STATES)

    def list_states(self) -> List[State]:
        return list(self._by_code.values())

    def find(self, code: str) -> Optional[State]:
        return self._by_code.get(normalize_code(code))

    def get(self, code: str) -> State:
        st = self.find(code)
        if st is None:
            raise NotFoundError("state", code)
        return st

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and normalize_code(code) in self._by_code

    def __iter__(self) -> Iterator[State]:
        return iter(self._by_code.values())

    def __len__(self) -> int:
        return len(self._by_code)

    def __repr__(self) -> str:
        return f"StateCatalog(n={len(self)})"
