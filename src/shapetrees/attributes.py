import logging
from typing import Iterable, Iterator, Mapping, Optional

from requests.structures import CaseInsensitiveDict
from requests.utils import parse_header_links

logger = logging.getLogger(__name__)

LINK = 'Link'


class ResourceAttributes:
    """Case-insensitive, ordered multi-map of attribute (i.e., HTTP header)
    names to lists of string values.

    ```pycon
    >>> attributes = ResourceAttributes('Content-Type', 'text/turtle')

    >>> attributes.first_value('content-type')
    'text/turtle'
    ```

    A name never maps to an empty list. `set()` only appends a value that is
    not already present; `add()` always appends:

    ```pycon
    >>> attributes.set('Link', '<http://example.com/a>; rel="type"')
    >>> attributes.set('Link', '<http://example.com/a>; rel="type"')
    >>> len(attributes.all_values('Link'))
    1

    >>> attributes.add('Link', '<http://example.com/a>; rel="type"')
    >>> len(attributes.all_values('Link'))
    2
    ```
    """

    def __init__(self, name: str = None, value: str = None, values: Mapping[str, Iterable[str]] = None):
        self._values: CaseInsensitiveDict = CaseInsensitiveDict()
        if values is not None:
            for key, key_values in values.items():
                self.set_all(key, key_values)
        self.set(name, value)

    def __str__(self):
        return ','.join(f'{name}={value}' for name, values in self._values.items() for value in values)

    def __repr__(self):
        return f'{self.__class__.__name__}({self.to_multimap()!r})'

    def __eq__(self, other):
        if not isinstance(other, ResourceAttributes):
            return NotImplemented
        return self._values == other._values

    def __contains__(self, name):
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __bool__(self):
        return len(self._values) > 0

    def copy(self) -> 'ResourceAttributes':
        return ResourceAttributes(values=self._values)

    def set(self, name: Optional[str], value: Optional[str]):
        """Append `value` to the values for `name`, unless that exact value
        is already present. Does nothing if either argument is `None` or
        empty."""
        if not name or not value:
            return
        if name in self._values:
            if value not in self._values[name]:
                self._values[name].append(value)
        else:
            self._values[name] = [value]

    def add(self, name: Optional[str], value: Optional[str]):
        """Append `value` to the values for `name`, even if it is already
        present. Does nothing if either argument is `None` or empty."""
        if not name or not value:
            return
        self._values.setdefault(name, []).append(value)

    def set_all(self, name: str, values: Iterable[str]):
        """Replace all the values for `name`. Passing an empty iterable
        removes `name` entirely."""
        values = [v for v in values if v]
        if values:
            self._values[name] = values
        elif name in self._values:
            del self._values[name]

    def plus(self, name: Optional[str], value: Optional[str]) -> 'ResourceAttributes':
        """Return a copy of these attributes with `value` set for `name`. If
        either argument is `None` or empty, returns this object unchanged."""
        if not name or not value:
            return self
        attributes = self.copy()
        attributes.set(name, value)
        return attributes

    def first_value(self, name: str) -> Optional[str]:
        """Returns the first value for `name`, or `None` if it is not present."""
        values = self.all_values(name)
        return values[0] if values else None

    def all_values(self, name: str) -> list[str]:
        """Returns the list of values for `name`, or an empty list if it is
        not present."""
        return list(self._values.get(name, []))

    def items(self):
        return ((name, list(values)) for name, values in self._values.items())

    def to_multimap(self) -> dict[str, list[str]]:
        return dict(self.items())

    def to_headers(self, *exclusions: str) -> dict[str, str]:
        """Flatten to a dictionary suitable for passing as request headers.
        Multiple values are joined with `", "`. Names in `exclusions` are
        matched case-insensitively and left out."""
        excluded = {name.lower() for name in exclusions}
        return {
            name: ', '.join(values)
            for name, values in self._values.items()
            if name.lower() not in excluded
        }


def parse_link_headers(header_values: Iterable[str]) -> ResourceAttributes:
    """Decompose one or more HTTP `Link` header values into a `ResourceAttributes`
    object that maps each link relation type to the list of its target URLs.

    ```pycon
    >>> links = parse_link_headers([
    ...     '<http://www.w3.org/ns/ldp#BasicContainer>; rel="type", <http://www.w3.org/ns/ldp#Resource>; rel="type"',
    ...     '<foo.shapetree>; rel="http://www.w3.org/ns/shapetrees#managedBy"',
    ... ])

    >>> links.all_values('type')
    ['http://www.w3.org/ns/ldp#BasicContainer', 'http://www.w3.org/ns/ldp#Resource']

    >>> links.first_value('http://www.w3.org/ns/shapetrees#managedBy')
    'foo.shapetree'
    ```
    """
    links = ResourceAttributes()
    for header_value in header_values:
        for link in parse_header_links(header_value):
            url = link.get('url')
            rel = link.get('rel')
            if url and rel:
                links.add(rel, url)
            else:
                logger.warning(f'Unable to parse link header: [{header_value}]')
    return links
