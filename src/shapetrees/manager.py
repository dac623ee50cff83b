"""Shape tree managers and the assignments they hold.

A manager is the sidecar document of a managed resource. It is stored as
Turtle, in this form:

```turtle
<manager> a st:Manager ;
    st:hasAssignment <manager#a1> .

<manager#a1> a st:Assignment ;
    st:assigns <http://shapetrees.example/#tree> ;
    st:manages <resource> ;
    st:hasRootAssignment <manager#a1> .
```
"""

import logging
from dataclasses import dataclass, fields
from typing import Iterable, Iterator, Optional
from uuid import uuid4

from rdflib import Graph, URIRef
from rdflib.term import Node

from shapetrees.exceptions import InputError, ProtocolError
from shapetrees.graph import new_graph
from shapetrees.namespaces import rdf, st

logger = logging.getLogger(__name__)


def mint_fragment_identifier() -> str:
    return str(uuid4())


def to_uri(value) -> Optional[URIRef]:
    return URIRef(str(value)) if value is not None else None


@dataclass(frozen=True)
class ShapeTreeAssignment:
    """One binding of a managed resource to a shape tree. The `url` is the
    identity ("slot") of the assignment within its manager; the other fields
    are its content.

    ```pycon
    >>> a = ShapeTreeAssignment(
    ...     shape_tree='http://shapetrees.example/#tree',
    ...     managed_resource='http://pod.example/data/',
    ...     root_assignment='http://pod.example/data/.shapetree#a1',
    ...     url='http://pod.example/data/.shapetree#a1',
    ... )

    >>> a.is_root_assignment
    True
    ```

    A `focus_node` must be accompanied by a `shape`, and vice versa.

    :raises InputError: if a required field is missing, or the focus node
        and shape do not agree
    """
    shape_tree: URIRef
    managed_resource: URIRef
    root_assignment: URIRef
    url: URIRef
    focus_node: Optional[URIRef] = None
    shape: Optional[URIRef] = None

    def __post_init__(self):
        for name in ('shape_tree', 'managed_resource', 'root_assignment', 'url'):
            if getattr(self, name) is None:
                raise InputError(f'Failed to initialize shape tree assignment: {name} is required')
        if self.shape is not None and self.focus_node is None:
            raise InputError('Failed to initialize shape tree assignment: a shape requires a focus node')
        if self.shape is None and self.focus_node is not None:
            raise InputError('Failed to initialize shape tree assignment: cannot have a focus node without a shape')
        # frozen, so normalize via object.__setattr__
        for f in fields(self):
            object.__setattr__(self, f.name, to_uri(getattr(self, f.name)))

    @property
    def is_root_assignment(self) -> bool:
        return self.url == self.root_assignment

    def same_slot(self, other: 'ShapeTreeAssignment') -> bool:
        return self.url == other.url

    def add_to_graph(self, graph: Graph):
        graph.add((self.url, rdf.type, st.Assignment))
        graph.add((self.url, st.assigns, self.shape_tree))
        graph.add((self.url, st.manages, self.managed_resource))
        graph.add((self.url, st.hasRootAssignment, self.root_assignment))
        if self.shape is not None:
            graph.add((self.url, st.shape, self.shape))
        if self.focus_node is not None:
            graph.add((self.url, st.focusNode, self.focus_node))

    @classmethod
    def from_graph(cls, url: str, graph: Graph) -> 'ShapeTreeAssignment':
        subject = URIRef(str(url))
        triples = list(graph.predicate_objects(subject))
        # at least a shape tree, a managed resource, and a root assignment
        if len(triples) < 3:
            raise ProtocolError(f'Incomplete shape tree assignment <{url}>: only {len(triples)} attributes found')

        values = {}
        for predicate, obj in triples:  # type: URIRef, Node
            if predicate == rdf.type:
                if obj != st.Assignment:
                    raise ProtocolError(f'Unexpected type of assignment <{url}>: {obj}')
                continue
            try:
                name = ASSIGNMENT_PREDICATES[predicate]
            except KeyError as e:
                raise ProtocolError(f'Unexpected predicate on assignment <{url}>: {predicate}') from e
            if not isinstance(obj, URIRef):
                raise ProtocolError(f'Object of <{url}> <{predicate}> must be a URI, got {obj!r}')
            values[name] = obj

        try:
            return cls(url=subject, **{k: values.get(k) for k in ASSIGNMENT_PREDICATES.values()})
        except InputError as e:
            raise ProtocolError(f'Invalid shape tree assignment <{url}>: {e}') from e


ASSIGNMENT_PREDICATES = {
    st.assigns: 'shape_tree',
    st.manages: 'managed_resource',
    st.hasRootAssignment: 'root_assignment',
    st.shape: 'shape',
    st.focusNode: 'focus_node',
}


class ShapeTreeManager:
    """The set of shape tree assignments for one managed resource. Assignments
    are unique by `url`, and kept in the order they were added."""

    def __init__(self, id: str, assignments: Iterable[ShapeTreeAssignment] = ()):
        self.id = URIRef(str(id))
        self._assignments: dict[URIRef, ShapeTreeAssignment] = {}
        for assignment in assignments:
            self.add_assignment(assignment)

    def __repr__(self):
        return f'{self.__class__.__name__}(id={self.id!r}, assignments={self.assignments!r})'

    def __eq__(self, other):
        if not isinstance(other, ShapeTreeManager):
            return NotImplemented
        return self.id == other.id and set(self.assignments) == set(other.assignments)

    def __iter__(self) -> Iterator[ShapeTreeAssignment]:
        return iter(self.assignments)

    def __len__(self):
        return len(self._assignments)

    def __contains__(self, assignment: ShapeTreeAssignment):
        return self._assignments.get(assignment.url) == assignment

    @property
    def assignments(self) -> list[ShapeTreeAssignment]:
        return list(self._assignments.values())

    def get_assignment(self, url: str) -> Optional[ShapeTreeAssignment]:
        return self._assignments.get(URIRef(str(url)), None)

    def copy(self) -> 'ShapeTreeManager':
        return ShapeTreeManager(self.id, self.assignments)

    def add_assignment(self, assignment: ShapeTreeAssignment):
        """Add `assignment`, replacing any existing assignment in the same slot."""
        if assignment is None:
            raise InputError('Must provide an assignment to add')
        self._assignments[assignment.url] = assignment

    def remove_assignment(self, assignment: ShapeTreeAssignment):
        if assignment is None:
            raise InputError('Cannot remove a null assignment')
        if assignment not in self:
            raise InputError(f'Cannot remove assignment <{assignment.url}> that does not exist in manager <{self.id}>')
        del self._assignments[assignment.url]

    def remove_assignment_for_shapetree(self, shape_tree: str) -> list[ShapeTreeAssignment]:
        """Remove every assignment of `shape_tree`, whatever its slot. Returns
        the list of removed assignments, which is empty if there were none."""
        shape_tree = URIRef(str(shape_tree))
        removed = [a for a in self._assignments.values() if a.shape_tree == shape_tree]
        for assignment in removed:
            del self._assignments[assignment.url]
        return removed

    def get_assignment_for_shapetree(self, shape_tree: str) -> Optional[ShapeTreeAssignment]:
        shape_tree = URIRef(str(shape_tree))
        for assignment in self._assignments.values():
            if assignment.shape_tree == shape_tree:
                return assignment
        return None

    def get_assignment_for_root(self, root_assignment: ShapeTreeAssignment) -> Optional[ShapeTreeAssignment]:
        """Find the assignment in this manager whose root is `root_assignment`."""
        for assignment in self._assignments.values():
            if assignment.root_assignment == root_assignment.url:
                return assignment
        return None

    def mint_assignment_url(self) -> URIRef:
        """Generate a URL for a new assignment, as a fragment of the manager's
        own URL. Never returns the URL of an existing slot."""
        while True:
            url = URIRef(f'{self.id}#{mint_fragment_identifier()}')
            if url not in self._assignments:
                return url
            logger.debug(f'Minted assignment URL <{url}> is already in use')

    @property
    def graph(self) -> Graph:
        graph = new_graph()
        graph.add((self.id, rdf.type, st.Manager))
        for assignment in self._assignments.values():
            graph.add((self.id, st.hasAssignment, assignment.url))
            assignment.add_to_graph(graph)
        return graph

    @classmethod
    def from_graph(cls, id: str, graph: Graph) -> 'ShapeTreeManager':
        """Rebuild a manager from its graph. The graph must describe exactly
        one `st:Manager`; its assignments are read from `st:hasAssignment`.

        :raises ProtocolError: if there is not exactly one manager node, or an
            assignment is malformed
        """
        manager_nodes = list(graph.subjects(rdf.type, st.Manager))
        if len(manager_nodes) > 1:
            raise ProtocolError(f'Multiple shape tree managers found in <{id}>: {len(manager_nodes)}')
        elif len(manager_nodes) == 0:
            raise ProtocolError(f'No shape tree manager found in <{id}>')

        manager = cls(id)
        for node in sorted(graph.objects(manager_nodes[0], st.hasAssignment)):
            if not isinstance(node, URIRef):
                raise ProtocolError(f'Object of <{manager_nodes[0]}> st:hasAssignment must be a URI, got {node!r}')
            manager.add_assignment(ShapeTreeAssignment.from_graph(node, graph))
        return manager
