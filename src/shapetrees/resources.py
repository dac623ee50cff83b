"""Typed views of a resource, as determined from an HTTP response.

The variants form a closed set:

* `ManageableResource`, and its refinements `ManagedResource` and `UnmanagedResource`
* `MissingManageableResource`
* `ManagerResource`
* `MissingManagerResource`

Code that consumes them checks the most specific classes first, and raises
for anything it does not expect.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urljoin

from rdflib import Graph
from urlobject import URLObject

from shapetrees.attributes import ResourceAttributes
from shapetrees.graph import read_graph
from shapetrees.http import HttpHeader
from shapetrees.manager import ShapeTreeManager
from shapetrees.namespaces import st

logger = logging.getLogger(__name__)


class ShapeTreeResourceType(Enum):
    CONTAINER = st.CONTAINER
    RESOURCE = st.RESOURCE
    NON_RDF = st.NonRDFResource


@dataclass(frozen=True)
class InstanceResource:
    url: URLObject
    resource_type: ShapeTreeResourceType
    attributes: ResourceAttributes
    body: Optional[str]
    name: str

    @property
    def exists(self) -> bool:
        return True

    @property
    def content_type(self) -> Optional[str]:
        return self.attributes.first_value(HttpHeader.CONTENT_TYPE)

    def graph(self, base_url: str = None) -> Optional[Graph]:
        """Parse the body of this resource into an `rdflib.Graph`. Relative
        IRIs are resolved against `base_url`, which defaults to the URL of this
        resource. Returns `None` if the resource does not exist.

        :raises ShapeTreeError: if the body cannot be parsed
        """
        if not self.exists:
            return None
        return read_graph(base_url or self.url, self.body, self.content_type)


@dataclass(frozen=True)
class ManageableResource(InstanceResource):
    """A regular resource that is, or could be, managed by one or more shape
    trees."""
    manager_resource_url: Optional[URLObject] = None
    is_container: bool = False

    @classmethod
    def from_manageable(cls, resource: 'ManageableResource', manager_url: Optional[str]):
        """Copy `resource` as an instance of this class, with `manager_url` as
        its manager resource URL."""
        return cls(
            url=resource.url,
            resource_type=resource.resource_type,
            attributes=resource.attributes.copy(),
            body=resource.body,
            name=resource.name,
            manager_resource_url=manager_url,
            is_container=resource.is_container,
        )

    @property
    def parent_container_url(self) -> URLObject:
        return URLObject(urljoin(str(self.url), '..' if self.is_container else '.'))


@dataclass(frozen=True)
class MissingManageableResource(ManageableResource):
    """A manageable resource that was confirmed not to exist."""

    @property
    def exists(self) -> bool:
        return False


@dataclass(frozen=True)
class ManagedResource(ManageableResource):
    """An existing manageable resource with an existing manager."""


@dataclass(frozen=True)
class UnmanagedResource(ManageableResource):
    """An existing manageable resource whose manager does not exist."""


@dataclass(frozen=True)
class ManagerResource(InstanceResource):
    """The document holding the shape tree manager for the resource at
    `managed_resource_url`."""
    managed_resource_url: Optional[URLObject] = None

    @property
    def manager(self) -> Optional[ShapeTreeManager]:
        """Decode the body of this resource. Returns `None` if it does not exist.

        :raises ProtocolError: if the body does not describe exactly one manager
        """
        graph = self.graph(self.url)
        if graph is None:
            return None
        return ShapeTreeManager.from_graph(self.url, graph)


@dataclass(frozen=True)
class MissingManagerResource(ManagerResource):
    """A manager document that was confirmed not to exist. The resource at
    `managed_resource_url` is therefore unmanaged."""

    @property
    def exists(self) -> bool:
        return False
