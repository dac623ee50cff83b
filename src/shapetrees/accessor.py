"""Access to shape tree managed resources over HTTP.

Since everything is inferred from HTTP responses, the accessor has no
special knowledge of how a server lays out its resources. It classifies each
response as one of the variants in `shapetrees.resources`, and pairs
manageable resources with their managers as `ManageableInstance` objects.
"""

import logging
import re
from typing import Optional

from rdflib import URIRef
from urlobject import URLObject

from shapetrees.attributes import ResourceAttributes, parse_link_headers
from shapetrees.exceptions import ConsistencyError, InputError, ProtocolError, ShapeTreeError
from shapetrees.graph import is_rdf_type
from shapetrees.http import (
    DELETE, GET, DocumentResponse, HttpClient, HttpHeader, HttpRequest, LinkRelation, ShapeTreeContext, parse_url,
)
from shapetrees.instance import ManageableInstance
from shapetrees.namespaces import ldp
from shapetrees.resources import (
    InstanceResource,
    ManageableResource,
    ManagedResource,
    ManagerResource,
    MissingManageableResource,
    MissingManagerResource,
    ShapeTreeResourceType,
    UnmanagedResource,
)

logger = logging.getLogger(__name__)

CONTAINER_TYPES = {str(ldp.Container), str(ldp.BasicContainer)}
MANAGER_PATH = re.compile(r'.*\.shapetree$')
MANAGER_QUERY = re.compile(r'.*ext=shapetree$')


def is_container_from_headers(attributes: ResourceAttributes, links: ResourceAttributes, url: URLObject) -> bool:
    """With no `Link` headers at all, guess from a trailing slash on the path.
    Otherwise, a container must have a `type` link to `ldp:Container` or
    `ldp:BasicContainer`."""
    if not attributes.all_values(HttpHeader.LINK):
        return url.path.endswith('/')
    return any(t in CONTAINER_TYPES for t in links.all_values(LinkRelation.TYPE))


def get_resource_type(is_container: bool, content_type: Optional[str]) -> ShapeTreeResourceType:
    if is_container:
        return ShapeTreeResourceType.CONTAINER
    if is_rdf_type(content_type):
        return ShapeTreeResourceType.RESOURCE
    return ShapeTreeResourceType.NON_RDF


def calculate_name(url: URLObject) -> str:
    """Last segment of the path, ignoring any trailing slash.

    ```pycon
    >>> calculate_name(URLObject('http://pod.example/data/projects/'))
    'projects'

    >>> calculate_name(URLObject('http://pod.example/'))
    '/'
    ```
    """
    path = url.path
    if path in ('', '/'):
        return '/'
    return path.rstrip('/').rsplit('/', 1)[-1]


def calculate_is_manager(url: URLObject, exists: bool, links: ResourceAttributes) -> bool:
    # an existing resource that is managed by something is not a manager
    if exists and links.first_value(LinkRelation.MANAGED_BY) is not None:
        return False
    if exists and links.first_value(LinkRelation.MANAGES) is not None:
        return True
    # fall back to the URL conventions for manager documents
    if MANAGER_PATH.match(url.path or ''):
        return True
    return MANAGER_QUERY.match(str(url.query or '')) is not None


def calculate_managed_url(manager_url: URLObject, links: ResourceAttributes) -> URLObject:
    """The target of the `manages` link, or if there is none, the manager URL
    without its `.shapetree` suffix and query string."""
    managed = links.first_value(LinkRelation.MANAGES)
    if managed is None:
        managed = re.sub(r'\.shapetree$', '', manager_url.path)
    try:
        return parse_url(managed, base=manager_url)
    except ValueError as e:
        raise ProtocolError(f'Cannot calculate managed resource for shape tree manager <{manager_url}>') from e


def calculate_manager_url(url: URLObject, links: ResourceAttributes) -> Optional[URLObject]:
    manager = links.first_value(LinkRelation.MANAGED_BY)
    if manager is None:
        logger.info(f'The resource <{url}> does not have a link header of {LinkRelation.MANAGED_BY}')
        return None
    try:
        return parse_url(manager, base=url)
    except ValueError as e:
        raise ProtocolError(f'Malformed relative URL <{manager}> (resolved from <{url}>)') from e


class ResourceAccessor:
    """Fetches, creates, and classifies resources using an `HttpClient`."""

    def __init__(self, http_client: HttpClient):
        self.http_client = http_client

    def get_resource(self, context: ShapeTreeContext, url: str) -> InstanceResource:
        logger.debug(f'Getting resource <{url}>')
        headers = ResourceAttributes(HttpHeader.AUTHORIZATION, context.authorization_header_value)
        response = self.http_client.fetch_shapetree_response(HttpRequest(GET, url, headers))
        return self.generate_resource(url, response)

    def create_resource(
        self,
        context: ShapeTreeContext,
        method: str,
        url: str,
        headers: ResourceAttributes,
        body: Optional[str],
        content_type: Optional[str],
    ) -> InstanceResource:
        """Create a resource by sending `body` to `url` with the given HTTP
        `method`, and classify the result.

        :raises ConsistencyError: if the server does not report success
        """
        logger.debug(f'Creating resource via {method}: <{url}>, headers [{headers}]')
        all_headers = headers.plus(HttpHeader.AUTHORIZATION, context.authorization_header_value)
        request = HttpRequest(method, url, all_headers, body, content_type)
        response = self.http_client.fetch_shapetree_response(request)
        if not response.exists:
            raise ConsistencyError(f'Unable to create resource <{url}>: {response}')
        return self.generate_resource(url, response)

    def generate_resource(self, url: str, response: DocumentResponse) -> InstanceResource:
        """Classify `response` as one of the resource variants. The `Location`
        header of the response, if any, takes precedence over `url`.

        :raises ProtocolError: if the `Location` or a link target is not a valid URL
        """
        location = response.attributes.first_value(HttpHeader.LOCATION)
        if location is not None:
            try:
                url = parse_url(location, base=str(url))
            except ValueError as e:
                raise ProtocolError(
                    f'Retrieving <{url}> yielded a Location header "{location}" which is not a URL'
                ) from e
        else:
            url = URLObject(url)

        exists = response.exists
        attributes = response.attributes
        links = parse_link_headers(attributes.all_values(HttpHeader.LINK))
        is_container = is_container_from_headers(attributes, links, url)
        resource_type = get_resource_type(is_container, response.content_type)
        name = calculate_name(url)
        body = response.body
        if body is None:
            logger.error(f'Could not retrieve the body from the response for <{url}>')

        if calculate_is_manager(url, exists, links):
            managed_url = calculate_managed_url(url, links)
            cls = ManagerResource if exists else MissingManagerResource
            logger.debug(f'<{url}> is a {cls.__name__} for <{managed_url}>')
            return cls(
                url=url,
                resource_type=resource_type,
                attributes=attributes,
                body=body,
                name=name,
                managed_resource_url=managed_url,
            )
        else:
            manager_url = calculate_manager_url(url, links)
            cls = ManageableResource if exists else MissingManageableResource
            logger.debug(f'<{url}> is a {cls.__name__} with manager <{manager_url}>')
            return cls(
                url=url,
                resource_type=resource_type,
                attributes=attributes,
                body=body,
                name=name,
                manager_resource_url=manager_url,
                is_container=is_container,
            )

    def get_instance(self, context: ShapeTreeContext, url: str) -> ManageableInstance:
        """Resolve `url`, which may be either a manageable resource or a manager,
        along with its counterpart.

        :raises ConsistencyError: if a manager exists without its managed resource
        :raises ProtocolError: if an existing resource does not advertise its manager
        """
        if context is None:
            raise InputError('Must provide a shape tree context')
        resource = self.get_resource(context, url)
        if isinstance(resource, MissingManageableResource):
            return self._instance_from_missing_manageable(context, resource)
        elif isinstance(resource, MissingManagerResource):
            return self._instance_from_missing_manager(context, resource)
        elif isinstance(resource, ManageableResource):
            return self._instance_from_manageable(context, resource)
        elif isinstance(resource, ManagerResource):
            return self._instance_from_manager(context, resource)
        else:
            raise ShapeTreeError(f'Cannot get instance from resource of unsupported type: <{resource.url}>')

    def create_instance(
        self,
        context: ShapeTreeContext,
        method: str,
        url: str,
        headers: ResourceAttributes,
        body: Optional[str],
        content_type: Optional[str],
    ) -> ManageableInstance:
        """Create the resource at `url` (as in `create_resource`), then resolve
        its counterpart."""
        if context is None:
            raise InputError('Must provide a shape tree context')
        resource = self.create_resource(context, method, url, headers, body, content_type)
        if isinstance(resource, MissingManageableResource) or isinstance(resource, MissingManagerResource):
            raise ConsistencyError(f'Created resource <{resource.url}> does not exist')
        elif isinstance(resource, ManageableResource):
            return self._instance_from_manageable(context, resource)
        elif isinstance(resource, ManagerResource):
            return self._instance_from_manager(context, resource)
        else:
            raise ConsistencyError('Invalid resource type returned from resource creation')

    def _instance_from_missing_manageable(
        self,
        context: ShapeTreeContext,
        missing: MissingManageableResource,
    ) -> ManageableInstance:
        # a manager cannot exist for a resource that doesn't
        missing_manager = MissingManagerResource(
            url=missing.manager_resource_url or missing.url,
            resource_type=missing.resource_type,
            attributes=missing.attributes.copy(),
            body=missing.body,
            name=missing.name,
            managed_resource_url=missing.url,
        )
        return ManageableInstance(context, missing, missing_manager, was_request_for_manager=False)

    def _instance_from_missing_manager(
        self,
        context: ShapeTreeContext,
        missing: MissingManagerResource,
    ) -> ManageableInstance:
        manageable = self.get_resource(context, missing.managed_resource_url)
        if not manageable.exists or not isinstance(manageable, ManageableResource):
            raise ConsistencyError(
                f'Cannot have a shape tree manager <{missing.url}> '
                f'for a missing manageable resource <{manageable.url}>'
            )
        unmanaged = UnmanagedResource.from_manageable(manageable, missing.url)
        return ManageableInstance(context, unmanaged, missing, was_request_for_manager=True)

    def _instance_from_manageable(self, context: ShapeTreeContext, manageable: ManageableResource) -> ManageableInstance:
        if manageable.manager_resource_url is None:
            raise ProtocolError(f'Cannot discover shape tree manager for <{manageable.url}>')
        manager = self.get_resource(context, manageable.manager_resource_url)
        if isinstance(manager, MissingManagerResource):
            unmanaged = UnmanagedResource.from_manageable(manageable, manager.url)
            return ManageableInstance(context, unmanaged, manager, was_request_for_manager=False)
        elif isinstance(manager, ManagerResource):
            managed = ManagedResource.from_manageable(manageable, manager.url)
            return ManageableInstance(context, managed, manager, was_request_for_manager=False)
        else:
            raise ConsistencyError(f'Error looking up corresponding shape tree manager for <{manageable.url}>')

    def _instance_from_manager(self, context: ShapeTreeContext, manager: ManagerResource) -> ManageableInstance:
        resource = self.get_resource(context, manager.managed_resource_url)
        if isinstance(resource, MissingManageableResource) or isinstance(resource, MissingManagerResource):
            raise ConsistencyError(
                f'Cannot have a shape tree manager at <{manager.url}> '
                f'without a corresponding managed resource <{resource.url}>'
            )
        elif isinstance(resource, ManagerResource):
            raise ConsistencyError(
                f'Invalid manager resource <{resource.url}> seems to be associated '
                f'with another manager resource <{manager.url}>'
            )
        elif isinstance(resource, ManageableResource):
            managed = ManagedResource.from_manageable(resource, manager.url)
            return ManageableInstance(context, managed, manager, was_request_for_manager=True)
        else:
            raise ConsistencyError(f'Unsupported type of managed resource <{resource.url}>')

    def get_contained_instances(self, context: ShapeTreeContext, container_url: str) -> list[ManageableInstance]:
        """Resolve every resource that the container at `container_url` lists
        with `ldp:contains`, in lexicographic order of their URLs.

        :raises ShapeTreeError: if the target is not an existing container
        """
        resource = self.get_resource(context, container_url)
        if not isinstance(resource, ManageableResource) or not resource.exists:
            raise ShapeTreeError(f'Cannot get contained resources for <{container_url}>: not an existing resource')
        if not resource.is_container:
            raise ShapeTreeError(f'Cannot get contained resources for a resource that is not a container <{container_url}>')

        graph = resource.graph(container_url)
        contained = sorted(
            str(o) for o in graph.objects(URIRef(str(container_url)), ldp.contains) if isinstance(o, URIRef)
        )
        logger.debug(f'Container <{container_url}> has {len(contained)} contained resource(s)')
        return [self.get_instance(context, url) for url in contained]

    def update_resource(
        self,
        context: ShapeTreeContext,
        method: str,
        resource: InstanceResource,
        body: Optional[str],
        content_type: Optional[str] = None,
    ) -> DocumentResponse:
        """Send `body` to an existing resource. The content type defaults to
        that of the resource. Only the `Authorization` and `Content-Type`
        headers are sent; the attributes of the resource are not."""
        logger.debug(f'Updating resource <{resource.url}> via {method}')
        headers = ResourceAttributes(HttpHeader.AUTHORIZATION, context.authorization_header_value)
        request = HttpRequest(method, resource.url, headers, body, content_type or resource.content_type)
        return self.http_client.fetch_shapetree_response(request)

    def delete_resource(self, context: ShapeTreeContext, resource: InstanceResource) -> DocumentResponse:
        logger.debug(f'Deleting resource <{resource.url}>')
        headers = ResourceAttributes(HttpHeader.AUTHORIZATION, context.authorization_header_value)
        response = self.http_client.fetch_shapetree_response(HttpRequest(DELETE, resource.url, headers))
        if not 200 <= response.status_code < 400:
            logger.error(f'Error deleting resource <{resource.url}>: {response}')
        return response
