import logging
from http import HTTPStatus
from typing import Any, Iterable, Mapping, Optional

import yaml

from shapetrees.attributes import ResourceAttributes
from shapetrees.client.auth import get_authenticator
from shapetrees.delta import ShapeTreeManagerDelta
from shapetrees.exceptions import InputError, ShapeTreeError
from shapetrees.graph import TEXT_TURTLE, write_turtle
from shapetrees.http import (
    DELETE, PATCH, POST, PUT, DocumentResponse, HttpClient, HttpHeader, HttpRequest, LinkRelation,
    RequestsHttpClient, ShapeTreeContext,
)
from shapetrees.accessor import ResourceAccessor
from shapetrees.manager import ShapeTreeAssignment, ShapeTreeManager
from shapetrees.namespaces import ldp
from shapetrees.utils import envsubst

logger = logging.getLogger(__name__)

SPARQL_UPDATE = 'application/sparql-update'


def get_common_headers(
    context: ShapeTreeContext,
    focus_nodes: Optional[Iterable[str]] = None,
    target_shape_trees: Optional[Iterable[str]] = None,
    is_container: Optional[bool] = None,
    proposed_name: Optional[str] = None,
    content_type: Optional[str] = None,
) -> ResourceAttributes:
    """Build the request headers for a write to a managed resource.

    ```pycon
    >>> headers = get_common_headers(
    ...     ShapeTreeContext(),
    ...     focus_nodes=['http://pod.example/data/project-1#project'],
    ...     is_container=False,
    ... )

    >>> headers.all_values('Link')
    ['<http://www.w3.org/ns/ldp#Resource>; rel="type"', '<http://pod.example/data/project-1#project>; rel="http://www.w3.org/ns/shapetrees#FocusNode"']
    ```

    An `is_container` of `None` leaves out the `type` link.
    """
    headers = ResourceAttributes(HttpHeader.AUTHORIZATION, context.authorization_header_value)
    if is_container is not None:
        resource_type = ldp.Container if is_container else ldp.Resource
        headers.set(HttpHeader.LINK, f'<{resource_type}>; rel="{LinkRelation.TYPE}"')
    for focus_node in focus_nodes or []:
        headers.set(HttpHeader.LINK, f'<{focus_node}>; rel="{LinkRelation.FOCUS_NODE}"')
    for target_shape_tree in target_shape_trees or []:
        headers.set(HttpHeader.LINK, f'<{target_shape_tree}>; rel="{LinkRelation.TARGET_SHAPETREE}"')
    headers.set(HttpHeader.SLUG, proposed_name)
    headers.set(HttpHeader.CONTENT_TYPE, content_type)
    return headers


def require(context: ShapeTreeContext, **urls):
    """Raise an `InputError` if `context` or any of the keyword arguments is
    `None`."""
    if context is None:
        raise InputError('Must provide a shape tree context')
    for name, value in urls.items():
        if value is None:
            raise InputError(f'Must provide a value for {name}')


class ShapeTreeClient:
    """Discover, plant, and unplant shape trees, and make changes to the
    resources they manage.

    ```pycon
    >>> client = ShapeTreeClient.from_config_file('client.yml')

    >>> manager = client.discover_shapetree(context, 'http://pod.example/data/projects/')
    ```
    """

    @classmethod
    def from_config_file(cls, filename: str) -> 'ShapeTreeClient':
        """Create a client using the `CLIENT` section of a YAML configuration
        file. `${VAR}` placeholders are replaced with environment variables."""
        with open(filename) as file:
            return cls.from_config(config=envsubst(yaml.safe_load(file) or {}).get('CLIENT', {}))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'ShapeTreeClient':
        timeout = config.get('TIMEOUT', None)
        http_client = RequestsHttpClient(
            auth=get_authenticator(config),
            server_cert=config.get('SERVER_CERT', None),
            client_cert=config.get('CLIENT_CERT', None),
            client_key=config.get('CLIENT_KEY', None),
            ua_string=config.get('USER_AGENT', None),
            timeout=float(timeout) if timeout is not None else None,
        )
        return cls(http_client=http_client)

    def __init__(self, http_client: HttpClient):
        self.http_client = http_client
        self.accessor = ResourceAccessor(http_client)

    def discover_shapetree(self, context: ShapeTreeContext, target: str) -> Optional[ShapeTreeManager]:
        """Get the shape tree manager of the resource at `target`. Returns `None`
        if the resource does not exist, or is not managed.

        :raises ShapeTreeError: if `target` is a shape tree manager itself
        """
        require(context, target=target)
        logger.debug(f'Discovering shape tree manager managing <{target}>')

        instance = self.accessor.get_instance(context, target)
        if not instance.manageable_resource.exists:
            logger.debug(f'Target resource for discovery <{target}> does not exist')
            return None
        if instance.was_request_for_manager:
            raise ShapeTreeError('Discovery target must not be a shape tree manager resource')
        if instance.is_unmanaged:
            return None
        return instance.manager_resource.manager

    def plant_shapetree(
        self,
        context: ShapeTreeContext,
        target: str,
        shape_tree: str,
        focus_node: str = None,
        shape: str = None,
    ) -> DocumentResponse:
        """Assign `shape_tree` to the resource at `target`, creating its manager
        if it does not have one yet. Returns a 404 response if `target` does not
        exist."""
        require(context, target=target, shape_tree=shape_tree)
        logger.debug(f'Planting shape tree <{shape_tree}> on <{target}>')
        logger.debug(f'Focus node: {focus_node or "None provided"}')

        instance = self.accessor.get_instance(context, target)
        manageable = instance.manageable_resource
        if not manageable.exists:
            return not_found(f'Cannot find target resource to plant: {target}')

        manager_url = instance.manager_resource.url
        if instance.is_managed:
            manager = instance.manager_resource.manager
        else:
            manager = ShapeTreeManager(manager_url)

        assignment_url = manager.mint_assignment_url()
        assignment = ShapeTreeAssignment(
            shape_tree=shape_tree,
            managed_resource=manageable.url,
            root_assignment=assignment_url,
            focus_node=focus_node,
            shape=shape,
            url=assignment_url,
        )
        manager.add_assignment(assignment)
        logger.info(f'Planting shape tree <{shape_tree}> on <{manageable.url}> as <{assignment_url}>')

        headers = ResourceAttributes(HttpHeader.AUTHORIZATION, context.authorization_header_value)
        request = HttpRequest(PUT, manager_url, headers, write_turtle(manager.graph), TEXT_TURTLE)
        return self.http_client.fetch_shapetree_response(request)

    def unplant_shapetree(self, context: ShapeTreeContext, target: str, shape_tree: str) -> DocumentResponse:
        """Remove the assignments of `shape_tree` from the manager of `target`.
        The manager is deleted if it has no assignments left, and rewritten
        otherwise. Returns a 404 response if `target` does not exist or is not
        assigned `shape_tree`, and a 500 response if it is not managed."""
        require(context, target=target, shape_tree=shape_tree)
        logger.debug(f'Unplanting shape tree <{shape_tree}> managing <{target}>')

        instance = self.accessor.get_instance(context, target)
        if not instance.manageable_resource.exists:
            return not_found(f'Cannot find target resource to unplant: {target}')
        if instance.is_unmanaged:
            return DocumentResponse(
                body=f'Cannot unplant target resource that is not managed by a shapetree: {target}',
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            )

        manager_resource = instance.manager_resource
        existing_manager = manager_resource.manager
        updated_manager = existing_manager.copy()
        if not updated_manager.remove_assignment_for_shapetree(shape_tree):
            return not_found(f'Shape tree <{shape_tree}> is not assigned to {target}')

        delta = ShapeTreeManagerDelta.evaluate(existing_manager, updated_manager)
        if delta.all_removed():
            logger.info(f'Deleting shape tree manager <{manager_resource.url}>')
            return self.accessor.delete_resource(context, manager_resource)

        logger.info(f'Removing shape tree <{shape_tree}> from manager <{manager_resource.url}>')
        headers = ResourceAttributes(HttpHeader.AUTHORIZATION, context.authorization_header_value)
        request = HttpRequest(PUT, manager_resource.url, headers, write_turtle(updated_manager.graph), TEXT_TURTLE)
        return self.http_client.fetch_shapetree_response(request)

    def post_managed_instance(
        self,
        context: ShapeTreeContext,
        parent_container: str,
        focus_nodes: Optional[Iterable[str]] = None,
        target_shape_trees: Optional[Iterable[str]] = None,
        proposed_name: Optional[str] = None,
        is_container: bool = False,
        body: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> DocumentResponse:
        require(context, parent_container=parent_container)
        logger.debug(f'POSTing shape tree instance to <{parent_container}>')
        logger.debug(f'Proposed name: {proposed_name or "None provided"}')
        headers = get_common_headers(
            context, focus_nodes, target_shape_trees, is_container, proposed_name, content_type
        )
        return self.http_client.fetch_shapetree_response(
            HttpRequest(POST, parent_container, headers, body, content_type)
        )

    def update_managed_instance(
        self,
        context: ShapeTreeContext,
        resource_url: str,
        focus_nodes: Optional[Iterable[str]] = None,
        target_shape_trees: Optional[Iterable[str]] = None,
        is_container: bool = False,
        body: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> DocumentResponse:
        """Create or replace the resource at `resource_url` with a PUT request."""
        require(context, resource_url=resource_url)
        logger.debug(f'Creating shape tree instance via PUT at <{resource_url}>')
        headers = get_common_headers(context, focus_nodes, target_shape_trees, is_container, None, content_type)
        return self.http_client.fetch_shapetree_response(
            HttpRequest(PUT, resource_url, headers, body, content_type)
        )

    def put_managed_instance(
        self,
        context: ShapeTreeContext,
        resource_url: str,
        focus_nodes: Optional[Iterable[str]] = None,
        body: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> DocumentResponse:
        """Update the existing resource at `resource_url` with a PUT request."""
        require(context, resource_url=resource_url)
        logger.debug(f'Updating shape tree instance via PUT at <{resource_url}>')
        headers = get_common_headers(context, focus_nodes, None, None, None, content_type)
        return self.http_client.fetch_shapetree_response(
            HttpRequest(PUT, resource_url, headers, body, content_type)
        )

    def patch_managed_instance(
        self,
        context: ShapeTreeContext,
        resource_url: str,
        focus_nodes: Optional[Iterable[str]] = None,
        patch: str = None,
    ) -> DocumentResponse:
        """Send a SPARQL Update `patch` to the resource at `resource_url`."""
        require(context, resource_url=resource_url, patch=patch)
        logger.debug(f'PATCHing shape tree instance at <{resource_url}>')
        logger.debug(f'PATCH: {patch}')
        headers = get_common_headers(context, focus_nodes, None, None, None, SPARQL_UPDATE)
        return self.http_client.fetch_shapetree_response(
            HttpRequest(PATCH, resource_url, headers, patch, SPARQL_UPDATE)
        )

    def delete_managed_instance(self, context: ShapeTreeContext, resource_url: str) -> DocumentResponse:
        require(context, resource_url=resource_url)
        logger.debug(f'DELETEing shape tree instance at <{resource_url}>')
        headers = get_common_headers(context)
        return self.http_client.fetch_shapetree_response(HttpRequest(DELETE, resource_url, headers))


def not_found(message: str) -> DocumentResponse:
    return DocumentResponse(body=message, status_code=HTTPStatus.NOT_FOUND)
