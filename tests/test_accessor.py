import logging

import pytest
from urlobject import URLObject

from shapetrees.accessor import (
    ResourceAccessor,
    calculate_is_manager,
    calculate_managed_url,
    calculate_manager_url,
    calculate_name,
)
from shapetrees.attributes import ResourceAttributes, parse_link_headers
from shapetrees.exceptions import ConsistencyError, InputError, ProtocolError, ShapeTreeError
from shapetrees.http import DELETE, GET, PATCH, POST, PUT
from shapetrees.resources import (
    ManageableResource,
    ManagedResource,
    ManagerResource,
    MissingManageableResource,
    MissingManagerResource,
    ShapeTreeResourceType,
    UnmanagedResource,
)

from conftest import (
    LDP,
    MISSING_URL,
    PROJECT_MANAGER_URL,
    PROJECT_URL,
    PROJECTS_MANAGER_URL,
    PROJECTS_TREE,
    PROJECTS_URL,
    ST,
    link,
    make_response,
)

MANAGED_BY = f'{ST}managedBy'
MANAGES = f'{ST}manages'


@pytest.fixture
def accessor(http_client):
    return ResourceAccessor(http_client)


def links(*values):
    return parse_link_headers(list(values))


@pytest.mark.parametrize(
    ('url', 'expected'),
    [
        ('http://pod.example/data/projects/', 'projects'),
        ('http://pod.example/data/projects/project-1/readme.md', 'readme.md'),
        ('http://pod.example/data/projects/.shapetree', '.shapetree'),
        ('http://pod.example/', '/'),
        ('http://pod.example', '/'),
    ]
)
def test_calculate_name(url, expected):
    assert calculate_name(URLObject(url)) == expected


@pytest.mark.parametrize(
    ('url', 'exists', 'link_values', 'expected'),
    [
        # managedBy wins over everything else
        (PROJECTS_MANAGER_URL, True, [link(PROJECTS_MANAGER_URL + 'x', MANAGED_BY)], False),
        (PROJECTS_URL, True, [link(PROJECTS_URL, MANAGES)], True),
        (PROJECTS_MANAGER_URL, True, [], True),
        (PROJECTS_MANAGER_URL, False, [], True),
        ('http://pod.example/data/projects/?ext=shapetree', True, [], True),
        (PROJECTS_URL, True, [], False),
        # link headers on missing resources are ignored
        (PROJECTS_URL, False, [link(PROJECTS_URL, MANAGES)], False),
    ]
)
def test_calculate_is_manager(url, exists, link_values, expected):
    assert calculate_is_manager(URLObject(url), exists, links(*link_values)) is expected


def test_calculate_managed_url():
    assert calculate_managed_url(URLObject(PROJECTS_MANAGER_URL), links()) == PROJECTS_URL
    assert calculate_managed_url(
        URLObject('http://pod.example/data/projects/.shapetree?ext=shapetree'), links()
    ) == PROJECTS_URL
    assert calculate_managed_url(
        URLObject('http://pod.example/meta/1234'),
        links(link('/data/projects/', MANAGES)),
    ) == PROJECTS_URL


def test_calculate_managed_url_invalid():
    with pytest.raises(ProtocolError):
        calculate_managed_url(URLObject(PROJECTS_MANAGER_URL), links(link('mailto:nobody@example.com', MANAGES)))


def test_calculate_manager_url():
    assert calculate_manager_url(URLObject(PROJECTS_URL), links(link('.shapetree', MANAGED_BY))) == PROJECTS_MANAGER_URL


def test_calculate_manager_url_missing(caplog):
    with caplog.at_level(logging.INFO):
        assert calculate_manager_url(URLObject(PROJECTS_URL), links()) is None
    assert 'does not have a link header' in caplog.text


def test_calculate_manager_url_invalid():
    with pytest.raises(ProtocolError):
        calculate_manager_url(URLObject(PROJECTS_URL), links(link('mailto:nobody@example.com', MANAGED_BY)))


@pytest.mark.parametrize(
    ('status_code', 'url', 'headers', 'cls'),
    [
        (200, PROJECTS_URL, {'Link': link(PROJECTS_MANAGER_URL, MANAGED_BY)}, ManageableResource),
        (200, PROJECTS_MANAGER_URL, {'Link': link(PROJECTS_URL, MANAGES)}, ManagerResource),
        (200, PROJECTS_MANAGER_URL, {}, ManagerResource),
        (404, PROJECTS_MANAGER_URL, {}, MissingManagerResource),
        (404, PROJECTS_URL, {'Link': link(PROJECTS_MANAGER_URL, MANAGED_BY)}, MissingManageableResource),
        (404, PROJECTS_URL, {}, MissingManageableResource),
    ]
)
def test_generate_resource_variants(accessor, status_code, url, headers, cls):
    resource = accessor.generate_resource(url, make_response(status_code, headers, body=''))
    assert type(resource) is cls
    assert resource.url == url


def test_generate_manageable_resource(accessor):
    response = make_response(200, {
        'Content-Type': 'text/turtle',
        'Link': [link(f'{LDP}BasicContainer', 'type'), link('.shapetree', MANAGED_BY)],
    }, body='')
    resource = accessor.generate_resource(PROJECTS_URL, response)
    assert isinstance(resource, ManageableResource)
    assert resource.exists
    assert resource.is_container
    assert resource.resource_type == ShapeTreeResourceType.CONTAINER
    assert resource.name == 'projects'
    assert resource.manager_resource_url == PROJECTS_MANAGER_URL


def test_generate_manager_resource(accessor):
    response = make_response(200, {'Content-Type': 'text/turtle', 'Link': link(PROJECTS_URL, MANAGES)}, body='')
    resource = accessor.generate_resource(PROJECTS_MANAGER_URL, response)
    assert isinstance(resource, ManagerResource)
    assert resource.managed_resource_url == PROJECTS_URL
    assert resource.resource_type == ShapeTreeResourceType.RESOURCE
    assert resource.name == '.shapetree'


@pytest.mark.parametrize(
    ('url', 'headers', 'resource_type'),
    [
        ('http://pod.example/data/note', {'Content-Type': 'application/ld+json'}, ShapeTreeResourceType.RESOURCE),
        ('http://pod.example/data/image.png', {'Content-Type': 'image/png'}, ShapeTreeResourceType.NON_RDF),
        # no links at all, so a trailing slash means a container
        ('http://pod.example/data/', {'Content-Type': 'text/turtle'}, ShapeTreeResourceType.CONTAINER),
        (
            'http://pod.example/data/',
            {'Content-Type': 'text/turtle', 'Link': link(f'{LDP}Resource', 'type')},
            ShapeTreeResourceType.RESOURCE,
        ),
        (
            'http://pod.example/data/things',
            {'Content-Type': 'text/turtle', 'Link': link(f'{LDP}Container', 'type')},
            ShapeTreeResourceType.CONTAINER,
        ),
    ]
)
def test_resource_type(accessor, url, headers, resource_type):
    resource = accessor.generate_resource(url, make_response(200, headers, body=''))
    assert resource.resource_type == resource_type
    assert resource.is_container is (resource_type == ShapeTreeResourceType.CONTAINER)


def test_location_overrides_url(accessor):
    response = make_response(201, {'Location': 'project-3/', 'Link': link(f'{LDP}Container', 'type')}, body='')
    resource = accessor.generate_resource(PROJECTS_URL, response)
    assert resource.url == PROJECTS_URL + 'project-3/'
    assert resource.name == 'project-3'


def test_invalid_location(accessor):
    response = make_response(201, {'Location': 'mailto:nobody@example.com'}, body='')
    with pytest.raises(ProtocolError):
        accessor.generate_resource(PROJECTS_URL, response)


def test_missing_body_is_logged(accessor, caplog):
    resource = accessor.generate_resource(PROJECTS_URL, make_response(200, {}, body=None))
    assert resource.body is None
    assert 'Could not retrieve the body' in caplog.text


def test_get_resource_sends_authorization(accessor, pod, context):
    resource = accessor.get_resource(context, PROJECTS_URL)
    assert isinstance(resource, ManageableResource)
    request = pod.requests[0]
    assert request.method == GET
    assert request.headers.first_value('Authorization') == 'Bearer abcd-1234'


def test_get_managed_instance(accessor, pod, context):
    instance = accessor.get_instance(context, PROJECTS_URL)
    assert isinstance(instance.manageable_resource, ManagedResource)
    assert isinstance(instance.manager_resource, ManagerResource)
    assert instance.is_managed
    assert not instance.was_request_for_manager
    assert instance.manageable_resource.manager_resource_url == PROJECTS_MANAGER_URL
    assert [str(a.shape_tree) for a in instance.manager_resource.manager] == [PROJECTS_TREE]


def test_get_instance_for_manager(accessor, pod, context):
    instance = accessor.get_instance(context, PROJECTS_MANAGER_URL)
    assert instance.was_request_for_manager
    assert isinstance(instance.manageable_resource, ManagedResource)
    assert instance.manageable_resource.url == PROJECTS_URL
    assert [str(r.url) for r in pod.requests] == [PROJECTS_MANAGER_URL, PROJECTS_URL]


def test_get_unmanaged_instance(accessor, pod, context):
    instance = accessor.get_instance(context, PROJECT_URL)
    assert isinstance(instance.manageable_resource, UnmanagedResource)
    assert isinstance(instance.manager_resource, MissingManagerResource)
    assert instance.is_unmanaged
    assert instance.manager_resource.url == PROJECT_MANAGER_URL
    assert instance.manager_resource.managed_resource_url == PROJECT_URL


def test_get_instance_for_missing_manager(accessor, pod, context):
    instance = accessor.get_instance(context, PROJECT_MANAGER_URL)
    assert instance.was_request_for_manager
    assert isinstance(instance.manageable_resource, UnmanagedResource)
    assert instance.manageable_resource.url == PROJECT_URL
    assert instance.is_unmanaged


def test_get_missing_instance(accessor, pod, context):
    instance = accessor.get_instance(context, MISSING_URL)
    assert isinstance(instance.manageable_resource, MissingManageableResource)
    assert isinstance(instance.manager_resource, MissingManagerResource)
    assert instance.manager_resource.url == MISSING_URL + '.shapetree'
    assert not instance.manageable_resource.exists
    # no request is made for the manager of a missing resource
    assert len(pod.requests) == 1
    # each side has its own copy of the response attributes
    assert instance.manager_resource.attributes == instance.manageable_resource.attributes
    assert instance.manager_resource.attributes is not instance.manageable_resource.attributes


def test_get_instance_requires_context(accessor):
    with pytest.raises(InputError):
        accessor.get_instance(None, PROJECTS_URL)


def test_existing_resource_without_manager_link(accessor, http_client, context):
    http_client.add(GET, PROJECTS_URL, headers={'Link': link(f'{LDP}BasicContainer', 'type')}, body='')
    with pytest.raises(ProtocolError):
        accessor.get_instance(context, PROJECTS_URL)


def test_manager_without_managed_resource(accessor, http_client, context):
    http_client.add(GET, PROJECTS_MANAGER_URL, headers={'Content-Type': 'text/turtle'}, body='')
    with pytest.raises(ConsistencyError):
        accessor.get_instance(context, PROJECTS_MANAGER_URL)


def test_missing_manager_without_managed_resource(accessor, context):
    with pytest.raises(ConsistencyError):
        accessor.get_instance(context, PROJECTS_MANAGER_URL)


def test_manager_managing_a_manager(accessor, http_client, context):
    other_manager = 'http://pod.example/data/other.shapetree'
    http_client.add(GET, PROJECTS_MANAGER_URL, headers={'Link': link(other_manager, MANAGES)}, body='')
    http_client.add(GET, other_manager, headers={'Content-Type': 'text/turtle'}, body='')
    with pytest.raises(ConsistencyError):
        accessor.get_instance(context, PROJECTS_MANAGER_URL)


def test_get_contained_instances(accessor, pod, context):
    instances = accessor.get_contained_instances(context, PROJECTS_URL)
    assert [str(i.manageable_resource.url) for i in instances] == [
        PROJECTS_URL + 'project-1/',
        PROJECTS_URL + 'project-2/',
    ]
    assert instances[0].is_unmanaged
    assert not instances[1].manageable_resource.exists


def test_get_contained_instances_of_missing_container(accessor, pod, context):
    with pytest.raises(ShapeTreeError):
        accessor.get_contained_instances(context, MISSING_URL)


def test_get_contained_instances_of_non_container(accessor, http_client, context):
    url = 'http://pod.example/data/notes.ttl'
    http_client.add(GET, url, headers={'Content-Type': 'text/turtle', 'Link': link(f'{LDP}Resource', 'type')}, body='')
    with pytest.raises(ShapeTreeError):
        accessor.get_contained_instances(context, url)


def test_create_instance(accessor, pod, context):
    pod.add(
        POST, PROJECTS_URL,
        status_code=201,
        headers={
            'Location': PROJECT_URL,
            'Link': [link(f'{LDP}BasicContainer', 'type'), link(PROJECT_MANAGER_URL, MANAGED_BY)],
        },
        body='',
    )
    headers = ResourceAttributes('Slug', 'project-1')
    instance = accessor.create_instance(context, POST, PROJECTS_URL, headers, '', 'text/turtle')
    assert isinstance(instance.manageable_resource, UnmanagedResource)
    assert instance.manageable_resource.url == PROJECT_URL

    request = pod.requests[0]
    assert request.method == POST
    assert request.headers.first_value('Slug') == 'project-1'
    assert request.headers.first_value('Authorization') == 'Bearer abcd-1234'
    assert request.content_type == 'text/turtle'


def test_create_resource_failure(accessor, http_client, context):
    http_client.add(PUT, PROJECT_URL, status_code=403, body='Forbidden')
    with pytest.raises(ConsistencyError):
        accessor.create_resource(context, PUT, PROJECT_URL, ResourceAttributes(), '', 'text/turtle')


def test_update_resource(accessor, pod, context):
    manager = accessor.get_resource(context, PROJECTS_MANAGER_URL)
    response = accessor.update_resource(context, PATCH, manager, 'INSERT DATA { <#a> <#b> <#c> . }')
    assert response.status_code == 201
    request = pod.requests[-1]
    assert request.method == PATCH
    assert request.url == PROJECTS_MANAGER_URL
    assert request.content_type == 'text/turtle'
    assert request.headers.first_value('Authorization') == 'Bearer abcd-1234'
    # only the credentials; the response headers of the manager are not sent back
    assert list(request.headers) == ['Authorization']


def test_update_resource_with_content_type(accessor, pod, context):
    manager = accessor.get_resource(context, PROJECTS_MANAGER_URL)
    accessor.update_resource(context, PATCH, manager, 'INSERT DATA { <#a> <#b> <#c> . }', 'application/sparql-update')
    assert pod.requests[-1].content_type == 'application/sparql-update'


def test_delete_resource(accessor, pod, context):
    manager = accessor.get_resource(context, PROJECTS_MANAGER_URL)
    response = accessor.delete_resource(context, manager)
    assert response.status_code == 204
    assert pod.requests[-1].method == DELETE
    assert list(pod.requests[-1].headers) == ['Authorization']


def test_delete_resource_failure_is_logged(accessor, pod, context, caplog):
    pod.add(DELETE, PROJECTS_MANAGER_URL, status_code=409, body='Conflict')
    manager = accessor.get_resource(context, PROJECTS_MANAGER_URL)
    response = accessor.delete_resource(context, manager)
    assert response.status_code == 409
    assert 'Error deleting resource' in caplog.text
