import logging
from typing import Optional

from rdflib import Graph

from shapetrees.exceptions import ShapeTreeError
from shapetrees.namespaces import get_manager

logger = logging.getLogger(__name__)

TEXT_TURTLE = 'text/turtle'

# media types of RDF serializations, mapped to their rdflib parser names
RDF_FORMATS = {
    TEXT_TURTLE: 'turtle',
    'application/rdf+xml': 'xml',
    'application/n-triples': 'nt',
    'application/ld+json': 'json-ld',
}


def media_type(content_type: Optional[str]) -> Optional[str]:
    """Strip any parameters from a `Content-Type` value and lowercase it.

    ```pycon
    >>> media_type('Text/Turtle; charset=UTF-8')
    'text/turtle'
    ```
    """
    if content_type is None:
        return None
    return content_type.split(';', 1)[0].strip().lower()


def is_rdf_type(content_type: Optional[str]) -> bool:
    return media_type(content_type) in RDF_FORMATS


def new_graph() -> Graph:
    """Create an empty graph with the `st`, `ldp`, `rdf`, `rdfs`, and `xsd`
    prefixes bound."""
    graph = Graph()
    graph.namespace_manager = get_manager(graph)
    return graph


def read_graph(base_url: str, body: Optional[str], content_type: Optional[str] = TEXT_TURTLE) -> Graph:
    """Parse `body` into an `rdflib.Graph`, resolving relative IRIs against
    `base_url`. Unrecognized or missing content types are parsed as Turtle.
    An empty or missing body gives an empty graph.

    :raises ShapeTreeError: with status 422 if the body cannot be parsed
    """
    graph = new_graph()
    if not body:
        return graph
    rdf_format = RDF_FORMATS.get(media_type(content_type), 'turtle')
    try:
        graph.parse(data=body, format=rdf_format, publicID=str(base_url))
    except Exception as e:
        logger.error(f'Unable to parse {rdf_format} body of <{base_url}>: {e}')
        raise ShapeTreeError(f'Error parsing graph of <{base_url}>: {e}', status_code=422) from e
    return graph


def write_turtle(graph: Graph) -> str:
    """Serialize `graph` as Turtle, with the standard prefixes bound."""
    return graph.serialize(format='turtle')
