# Backend adapters, one per supported node type

from ..models import BackendType, Node
from .elastic import ElasticAdapter
from .graylog import GraylogAdapter

ADAPTERS = {
	BackendType.GRAYLOG: GraylogAdapter,
	BackendType.ELASTIC: ElasticAdapter,
}


def create_adapter(node: Node, secret=None, timeout=30):
	"""Return the adapter for the node's backend type."""
	return ADAPTERS[node.backend_type](node, secret=secret, timeout=timeout)
