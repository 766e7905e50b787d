# errors

from   enum     import Enum
from   pydantic import BaseModel, Field
from   typing   import Iterable, List, Optional


class ErrorKind(str, Enum):
	UNKNOWN_NODE_TYPE = "UnknownNodeType"
	NOT_FOUND         = "NotFound"
	TYPE_MISMATCH     = "TypeMismatch"
	PORT_OCCUPIED     = "PortOccupied"
	CONTEXT_VIOLATION = "ContextViolation"
	CYCLIC_GRAPH      = "CyclicGraph"
	DEAD_CODE         = "DeadCode"


class Diagnostic(BaseModel):
	"""Serialisable report of an error or warning, with the implicated ids"""
	kind           : ErrorKind
	message        : str
	node_ids       : List[str] = Field(default_factory=list)
	connection_ids : List[str] = Field(default_factory=list)
	fatal          : bool      = True


class GraphError(Exception):
	kind : ErrorKind = ErrorKind.NOT_FOUND

	def __init__(self, message: str, node_ids: Optional[Iterable[str]] = None, connection_ids: Optional[Iterable[str]] = None):
		super().__init__(message)
		self.message        = message
		self.node_ids       = list(node_ids or [])
		self.connection_ids = list(connection_ids or [])

	def to_diagnostic(self) -> Diagnostic:
		return Diagnostic(
			kind           = self.kind,
			message        = self.message,
			node_ids       = self.node_ids,
			connection_ids = self.connection_ids,
		)


class UnknownNodeType(GraphError):
	kind = ErrorKind.UNKNOWN_NODE_TYPE

	def __init__(self, node_type: str, node_ids: Optional[Iterable[str]] = None):
		super().__init__(f"Unknown node type: {node_type}", node_ids)
		self.node_type = node_type


class NotFound(GraphError):
	kind = ErrorKind.NOT_FOUND


class TypeMismatch(GraphError):
	kind = ErrorKind.TYPE_MISMATCH


class PortOccupied(GraphError):
	kind = ErrorKind.PORT_OCCUPIED


class ContextViolation(GraphError):
	kind = ErrorKind.CONTEXT_VIOLATION


class CyclicGraph(GraphError):
	kind = ErrorKind.CYCLIC_GRAPH


def dead_code_warning(node_ids: List[str]) -> Diagnostic:
	return Diagnostic(
		kind     = ErrorKind.DEAD_CODE,
		message  = f"{len(node_ids)} node(s) unreachable from any event: {', '.join(node_ids)}",
		node_ids = node_ids,
		fatal    = False,
	)
