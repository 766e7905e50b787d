# schema

from __future__ import annotations


from   enum     import Enum
from   pydantic import BaseModel, ConfigDict, Field
from   typing   import Any, Dict, List, Optional
from   uuid     import uuid4


def generate_id():
	return str(uuid4())


class NodeCategory(str, Enum):
	CONSTANTS   = "Constants"
	EVENTS      = "Events"
	FLOW        = "Flow"
	MEMORY      = "Memory"
	POINTER     = "Pointer"
	MODULE      = "Module"
	VARIABLE    = "Variable"
	ARRAY       = "Array"
	OBJECT      = "Object"
	MATH        = "Math"
	STRING      = "String"
	CONVERSION  = "Conversion"
	NATIVE      = "Native"
	INTERCEPTOR = "Interceptor"
	OUTPUT      = "Output"
	FUNCTION    = "Function"


CATEGORY_ORDER : List[NodeCategory] = list(NodeCategory)


class ExecutionContext(str, Enum):
	HOST   = "host"    # controlling process
	TARGET = "target"  # injected agent inside the instrumented process


class PortType(str, Enum):
	FLOW    = "flow"   # execution sequencing, never carries a value
	NUMBER  = "number"
	STRING  = "string"
	BOOLEAN = "boolean"
	POINTER = "pointer"
	BYTES   = "bytes"
	ANY     = "any"


def are_port_types_compatible(from_type: PortType, to_type: PortType) -> bool:
	if from_type == PortType.FLOW or to_type == PortType.FLOW:
		return from_type == to_type
	if from_type == PortType.ANY or to_type == PortType.ANY:
		return True
	return from_type == to_type


class PortSpec(BaseModel):
	model_config = ConfigDict(frozen=True)

	name      : str
	type      : PortType
	loop_back : bool = False  # input re-entering a loop construct


class NodeTemplate(BaseModel):
	"""Immutable description of a node kind. Presentation (category, icon) and
	compiler semantics (context, bridge, loop) are independent fields."""
	model_config = ConfigDict(frozen=True)

	type         : str
	category     : NodeCategory
	context      : ExecutionContext
	label        : str
	description  : str                = ""
	icon         : str                = ""
	input_ports  : List[PortSpec]     = Field(default_factory=list)
	output_ports : List[PortSpec]     = Field(default_factory=list)
	parameters   : Dict[str, Any]     = Field(default_factory=dict)
	bridge       : bool               = False
	loop         : bool               = False

	def input_port(self, name: str) -> Optional[PortSpec]:
		for port in self.input_ports:
			if port.name == name:
				return port
		return None

	def output_port(self, name: str) -> Optional[PortSpec]:
		for port in self.output_ports:
			if port.name == name:
				return port
		return None


class Position(BaseModel):
	x : float = 0.0
	y : float = 0.0


class ScriptNode(BaseModel):
	id               : str            = Field(default_factory=generate_id)
	type             : str
	position         : Position       = Field(default_factory=Position)
	parameter_values : Dict[str, Any] = Field(default_factory=dict)  # overrides of template defaults
	label            : Optional[str]  = None
	parent_id        : Optional[str]  = None                         # grouping, editor only


class Connection(BaseModel):
	id           : str = Field(default_factory=generate_id)
	from_node_id : str
	from_port    : str
	to_node_id   : str
	to_port      : str


class ScriptVariable(BaseModel):
	id            : str           = Field(default_factory=generate_id)
	name          : str
	type          : PortType      = PortType.ANY
	default_value : Any           = None
	description   : Optional[str] = None


class Script(BaseModel):
	id                     : str                  = Field(default_factory=generate_id)
	name                   : str
	description            : Optional[str]        = None
	nodes                  : List[ScriptNode]     = Field(default_factory=list)
	connections            : List[Connection]     = Field(default_factory=list)
	variables              : List[ScriptVariable] = Field(default_factory=list)
	selected_node_ids      : List[str]            = Field(default_factory=list)
	selected_connection_id : Optional[str]        = None

	def find_node(self, node_id: str) -> Optional[ScriptNode]:
		for node in self.nodes:
			if node.id == node_id:
				return node
		return None

	def find_connection(self, connection_id: str) -> Optional[Connection]:
		for connection in self.connections:
			if connection.id == connection_id:
				return connection
		return None

	def connections_of(self, node_id: str) -> List[Connection]:
		return [c for c in self.connections if c.from_node_id == node_id or c.to_node_id == node_id]

	def connections_from(self, node_id: str, port: Optional[str] = None) -> List[Connection]:
		return [c for c in self.connections if c.from_node_id == node_id and (port is None or c.from_port == port)]

	def connection_to(self, node_id: str, port: str) -> Optional[Connection]:
		for connection in self.connections:
			if connection.to_node_id == node_id and connection.to_port == port:
				return connection
		return None


class Project(BaseModel):
	scripts           : List[Script]  = Field(default_factory=list)
	current_script_id : Optional[str] = None

	def find_script(self, script_id: str) -> Optional[Script]:
		for script in self.scripts:
			if script.id == script_id:
				return script
		return None

	@property
	def current(self) -> Optional[Script]:
		if not self.current_script_id:
			return None
		return self.find_script(self.current_script_id)


DEFAULT_DUPLICATE_OFFSET : float = 40.0
