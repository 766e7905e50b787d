# compiler

import heapq
import re


from   collections import defaultdict
from   enum        import Enum
from   pydantic    import BaseModel, Field
from   typing      import Any, Dict, List, Optional, Set, Tuple


from   .catalog    import NodeCatalog
from   .errors     import ContextViolation, CyclicGraph, Diagnostic, UnknownNodeType, dead_code_warning
from   .graph      import crossing_allowed, find_bridged_targets
from   .schema     import Connection, ExecutionContext, PortType, Script, ScriptNode


class StatementKind(str, Enum):
	EVENT  = "event"
	INVOKE = "invoke"
	BRIDGE = "bridge"
	LOOP   = "loop"


class ArgSource(str, Enum):
	LITERAL = "literal"
	REF     = "ref"


class StatementArg(BaseModel):
	port         : str
	source       : ArgSource
	value        : Any           = None  # literal value, when unconnected
	ref_variable : Optional[str] = None  # emitting variable of the upstream node
	ref_port     : Optional[str] = None
	marshalled   : bool          = False # reference crosses host/target


class Statement(BaseModel):
	index     : int
	node_id   : str
	node_type : str
	context   : ExecutionContext
	kind      : StatementKind
	variable  : str
	args      : List[StatementArg]    = Field(default_factory=list)
	params    : Dict[str, Any]        = Field(default_factory=dict)
	flow      : Dict[str, List[str]]  = Field(default_factory=dict)  # flow output port -> next node ids
	loop_back : List[str]             = Field(default_factory=list)  # node ids re-entering this loop


class RootResult(BaseModel):
	event_node_id : str
	statements    : Optional[List[Statement]] = None
	error         : Optional[Diagnostic]      = None

	@property
	def ok(self) -> bool:
		return self.error is None


class CompileResult(BaseModel):
	script_id : str
	roots     : List[RootResult]  = Field(default_factory=list)
	warnings  : List[Diagnostic]  = Field(default_factory=list)
	ok        : bool              = True

	def root(self, event_node_id: str) -> Optional[RootResult]:
		for item in self.roots:
			if item.event_node_id == event_node_id:
				return item
		return None


def variable_name(node_type: str, index: int) -> str:
	return f"{node_type}_{index}"


def foreign_event_variable(node_id: str) -> str:
	return "event_" + re.sub(r"\W", "_", node_id)


class ScriptCompiler:
	"""
	Orders each event root's subgraph into statements.

	Pure: no state survives a call, the same script always gives the same
	result. Every traversal uses an explicit work-list.
	"""

	def __init__(self, catalog: NodeCatalog):
		self.catalog : NodeCatalog = catalog


	def compile(self, script: Script) -> CompileResult:
		nodes     = {node.id: node for node in script.nodes}
		positions = {node.id: i for i, node in enumerate(script.nodes)}

		active    : List[Connection] = []
		loop_back : List[Connection] = []
		for connection in script.connections:
			if connection.from_node_id not in nodes or connection.to_node_id not in nodes:
				continue
			if self._ends_on_loop_back(nodes[connection.to_node_id], connection):
				loop_back.append(connection)
			else:
				active.append(connection)

		outgoing : Dict[str, List[Connection]] = defaultdict(list)
		incoming : Dict[str, List[Connection]] = defaultdict(list)
		for connection in active:
			outgoing[connection.from_node_id].append(connection)
			incoming[connection.to_node_id  ].append(connection)

		bridged = find_bridged_targets(script, self.catalog, active)

		roots = [
			node for node in script.nodes
			if node.type in self.catalog and self.catalog.is_event(node.type)
		]

		result  = CompileResult(script_id=script.id)
		covered : Set[str] = set()
		for root in roots:
			members = self._reachable(root.id, nodes, outgoing, incoming)
			covered.update(members)
			result.roots.append(self._compile_root(root, members, nodes, positions, incoming, outgoing, loop_back, bridged))

		dead = [node.id for node in script.nodes if node.id not in covered]
		if dead:
			result.warnings.append(dead_code_warning(dead))

		result.ok = all(item.ok for item in result.roots)
		return result


	def _ends_on_loop_back(self, node: ScriptNode, connection: Connection) -> bool:
		template = self.catalog.get(node.type)
		if template is None:
			return False
		port = template.input_port(connection.to_port)
		return bool(port and port.loop_back)


	def _is_event(self, node: ScriptNode) -> bool:
		return node.type in self.catalog and self.catalog.is_event(node.type)


	def _reachable(self, root_id: str, nodes: Dict[str, ScriptNode], outgoing, incoming) -> Set[str]:
		"""Forward closure from the root, plus upstream providers; other events are never entered"""
		members = {root_id}
		stack   = [root_id]
		while stack:
			current = stack.pop()
			for connection in outgoing.get(current, []):
				target = connection.to_node_id
				if target in members or self._is_event(nodes[target]):
					continue
				members.add(target)
				stack.append(target)

		stack = list(members)
		while stack:
			current = stack.pop()
			for connection in incoming.get(current, []):
				source = connection.from_node_id
				if source in members or self._is_event(nodes[source]):
					continue
				members.add(source)
				stack.append(source)

		return members


	def _order(self, members: Set[str], positions: Dict[str, int], outgoing) -> Tuple[List[str], List[str]]:
		"""Kahn's algorithm, ties broken by insertion order; returns (order, cyclic ids)"""
		in_degree = {node_id: 0 for node_id in members}
		for node_id in members:
			for connection in outgoing.get(node_id, []):
				if connection.to_node_id in members:
					in_degree[connection.to_node_id] += 1

		ready = [(positions[node_id], node_id) for node_id, degree in in_degree.items() if degree == 0]
		heapq.heapify(ready)
		order = []
		while ready:
			_, current = heapq.heappop(ready)
			order.append(current)
			for connection in outgoing.get(current, []):
				target = connection.to_node_id
				if target not in members:
					continue
				in_degree[target] -= 1
				if in_degree[target] == 0:
					heapq.heappush(ready, (positions[target], target))

		if len(order) == len(members):
			return order, []

		# nodes left over are on a cycle or downstream of one; peel the downstream tails
		remaining = set(members) - set(order)
		changed   = True
		while changed:
			changed = False
			for node_id in list(remaining):
				targets = [c.to_node_id for c in outgoing.get(node_id, []) if c.to_node_id in remaining]
				if not targets:
					remaining.discard(node_id)
					changed = True

		return order, sorted(remaining, key=lambda node_id: positions[node_id])


	def _compile_root(self, root, members, nodes, positions, incoming, outgoing, loop_back, bridged) -> RootResult:
		unknown = sorted((i for i in members if nodes[i].type not in self.catalog), key=lambda i: positions[i])
		if unknown:
			types = sorted({nodes[i].type for i in unknown})
			error = UnknownNodeType(", ".join(types), node_ids=unknown)
			return RootResult(event_node_id=root.id, error=error.to_diagnostic())

		order, cyclic = self._order(members, positions, outgoing)
		if cyclic:
			error = CyclicGraph(f"Cycle outside a loop construct: {', '.join(cyclic)}", node_ids=cyclic)
			return RootResult(event_node_id=root.id, error=error.to_diagnostic())

		reentering : Dict[str, List[Connection]] = defaultdict(list)
		for connection in loop_back:
			reentering[connection.to_node_id].append(connection)

		for node_id in order:
			node     = nodes[node_id]
			template = self.catalog.by_type(node.type)
			for connection in incoming.get(node_id, []) + reentering.get(node_id, []):
				source          = nodes[connection.from_node_id]
				source_template = self.catalog.get(source.type)
				if source_template is None:
					continue
				if not crossing_allowed(source, source_template, template, bridged):
					error = ContextViolation(
						f"{source.id} ({source_template.context.value}) -> {node.id} ({template.context.value}) "
						f"crosses contexts without a bridge",
						node_ids       = [source.id, node.id],
						connection_ids = [connection.id],
					)
					return RootResult(event_node_id=root.id, error=error.to_diagnostic())

		variables = {node_id: variable_name(nodes[node_id].type, index) for index, node_id in enumerate(order)}
		backs     : Dict[str, List[str]] = defaultdict(list)
		for connection in loop_back:
			if connection.to_node_id in members and connection.from_node_id in members:
				backs[connection.to_node_id].append(connection.from_node_id)

		statements = [
			self._statement(index, nodes[node_id], variables, nodes, members, incoming, outgoing, backs)
			for index, node_id in enumerate(order)
		]
		return RootResult(event_node_id=root.id, statements=statements)


	def _statement(self, index, node, variables, nodes, members, incoming, outgoing, backs) -> Statement:
		template = self.catalog.by_type(node.type)
		params   = {**template.parameters, **node.parameter_values}
		wired    = {c.to_port: c for c in incoming.get(node.id, [])}

		args = []
		for port in template.input_ports:
			if port.type == PortType.FLOW or port.loop_back:
				continue
			connection = wired.get(port.name)
			if connection is None:
				args.append(StatementArg(port=port.name, source=ArgSource.LITERAL, value=params.get(port.name)))
				continue
			source = nodes[connection.from_node_id]
			if source.id in members:
				ref = variables[source.id]
			else:
				ref = foreign_event_variable(source.id)
			args.append(StatementArg(
				port         = port.name,
				source       = ArgSource.REF,
				ref_variable = ref,
				ref_port     = connection.from_port,
				marshalled   = self.catalog.context_of(source.type) != template.context,
			))

		flow : Dict[str, List[str]] = {}
		for port in template.output_ports:
			if port.type != PortType.FLOW:
				continue
			flow[port.name] = [
				c.to_node_id for c in outgoing.get(node.id, [])
				if c.from_port == port.name and c.to_node_id in members
			]

		if self.catalog.is_event(node.type):
			kind = StatementKind.EVENT
		elif template.bridge:
			kind = StatementKind.BRIDGE
		elif template.loop:
			kind = StatementKind.LOOP
		else:
			kind = StatementKind.INVOKE

		return Statement(
			index     = index,
			node_id   = node.id,
			node_type = node.type,
			context   = template.context,
			kind      = kind,
			variable  = variables[node.id],
			args      = args,
			params    = params,
			flow      = flow,
			loop_back = list(backs.get(node.id, [])),
		)
