# graph

import copy


from   collections import defaultdict, deque
from   typing      import Any, Dict, Iterable, List, Optional, Set, Tuple


from   .catalog    import NodeCatalog
from   .errors     import ContextViolation, Diagnostic, GraphError, NotFound, PortOccupied, TypeMismatch, UnknownNodeType
from   .schema     import (
	Connection, ExecutionContext, NodeCategory, NodeTemplate, Position, Project, Script, ScriptNode, ScriptVariable,
	PortType, are_port_types_compatible, generate_id,
)


def find_bridged_targets(script: Script, catalog: NodeCatalog, connections: Optional[Iterable[Connection]] = None) -> Set[str]:
	"""
	Target-context nodes fed by a bridge, directly or through other target
	nodes. Their outputs return to the host through that bridge's RPC reply.
	"""
	nodes = {node.id: node for node in script.nodes}
	if connections is None:
		connections = script.connections

	outgoing: Dict[str, List[str]] = defaultdict(list)
	for connection in connections:
		outgoing[connection.from_node_id].append(connection.to_node_id)

	bridges = [
		node.id for node in script.nodes
		if node.type in catalog and catalog.is_bridge(node.type)
	]

	bridged : Set[str]   = set()
	queue   : deque      = deque(bridges)
	while queue:
		current = queue.popleft()
		for next_id in outgoing.get(current, []):
			node = nodes.get(next_id)
			if node is None or next_id in bridged or node.type not in catalog:
				continue
			template = catalog.by_type(node.type)
			if template.context != ExecutionContext.TARGET or template.bridge:
				continue
			bridged.add(next_id)
			queue.append(next_id)
	return bridged


def crossing_allowed(from_node: ScriptNode, from_template: NodeTemplate, to_template: NodeTemplate, bridged: Set[str]) -> bool:
	if from_template.context == to_template.context:
		return True
	if from_template.bridge or to_template.bridge:
		return True
	return from_template.context == ExecutionContext.TARGET and from_node.id in bridged


class GraphModel:
	"""
	Invariant-checked mutations over scripts.
	Every operation validates before it commits: a raised GraphError leaves
	the script untouched.
	"""

	def __init__(self, catalog: NodeCatalog):
		self.catalog : NodeCatalog = catalog


	# =========================================================================
	# LOOKUPS
	# =========================================================================

	def _node(self, script: Script, node_id: str) -> ScriptNode:
		node = script.find_node(node_id)
		if node is None:
			raise NotFound(f"Node not found: {node_id}", node_ids=[node_id])
		return node


	def _connection(self, script: Script, connection_id: str) -> Connection:
		connection = script.find_connection(connection_id)
		if connection is None:
			raise NotFound(f"Connection not found: {connection_id}", connection_ids=[connection_id])
		return connection


	def template_of(self, node: ScriptNode) -> NodeTemplate:
		try:
			return self.catalog.by_type(node.type)
		except UnknownNodeType as e:
			raise UnknownNodeType(node.type, node_ids=[node.id]) from e


	def is_loop_back(self, script: Script, connection: Connection) -> bool:
		node = script.find_node(connection.to_node_id)
		if node is None or node.type not in self.catalog:
			return False
		port = self.catalog.by_type(node.type).input_port(connection.to_port)
		return bool(port and port.loop_back)


	# =========================================================================
	# NODES
	# =========================================================================

	def add_node(self,
		script           : Script,
		node_type        : str,
		position         : Optional[Position]       = None,
		parameter_values : Optional[Dict[str, Any]] = None,
		label            : Optional[str]            = None,
		parent_id        : Optional[str]            = None,
	) -> ScriptNode:
		self.catalog.by_type(node_type)
		if parent_id is not None:
			self._node(script, parent_id)
		node = ScriptNode(
			type             = node_type,
			position         = position or Position(),
			parameter_values = dict(parameter_values or {}),
			label            = label,
			parent_id        = parent_id,
		)
		script.nodes.append(node)
		return node


	def update_node(self,
		script           : Script,
		node_id          : str,
		position         : Optional[Position]       = None,
		parameter_values : Optional[Dict[str, Any]] = None,
		label            : Optional[str]            = None,
	) -> ScriptNode:
		node = self._node(script, node_id)
		if position is not None:
			node.position = position
		if parameter_values is not None:
			node.parameter_values = {**node.parameter_values, **parameter_values}
		if label is not None:
			node.label = label
		return node


	def rename_node(self, script: Script, node_id: str, label: str) -> ScriptNode:
		node = self._node(script, node_id)
		node.label = label.strip() or None
		return node


	def delete_node(self, script: Script, node_id: str) -> List[str]:
		"""Remove a node and every connection touching it; returns removed connection ids"""
		_, removed = self.delete_nodes(script, [node_id])
		return removed


	def delete_nodes(self, script: Script, node_ids: Iterable[str]) -> Tuple[List[str], List[str]]:
		"""
		Remove nodes atomically. Besides the connections touching them, any
		target -> host connection whose bridge went away with them is removed
		too; every removed connection id is returned.
		"""
		ids = list(dict.fromkeys(node_ids))
		for node_id in ids:
			self._node(script, node_id)

		doomed      = set(ids)
		removed     = [c.id for c in script.connections if c.from_node_id in doomed or c.to_node_id in doomed]
		nodes       = [n for n in script.nodes if n.id not in doomed]
		connections = [c for c in script.connections if c.id not in removed]

		stranded     = self._stranded_crossings(nodes, connections)
		removed     += stranded
		connections  = [c for c in connections if c.id not in stranded]

		for node in nodes:
			if node.parent_id in doomed:
				node.parent_id = None
		script.nodes                  = nodes
		script.connections            = connections
		script.selected_node_ids      = [i for i in script.selected_node_ids if i not in doomed]
		if script.selected_connection_id in removed:
			script.selected_connection_id = None
		return ids, removed


	def _stranded_crossings(self, nodes: List[ScriptNode], connections: List[Connection]) -> List[str]:
		"""Ids of connections that no longer satisfy the context rule once their bridge is gone"""
		index    = {node.id: node for node in nodes}
		stranded : List[str] = []
		while True:
			live    = [c for c in connections if c.id not in stranded]
			bridged = find_bridged_targets(Script(name="", nodes=nodes), self.catalog, live)
			found   = []
			for connection in live:
				from_node = index.get(connection.from_node_id)
				to_node   = index.get(connection.to_node_id)
				if from_node is None or to_node is None:
					continue
				if from_node.type not in self.catalog or to_node.type not in self.catalog:
					continue
				if not crossing_allowed(from_node, self.catalog.by_type(from_node.type), self.catalog.by_type(to_node.type), bridged):
					found.append(connection.id)
			if not found:
				return stranded
			stranded += found


	# =========================================================================
	# CONNECTIONS
	# =========================================================================

	def validate_connection(self, script: Script, from_node_id: str, from_port: str, to_node_id: str, to_port: str):
		from_node     = self._node(script, from_node_id)
		to_node       = self._node(script, to_node_id)
		from_template = self.template_of(from_node)
		to_template   = self.template_of(to_node)
		ids           = [from_node_id, to_node_id]

		source = from_template.output_port(from_port)
		if source is None:
			raise NotFound(f"Output port not found: {from_node_id}.{from_port}", node_ids=[from_node_id])
		target = to_template.input_port(to_port)
		if target is None:
			raise NotFound(f"Input port not found: {to_node_id}.{to_port}", node_ids=[to_node_id])

		if not are_port_types_compatible(source.type, target.type):
			adapter = NodeCategory.CONVERSION in (from_template.category, to_template.category)
			scalar  = PortType.FLOW not in (source.type, target.type)
			if not (adapter and scalar):
				raise TypeMismatch(
					f"Cannot connect {source.type.value} output {from_node_id}.{from_port} "
					f"to {target.type.value} input {to_node_id}.{to_port}",
					node_ids=ids,
				)

		bridged = find_bridged_targets(script, self.catalog)
		if not crossing_allowed(from_node, from_template, to_template, bridged):
			raise ContextViolation(
				f"Connection {from_node_id} ({from_template.context.value}) -> {to_node_id} "
				f"({to_template.context.value}) crosses contexts without a bridge",
				node_ids=ids,
			)

		existing = script.connection_to(to_node_id, to_port)
		if existing is not None:
			raise PortOccupied(
				f"Input {to_node_id}.{to_port} already connected",
				node_ids=[to_node_id],
				connection_ids=[existing.id],
			)


	def connect(self, script: Script, from_node_id: str, from_port: str, to_node_id: str, to_port: str) -> Connection:
		self.validate_connection(script, from_node_id, from_port, to_node_id, to_port)
		connection = Connection(
			from_node_id = from_node_id,
			from_port    = from_port,
			to_node_id   = to_node_id,
			to_port      = to_port,
		)
		script.connections.append(connection)
		return connection


	def can_connect(self, script: Script, from_node_id: str, from_port: str, to_node_id: str, to_port: str) -> bool:
		try:
			self.validate_connection(script, from_node_id, from_port, to_node_id, to_port)
		except GraphError:
			return False
		return True


	def delete_connection(self, script: Script, connection_id: str) -> List[str]:
		"""Remove a connection, and any crossing it was bridging; returns removed connection ids"""
		self._connection(script, connection_id)
		connections = [c for c in script.connections if c.id != connection_id]
		removed     = [connection_id] + self._stranded_crossings(script.nodes, connections)
		script.connections = [c for c in connections if c.id not in removed]
		if script.selected_connection_id in removed:
			script.selected_connection_id = None
		return removed


	# =========================================================================
	# VARIABLES
	# =========================================================================

	def add_variable(self, script: Script, name: str, value_type: PortType = PortType.ANY, default_value: Any = None, description: Optional[str] = None) -> ScriptVariable:
		variable = ScriptVariable(name=name, type=value_type, default_value=default_value, description=description)
		script.variables.append(variable)
		return variable


	def delete_variable(self, script: Script, variable_id: str):
		if not any(v.id == variable_id for v in script.variables):
			raise NotFound(f"Variable not found: {variable_id}")
		script.variables = [v for v in script.variables if v.id != variable_id]


	# =========================================================================
	# AUDIT
	# =========================================================================

	def check_invariants(self, script: Script) -> List[Diagnostic]:
		"""Audit a script built outside the model (e.g. loaded from disk)"""
		issues : List[Diagnostic] = []
		nodes  = {}
		for node in script.nodes:
			if node.id in nodes:
				issues.append(NotFound(f"Duplicate node id: {node.id}", node_ids=[node.id]).to_diagnostic())
				continue
			nodes[node.id] = node
			if node.type not in self.catalog:
				issues.append(UnknownNodeType(node.type, node_ids=[node.id]).to_diagnostic())

		bridged  = find_bridged_targets(script, self.catalog)
		occupied : Dict[Tuple[str, str], str] = {}
		seen_ids : Set[str] = set()
		for connection in script.connections:
			cid = connection.id
			if cid in seen_ids:
				issues.append(NotFound(f"Duplicate connection id: {cid}", connection_ids=[cid]).to_diagnostic())
				continue
			seen_ids.add(cid)

			from_node = nodes.get(connection.from_node_id)
			to_node   = nodes.get(connection.to_node_id)
			if from_node is None or to_node is None:
				missing = [i for i in (connection.from_node_id, connection.to_node_id) if i not in nodes]
				issues.append(NotFound(f"Connection {cid} references missing node(s)", node_ids=missing, connection_ids=[cid]).to_diagnostic())
				continue
			if from_node.type not in self.catalog or to_node.type not in self.catalog:
				continue

			from_template = self.catalog.by_type(from_node.type)
			to_template   = self.catalog.by_type(to_node.type)
			source        = from_template.output_port(connection.from_port)
			target        = to_template.input_port(connection.to_port)
			if source is None or target is None:
				issues.append(NotFound(f"Connection {cid} references an unknown port", node_ids=[from_node.id, to_node.id], connection_ids=[cid]).to_diagnostic())
				continue

			key = (to_node.id, connection.to_port)
			if key in occupied:
				issues.append(PortOccupied(f"Input {to_node.id}.{connection.to_port} has more than one connection", node_ids=[to_node.id], connection_ids=[occupied[key], cid]).to_diagnostic())
			occupied[key] = cid

			if not crossing_allowed(from_node, from_template, to_template, bridged):
				issues.append(ContextViolation(f"Connection {cid} crosses contexts without a bridge", node_ids=[from_node.id, to_node.id], connection_ids=[cid]).to_diagnostic())

		return issues


	# =========================================================================
	# SCRIPTS
	# =========================================================================

	def _script(self, project: Project, script_id: str) -> Script:
		script = project.find_script(script_id)
		if script is None:
			raise NotFound(f"Script not found: {script_id}")
		return script


	def create_script(self, project: Project, name: str, description: Optional[str] = None) -> Script:
		script = Script(name=name, description=description)
		project.scripts.append(script)
		if project.current_script_id is None:
			project.current_script_id = script.id
		return script


	def set_script_name(self, script: Script, name: str) -> Script:
		name = name.strip()
		if not name:
			raise ValueError("Script name cannot be empty")
		script.name = name
		return script


	def rename_script(self, project: Project, script_id: str, name: str) -> Script:
		return self.set_script_name(self._script(project, script_id), name)


	def duplicate_script(self, project: Project, script_id: str, name: Optional[str] = None) -> Script:
		"""Deep copy with fresh node and connection ids; positions are preserved"""
		source  = self._script(project, script_id)
		id_map  = {node.id: generate_id() for node in source.nodes}

		nodes = []
		for node in source.nodes:
			clone           = copy.deepcopy(node)
			clone.id        = id_map[node.id]
			clone.parent_id = id_map.get(node.parent_id) if node.parent_id else None
			nodes.append(clone)

		connections = [
			Connection(
				from_node_id = id_map[c.from_node_id],
				from_port    = c.from_port,
				to_node_id   = id_map[c.to_node_id],
				to_port      = c.to_port,
			)
			for c in source.connections
			if c.from_node_id in id_map and c.to_node_id in id_map
		]

		duplicate = Script(
			name        = name or f"{source.name} (copy)",
			description = source.description,
			nodes       = nodes,
			connections = connections,
			variables   = copy.deepcopy(source.variables),
		)
		project.scripts.append(duplicate)
		return duplicate


	def delete_script(self, project: Project, script_id: str) -> Script:
		script = self._script(project, script_id)
		project.scripts = [s for s in project.scripts if s.id != script_id]
		if project.current_script_id == script_id:
			project.current_script_id = None
		return script


	def set_current_script(self, project: Project, script_id: Optional[str]) -> Optional[Script]:
		if script_id is None:
			project.current_script_id = None
			return None
		script = self._script(project, script_id)
		project.current_script_id = script.id
		return script
