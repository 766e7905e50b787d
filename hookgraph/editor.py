# editor

import copy


from   enum     import Enum
from   pydantic import BaseModel, Field
from   typing   import List, Optional


from   .errors  import NotFound
from   .graph   import GraphModel, crossing_allowed, find_bridged_targets
from   .schema  import DEFAULT_DUPLICATE_OFFSET, Connection, Position, Script, ScriptNode, generate_id
from   .search  import RecentNodes, SearchSession


class EditorMode(str, Enum):
	IDLE                 = "Idle"
	NODES_SELECTED       = "NodesSelected"
	CONNECTION_SELECTED  = "ConnectionSelected"
	PENDING_CONNECTION   = "PendingConnection"
	COMMAND_SURFACE_OPEN = "CommandSurfaceOpen"


class EditorState(BaseModel):
	mode             : EditorMode         = EditorMode.IDLE
	node_ids         : List[str]          = Field(default_factory=list)
	connection_id    : Optional[str]      = None
	from_node_id     : Optional[str]      = None
	from_port        : Optional[str]      = None
	command_position : Optional[Position] = None


class EditOutcome(BaseModel):
	applied                : bool
	reason                 : Optional[str] = None
	removed_node_ids       : List[str]     = Field(default_factory=list)
	removed_connection_ids : List[str]     = Field(default_factory=list)


class GraphEditor:
	"""
	Editing session over a single script.

	Holds the selection state machine. Mutations go through the GraphModel,
	so every failure leaves the script untouched; the selection is mirrored
	into the script so it is persisted with it.
	"""

	def __init__(self, graph: GraphModel, script: Script, recent: Optional[RecentNodes] = None):
		self.graph   : GraphModel              = graph
		self.script  : Script                  = script
		self.recent  : RecentNodes             = recent if recent is not None else RecentNodes()
		self.session : Optional[SearchSession] = None
		self._prior  : Optional[EditorState]   = None

		if script.selected_node_ids:
			self.state = EditorState(mode=EditorMode.NODES_SELECTED, node_ids=list(script.selected_node_ids))
		elif script.selected_connection_id:
			self.state = EditorState(mode=EditorMode.CONNECTION_SELECTED, connection_id=script.selected_connection_id)
		else:
			self.state = EditorState()
		self._prune()


	@property
	def mode(self) -> EditorMode:
		return self.state.mode


	@property
	def selected_node_ids(self) -> List[str]:
		return list(self.state.node_ids)


	@property
	def selected_connection_id(self) -> Optional[str]:
		return self.state.connection_id


	def _set_state(self, state: EditorState):
		self.state = state
		self.script.selected_node_ids      = list(state.node_ids)
		self.script.selected_connection_id = state.connection_id


	def _idle(self):
		self._set_state(EditorState())


	def _prune(self):
		"""Drop selected ids that no longer exist in the script"""
		state = self.state.model_copy(deep=True)
		state.node_ids = [i for i in state.node_ids if self.script.find_node(i) is not None]
		if state.connection_id and self.script.find_connection(state.connection_id) is None:
			state.connection_id = None
		if state.mode == EditorMode.NODES_SELECTED and not state.node_ids:
			state = EditorState()
		elif state.mode == EditorMode.CONNECTION_SELECTED and state.connection_id is None:
			state = EditorState()
		self._set_state(state)


	def _close_surface(self):
		if self.state.mode == EditorMode.COMMAND_SURFACE_OPEN:
			self.cancel_command()


	# =========================================================================
	# POINTER INPUT
	# =========================================================================

	def click_node(self, node_id: str, additive: bool = False) -> EditorState:
		if self.script.find_node(node_id) is None:
			raise NotFound(f"Node not found: {node_id}", node_ids=[node_id])
		self._close_surface()
		if additive and self.state.mode == EditorMode.NODES_SELECTED:
			ids = list(self.state.node_ids)
			if node_id not in ids:
				ids.append(node_id)
		else:
			ids = [node_id]
		self._set_state(EditorState(mode=EditorMode.NODES_SELECTED, node_ids=ids))
		return self.state


	def click_canvas(self) -> EditorState:
		self._close_surface()
		self._idle()
		return self.state


	def click_connection(self, connection_id: str) -> EditorState:
		if self.script.find_connection(connection_id) is None:
			raise NotFound(f"Connection not found: {connection_id}", connection_ids=[connection_id])
		self._close_surface()
		self._set_state(EditorState(mode=EditorMode.CONNECTION_SELECTED, connection_id=connection_id))
		return self.state


	def select_all(self) -> EditorState:
		self._close_surface()
		ids = [node.id for node in self.script.nodes if not node.parent_id]
		if ids:
			self._set_state(EditorState(mode=EditorMode.NODES_SELECTED, node_ids=ids))
		else:
			self._idle()
		return self.state


	# =========================================================================
	# CONNECTION DRAG
	# =========================================================================

	def begin_connection(self, node_id: str, port: str) -> EditorState:
		node = self.script.find_node(node_id)
		if node is None:
			raise NotFound(f"Node not found: {node_id}", node_ids=[node_id])
		if self.graph.template_of(node).output_port(port) is None:
			raise NotFound(f"Output port not found: {node_id}.{port}", node_ids=[node_id])
		self._close_surface()
		self._set_state(EditorState(mode=EditorMode.PENDING_CONNECTION, from_node_id=node_id, from_port=port))
		return self.state


	def release_on_port(self, node_id: str, port: str) -> Optional[Connection]:
		"""Finish a drag over an input port; the editor is Idle afterwards, even on error"""
		if self.state.mode != EditorMode.PENDING_CONNECTION:
			return None
		from_node_id = self.state.from_node_id
		from_port    = self.state.from_port
		self._idle()
		return self.graph.connect(self.script, from_node_id, from_port, node_id, port)


	def release_elsewhere(self) -> EditorState:
		if self.state.mode == EditorMode.PENDING_CONNECTION:
			self._idle()
		return self.state


	# =========================================================================
	# COMMAND SURFACE
	# =========================================================================

	def open_command_surface(self, x: float, y: float, query: str = "") -> SearchSession:
		if self.state.mode != EditorMode.COMMAND_SURFACE_OPEN:
			self._prior = self.state.model_copy(deep=True)
		self.session = SearchSession(self.graph.catalog, self.recent, query=query)
		self.state   = EditorState(mode=EditorMode.COMMAND_SURFACE_OPEN, command_position=Position(x=x, y=y))
		return self.session


	def commit_command(self, node_type: Optional[str] = None) -> Optional[ScriptNode]:
		"""
		Insert the template under the cursor (or `node_type` when given) at
		the invocation coordinates. Returns None when there is nothing to insert.
		"""
		if self.state.mode != EditorMode.COMMAND_SURFACE_OPEN or self.session is None:
			return None

		if node_type is None:
			template = self.session.current
		else:
			template = self.graph.catalog.by_type(node_type)
		if template is None:
			return None

		node = self.graph.add_node(self.script, template.type, position=self.state.command_position.model_copy())
		self.recent.record(template.type)
		self.session.close()
		self.session = None
		self._prior  = None
		self._idle()
		return node


	def cancel_command(self) -> EditorState:
		if self.state.mode != EditorMode.COMMAND_SURFACE_OPEN:
			return self.state
		if self.session is not None:
			self.session.close()
		self.session = None
		prior        = self._prior or EditorState()
		self._prior  = None
		self._set_state(prior)
		self._prune()
		return self.state


	# =========================================================================
	# COMMANDS
	# =========================================================================

	def delete_selection(self) -> EditOutcome:
		self._prune()

		if self.state.mode == EditorMode.CONNECTION_SELECTED:
			removed = self.graph.delete_connection(self.script, self.state.connection_id)
			self._idle()
			return EditOutcome(applied=True, removed_connection_ids=removed)

		if self.state.mode != EditorMode.NODES_SELECTED:
			return EditOutcome(applied=False, reason="Nothing selected")

		ids = list(self.state.node_ids)
		if len(ids) == 1:
			node = self.script.find_node(ids[0])
			if node.type in self.graph.catalog and self.graph.catalog.is_event(node.type):
				dependents = [c.to_node_id for c in self.script.connections_from(node.id) if c.to_node_id not in ids]
				if dependents:
					return EditOutcome(
						applied = False,
						reason  = f"Event node {node.id} still feeds {len(dependents)} node(s); select them too to delete the subgraph",
					)

		removed_nodes, removed_connections = self.graph.delete_nodes(self.script, ids)
		self._idle()
		return EditOutcome(
			applied                = True,
			removed_node_ids       = removed_nodes,
			removed_connection_ids = removed_connections,
		)


	def duplicate_selection(self, offset: float = DEFAULT_DUPLICATE_OFFSET) -> List[ScriptNode]:
		"""Copy the selected nodes and the connections among them; the copies become the selection"""
		self._prune()
		if self.state.mode != EditorMode.NODES_SELECTED:
			return []

		selected = [n for n in self.script.nodes if n.id in self.state.node_ids]
		id_map   = {node.id: generate_id() for node in selected}

		copies = []
		for node in selected:
			clone            = copy.deepcopy(node)
			clone.id         = id_map[node.id]
			clone.position   = Position(x=node.position.x + offset, y=node.position.y + offset)
			if node.parent_id in id_map:
				clone.parent_id = id_map[node.parent_id]
			copies.append(clone)

		connections = [
			Connection(
				from_node_id = id_map[c.from_node_id],
				from_port    = c.from_port,
				to_node_id   = id_map[c.to_node_id],
				to_port      = c.to_port,
			)
			for c in self.script.connections
			if c.from_node_id in id_map and c.to_node_id in id_map
		]

		# a copied target node loses its bridge when the bridge was not copied
		candidate = self.script.model_copy(update={"nodes": self.script.nodes + copies, "connections": connections})
		bridged   = find_bridged_targets(candidate, self.graph.catalog, connections)
		nodes     = {node.id: node for node in copies}
		kept      = []
		for connection in connections:
			from_node = nodes[connection.from_node_id]
			to_node   = nodes[connection.to_node_id]
			if crossing_allowed(from_node, self.graph.template_of(from_node), self.graph.template_of(to_node), bridged):
				kept.append(connection)

		self.script.nodes       = self.script.nodes + copies
		self.script.connections = self.script.connections + kept
		self._set_state(EditorState(mode=EditorMode.NODES_SELECTED, node_ids=[n.id for n in copies]))
		return copies


	def move_selection(self, dx: float, dy: float) -> List[ScriptNode]:
		self._prune()
		moved = []
		for node in self.script.nodes:
			if node.id in self.state.node_ids:
				node.position = Position(x=node.position.x + dx, y=node.position.y + dy)
				moved.append(node)
		return moved


	def rename_script(self, name: str) -> Script:
		return self.graph.set_script_name(self.script, name)


	def rename_node(self, node_id: str, label: str) -> ScriptNode:
		return self.graph.rename_node(self.script, node_id, label)


	def delete_node(self, node_id: str) -> EditOutcome:
		"""Delete a single node through the selection guard"""
		self.click_node(node_id)
		return self.delete_selection()


	def can_release_on(self, node_id: str, port: str) -> bool:
		if self.state.mode != EditorMode.PENDING_CONNECTION:
			return False
		return self.graph.can_connect(self.script, self.state.from_node_id, self.state.from_port, node_id, port)
