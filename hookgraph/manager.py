# manager

import copy
import os


from   typing     import Any, Dict, List, Optional


from   .builtin   import build_default_catalog
from   .catalog   import NodeCatalog
from   .compiler  import CompileResult, ScriptCompiler
from   .editor    import EditOutcome, EditorState, GraphEditor
from   .errors    import GraphError, NotFound
from   .event_bus import EventBus, EventType
from   .graph     import GraphModel
from   .listing   import render_listing
from   .schema    import Connection, DEFAULT_DUPLICATE_OFFSET, NodeTemplate, Position, PortType, Project, Script, ScriptNode, ScriptVariable
from   .search    import CategoryFilter, RecentNodes, SearchSession, search
from   .store     import DEFAULT_PROJECT_FILE, DEFAULT_RECENT_FILE, ProjectStore, RecencyStore
from   .utils     import log_print


class ScriptManager:
	"""
	Owns the project and every editing session of the hosting shell.
	Each operation is published on the event bus once it succeeds.
	"""

	def __init__(self, event_bus: EventBus, catalog: Optional[NodeCatalog] = None, data_dir: Optional[str] = None):
		self._event_bus : EventBus               = event_bus
		self.catalog    : NodeCatalog            = catalog or build_default_catalog()
		self.graph      : GraphModel             = GraphModel(self.catalog)
		self.compiler   : ScriptCompiler         = ScriptCompiler(self.catalog)
		self.project    : Project                = Project()
		self.recent     : RecentNodes            = RecentNodes()
		self._editors   : Dict[str, GraphEditor] = {}

		self._project_store : Optional[ProjectStore] = None
		self._recency_store : Optional[RecencyStore] = None
		if data_dir:
			self._project_store = ProjectStore(os.path.join(data_dir, DEFAULT_PROJECT_FILE), self.graph)
			self._recency_store = RecencyStore(os.path.join(data_dir, DEFAULT_RECENT_FILE), known_types=self.catalog.types())


	async def initialize(self):
		if self._recency_store:
			self.recent = self._recency_store.load()
		if self._project_store and self._project_store.exists():
			await self.load_project()
		log_print(f"Manager ready: {len(self.catalog)} node types, {len(self.project.scripts)} script(s)")


	async def clear(self):
		self.project  = Project()
		self._editors = {}
		self.recent.clear()
		await self._event_bus.emit(
			event_type = EventType.MANAGER_CLEARED,
		)


	# =========================================================================
	# LOOKUPS
	# =========================================================================

	def _script(self, script_id: Optional[str] = None) -> Script:
		script_id = script_id or self.project.current_script_id
		script    = self.project.find_script(script_id) if script_id else None
		if script is None:
			raise NotFound(f"Script not found: {script_id}")
		return script


	def editor(self, script_id: Optional[str] = None) -> GraphEditor:
		script = self._script(script_id)
		editor = self._editors.get(script.id)
		if editor is None or editor.script is not script:
			editor = GraphEditor(self.graph, script, self.recent)
			self._editors[script.id] = editor
		return editor


	def _save_recent(self):
		if self._recency_store:
			self._recency_store.save(self.recent)


	# =========================================================================
	# CATALOG
	# =========================================================================

	async def list_templates(self) -> List[NodeTemplate]:
		return self.catalog.list()


	async def get_template(self, node_type: str) -> NodeTemplate:
		return self.catalog.by_type(node_type)


	async def search(self, query: str, category_filter: CategoryFilter = CategoryFilter.ALL, limit: Optional[int] = None) -> List[NodeTemplate]:
		result = search(self.catalog, query, category_filter, self.recent)
		if limit is not None:
			result = result[:limit]
		return result


	# =========================================================================
	# SCRIPTS
	# =========================================================================

	async def create_script(self, name: str, description: Optional[str] = None) -> Script:
		script = self.graph.create_script(self.project, name, description)
		await self._event_bus.emit(
			event_type = EventType.SCRIPT_CREATED,
			script_id  = script.id,
			data       = {"name": script.name},
		)
		return script


	async def list_scripts(self) -> List[Dict[str, Any]]:
		result = [
			{
				"id"          : script.id,
				"name"        : script.name,
				"description" : script.description,
				"nodes"       : len(script.nodes),
				"connections" : len(script.connections),
				"current"     : script.id == self.project.current_script_id,
			}
			for script in self.project.scripts
		]
		return result


	async def get_script(self, script_id: Optional[str] = None) -> Script:
		return copy.deepcopy(self._script(script_id))


	async def rename_script(self, script_id: str, name: str) -> Script:
		script = self.graph.rename_script(self.project, script_id, name)
		await self._event_bus.emit(
			event_type = EventType.SCRIPT_RENAMED,
			script_id  = script.id,
			data       = {"name": script.name},
		)
		return script


	async def duplicate_script(self, script_id: str, name: Optional[str] = None) -> Script:
		script = self.graph.duplicate_script(self.project, script_id, name)
		await self._event_bus.emit(
			event_type = EventType.SCRIPT_DUPLICATED,
			script_id  = script.id,
			data       = {"source_id": script_id, "name": script.name},
		)
		return script


	async def delete_script(self, script_id: str, confirmed: bool = False) -> Dict[str, Any]:
		script = self._script(script_id)
		if not confirmed:
			result = {
				"status"      : "confirmation_required",
				"script_id"   : script.id,
				"nodes"       : len(script.nodes),
				"connections" : len(script.connections),
			}
			return result
		self.graph.delete_script(self.project, script.id)
		self._editors.pop(script.id, None)
		await self._event_bus.emit(
			event_type = EventType.SCRIPT_REMOVED,
			script_id  = script.id,
		)
		result = {
			"status"    : "removed",
			"script_id" : script.id,
		}
		return result


	async def select_script(self, script_id: Optional[str]) -> Optional[Script]:
		script = self.graph.set_current_script(self.project, script_id)
		await self._event_bus.emit(
			event_type = EventType.SCRIPT_SELECTED,
			script_id  = script_id,
		)
		return script


	# =========================================================================
	# NODES AND CONNECTIONS
	# =========================================================================

	async def add_node(self,
		script_id        : str,
		node_type        : str,
		position         : Optional[Position]       = None,
		parameter_values : Optional[Dict[str, Any]] = None,
		label            : Optional[str]            = None,
		parent_id        : Optional[str]            = None,
	) -> ScriptNode:
		script = self._script(script_id)
		node   = self.graph.add_node(script, node_type, position, parameter_values, label, parent_id)
		await self._event_bus.emit(
			event_type = EventType.NODE_ADDED,
			script_id  = script.id,
			node_id    = node.id,
			data       = {"type": node.type},
		)
		return node


	async def update_node(self,
		script_id        : str,
		node_id          : str,
		position         : Optional[Position]       = None,
		parameter_values : Optional[Dict[str, Any]] = None,
		label            : Optional[str]            = None,
	) -> ScriptNode:
		script = self._script(script_id)
		node   = self.graph.update_node(script, node_id, position, parameter_values, label)
		await self._event_bus.emit(
			event_type = EventType.NODE_UPDATED,
			script_id  = script.id,
			node_id    = node.id,
		)
		return node


	async def delete_node(self, script_id: str, node_id: str) -> EditOutcome:
		"""Single-node delete, subject to the same event guard as a selection delete"""
		editor  = self.editor(script_id)
		outcome = editor.delete_node(node_id)
		return await self._publish_outcome(editor, outcome)


	async def connect(self, script_id: str, from_node_id: str, from_port: str, to_node_id: str, to_port: str) -> Connection:
		script = self._script(script_id)
		try:
			connection = self.graph.connect(script, from_node_id, from_port, to_node_id, to_port)
		except GraphError as e:
			await self._event_bus.emit(
				event_type = EventType.CONNECTION_REJECTED,
				script_id  = script.id,
				data       = e.to_diagnostic().model_dump(mode="json"),
				error      = e.message,
			)
			raise
		await self._event_bus.emit(
			event_type    = EventType.CONNECTION_ADDED,
			script_id     = script.id,
			connection_id = connection.id,
		)
		return connection


	async def delete_connection(self, script_id: str, connection_id: str) -> List[str]:
		script  = self._script(script_id)
		removed = self.graph.delete_connection(script, connection_id)
		for removed_id in removed:
			await self._event_bus.emit(
				event_type    = EventType.CONNECTION_REMOVED,
				script_id     = script.id,
				connection_id = removed_id,
			)
		return removed


	async def add_variable(self, script_id: str, name: str, value_type: PortType = PortType.ANY, default_value: Any = None, description: Optional[str] = None) -> ScriptVariable:
		script   = self._script(script_id)
		variable = self.graph.add_variable(script, name, value_type, default_value, description)
		await self._event_bus.emit(
			event_type = EventType.VARIABLE_ADDED,
			script_id  = script.id,
			data       = {"variable_id": variable.id, "name": variable.name},
		)
		return variable


	async def delete_variable(self, script_id: str, variable_id: str):
		script = self._script(script_id)
		self.graph.delete_variable(script, variable_id)
		await self._event_bus.emit(
			event_type = EventType.VARIABLE_REMOVED,
			script_id  = script.id,
			data       = {"variable_id": variable_id},
		)


	# =========================================================================
	# EDITOR
	# =========================================================================

	async def _selection_changed(self, editor: GraphEditor) -> EditorState:
		await self._event_bus.emit(
			event_type = EventType.SELECTION_CHANGED,
			script_id  = editor.script.id,
			data       = editor.state.model_dump(mode="json"),
		)
		return editor.state


	async def click_node(self, script_id: str, node_id: str, additive: bool = False) -> EditorState:
		editor = self.editor(script_id)
		editor.click_node(node_id, additive)
		return await self._selection_changed(editor)


	async def click_connection(self, script_id: str, connection_id: str) -> EditorState:
		editor = self.editor(script_id)
		editor.click_connection(connection_id)
		return await self._selection_changed(editor)


	async def click_canvas(self, script_id: str) -> EditorState:
		editor = self.editor(script_id)
		editor.click_canvas()
		return await self._selection_changed(editor)


	async def select_all(self, script_id: str) -> EditorState:
		editor = self.editor(script_id)
		editor.select_all()
		return await self._selection_changed(editor)


	async def begin_connection(self, script_id: str, node_id: str, port: str) -> EditorState:
		editor = self.editor(script_id)
		editor.begin_connection(node_id, port)
		return await self._selection_changed(editor)


	async def release_connection(self, script_id: str, node_id: Optional[str] = None, port: Optional[str] = None) -> Optional[Connection]:
		"""Finish a connection drag; without a target port the drag is cancelled"""
		editor = self.editor(script_id)
		if node_id is None or port is None:
			editor.release_elsewhere()
			await self._selection_changed(editor)
			return None
		try:
			connection = editor.release_on_port(node_id, port)
		except GraphError as e:
			await self._event_bus.emit(
				event_type = EventType.CONNECTION_REJECTED,
				script_id  = editor.script.id,
				data       = e.to_diagnostic().model_dump(mode="json"),
				error      = e.message,
			)
			raise
		if connection is not None:
			await self._event_bus.emit(
				event_type    = EventType.CONNECTION_ADDED,
				script_id     = editor.script.id,
				connection_id = connection.id,
			)
		return connection


	async def delete_selection(self, script_id: str) -> EditOutcome:
		editor  = self.editor(script_id)
		outcome = editor.delete_selection()
		return await self._publish_outcome(editor, outcome)


	async def _publish_outcome(self, editor: GraphEditor, outcome: EditOutcome) -> EditOutcome:
		if not outcome.applied:
			await self._event_bus.emit(
				event_type = EventType.DELETE_REFUSED,
				script_id  = editor.script.id,
				data       = {"reason": outcome.reason},
			)
			return outcome
		for node_id in outcome.removed_node_ids:
			await self._event_bus.emit(
				event_type = EventType.NODE_REMOVED,
				script_id  = editor.script.id,
				node_id    = node_id,
			)
		for connection_id in outcome.removed_connection_ids:
			await self._event_bus.emit(
				event_type    = EventType.CONNECTION_REMOVED,
				script_id     = editor.script.id,
				connection_id = connection_id,
			)
		await self._selection_changed(editor)
		return outcome


	async def duplicate_selection(self, script_id: str, offset: float = DEFAULT_DUPLICATE_OFFSET) -> List[ScriptNode]:
		editor = self.editor(script_id)
		copies = editor.duplicate_selection(offset)
		if copies:
			await self._event_bus.emit(
				event_type = EventType.NODE_DUPLICATED,
				script_id  = editor.script.id,
				data       = {"node_ids": [node.id for node in copies]},
			)
			await self._selection_changed(editor)
		return copies


	async def move_selection(self, script_id: str, dx: float, dy: float) -> List[ScriptNode]:
		editor = self.editor(script_id)
		moved  = editor.move_selection(dx, dy)
		for node in moved:
			await self._event_bus.emit(
				event_type = EventType.NODE_UPDATED,
				script_id  = editor.script.id,
				node_id    = node.id,
			)
		return moved


	async def rename_node(self, script_id: str, node_id: str, label: str) -> ScriptNode:
		editor = self.editor(script_id)
		node   = editor.rename_node(node_id, label)
		await self._event_bus.emit(
			event_type = EventType.NODE_UPDATED,
			script_id  = editor.script.id,
			node_id    = node.id,
			data       = {"label": node.label},
		)
		return node


	# =========================================================================
	# COMMAND SURFACE
	# =========================================================================

	async def open_command_surface(self, script_id: str, x: float, y: float, query: str = "") -> SearchSession:
		editor  = self.editor(script_id)
		session = editor.open_command_surface(x, y, query)
		await self._event_bus.emit(
			event_type = EventType.COMMAND_SURFACE_OPENED,
			script_id  = editor.script.id,
			data       = {"x": x, "y": y},
		)
		return session


	def command_session(self, script_id: str) -> SearchSession:
		editor = self.editor(script_id)
		if editor.session is None:
			raise NotFound(f"No command surface open for script: {editor.script.id}")
		return editor.session


	async def commit_command(self, script_id: str, node_type: Optional[str] = None) -> Optional[ScriptNode]:
		editor = self.editor(script_id)
		node   = editor.commit_command(node_type)
		if node is None:
			return None
		self._save_recent()
		await self._event_bus.emit(
			event_type = EventType.NODE_ADDED,
			script_id  = editor.script.id,
			node_id    = node.id,
			data       = {"type": node.type},
		)
		await self._event_bus.emit(
			event_type = EventType.COMMAND_SURFACE_CLOSED,
			script_id  = editor.script.id,
		)
		return node


	async def cancel_command(self, script_id: str) -> EditorState:
		editor = self.editor(script_id)
		state  = editor.cancel_command()
		await self._event_bus.emit(
			event_type = EventType.COMMAND_SURFACE_CLOSED,
			script_id  = editor.script.id,
		)
		return state


	# =========================================================================
	# COMPILATION
	# =========================================================================

	async def compile(self, script_id: Optional[str] = None) -> CompileResult:
		script = self._script(script_id)
		result = self.compiler.compile(script)
		event  = EventType.SCRIPT_COMPILED if result.ok else EventType.SCRIPT_COMPILE_FAILED
		await self._event_bus.emit(
			event_type = event,
			script_id  = script.id,
			data       = {
				"roots"    : len(result.roots),
				"failed"   : [r.event_node_id for r in result.roots if not r.ok],
				"warnings" : len(result.warnings),
			},
		)
		return result


	async def listing(self, script_id: Optional[str] = None) -> str:
		script = self._script(script_id)
		result = await self.compile(script.id)
		return render_listing(result, script)


	# =========================================================================
	# PERSISTENCE
	# =========================================================================

	async def save_project(self) -> bool:
		if not self._project_store:
			return False
		ok = self._project_store.save(self.project)
		self._save_recent()
		if ok:
			await self._event_bus.emit(
				event_type = EventType.MANAGER_PROJECT_SAVED,
				data       = {"scripts": len(self.project.scripts)},
			)
		return ok


	async def load_project(self) -> Project:
		if not self._project_store:
			return self.project
		self.project  = self._project_store.load()
		self._editors = {}
		await self._event_bus.emit(
			event_type = EventType.MANAGER_PROJECT_LOADED,
			data       = {
				"scripts" : len(self.project.scripts),
				"issues"  : {k: len(v) for k, v in self._project_store.last_audit.items()},
			},
		)
		return self.project
