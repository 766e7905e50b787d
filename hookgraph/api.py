# api

from   fastapi    import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from   pydantic   import BaseModel
from   typing     import Any, Dict, Optional


from   .errors    import ErrorKind, GraphError
from   .event_bus import EventBus
from   .manager   import ScriptManager
from   .schema    import DEFAULT_DUPLICATE_OFFSET, Position, PortType
from   .search    import CategoryFilter, SearchSession
from   .utils     import get_now_str, log_print


class SearchRequest(BaseModel):
	query           : str            = ""
	category_filter : CategoryFilter = CategoryFilter.ALL
	limit           : Optional[int]  = None


class ScriptCreateRequest(BaseModel):
	name        : str
	description : Optional[str] = None


class ScriptRenameRequest(BaseModel):
	name : str


class ScriptDuplicateRequest(BaseModel):
	name : Optional[str] = None


class ScriptDeleteRequest(BaseModel):
	confirmed : bool = False


class NodeAddRequest(BaseModel):
	type             : str
	position         : Optional[Position]       = None
	parameter_values : Optional[Dict[str, Any]] = None
	label            : Optional[str]            = None
	parent_id        : Optional[str]            = None


class NodeUpdateRequest(BaseModel):
	position         : Optional[Position]       = None
	parameter_values : Optional[Dict[str, Any]] = None
	label            : Optional[str]            = None


class NodeRenameRequest(BaseModel):
	node_id : str
	label   : str


class ConnectRequest(BaseModel):
	from_node_id : str
	from_port    : str
	to_node_id   : str
	to_port      : str


class VariableAddRequest(BaseModel):
	name          : str
	type          : PortType      = PortType.ANY
	default_value : Any           = None
	description   : Optional[str] = None


class ClickNodeRequest(BaseModel):
	node_id  : str
	additive : bool = False


class ClickConnectionRequest(BaseModel):
	connection_id : str


class PortRequest(BaseModel):
	node_id : Optional[str] = None
	port    : Optional[str] = None


class MoveRequest(BaseModel):
	dx : float
	dy : float


class DuplicateRequest(BaseModel):
	offset : float = DEFAULT_DUPLICATE_OFFSET


class CommandOpenRequest(BaseModel):
	x     : float
	y     : float
	query : str = ""


class CommandQueryRequest(BaseModel):
	query           : Optional[str]            = None
	category_filter : Optional[CategoryFilter] = None


class CommandKeyRequest(BaseModel):
	key   : str
	shift : bool = False


class CommandCommitRequest(BaseModel):
	type : Optional[str] = None


def _graph_error(e: GraphError) -> HTTPException:
	status = 404 if e.kind in (ErrorKind.NOT_FOUND, ErrorKind.UNKNOWN_NODE_TYPE) else 409
	detail = e.to_diagnostic().model_dump(mode="json", exclude={"fatal"})
	return HTTPException(status_code=status, detail=detail)


def _session_state(session: SearchSession) -> Dict[str, Any]:
	result = {
		"query"           : session.query,
		"category_filter" : session.category_filter.value,
		"cursor"          : session.cursor,
		"closed"          : session.closed,
		"results"         : [t.model_dump(mode="json") for t in session.results],
	}
	return result


def setup_api(server: Any, app: FastAPI, event_bus: EventBus, manager: ScriptManager):

	@app.post("/shutdown")
	async def shutdown_server():
		nonlocal server
		if server and server.should_exit is False:
			server.should_exit = True
		server = None
		result = {
			"status"  : "none",
			"message" : "Server shut down",
		}
		return result


	@app.post("/ping")
	async def ping():
		result = {
			"message"   : "pong",
			"timestamp" : get_now_str(),
		}
		return result


	# =========================================================================
	# CATALOG AND SEARCH
	# =========================================================================

	@app.post("/catalog/list")
	async def catalog_list():
		nonlocal manager
		templates = await manager.list_templates()
		result    = {
			"templates" : [t.model_dump(mode="json") for t in templates],
		}
		return result


	@app.post("/catalog/categories")
	async def catalog_categories():
		nonlocal manager
		result = {
			"categories" : [g.model_dump(mode="json") for g in manager.catalog.categories()],
		}
		return result


	@app.post("/catalog/get/{node_type}")
	async def catalog_get(node_type: str):
		nonlocal manager
		try:
			template = await manager.get_template(node_type)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"template" : template.model_dump(mode="json"),
		}
		return result


	@app.post("/search")
	async def search_templates(request: SearchRequest):
		nonlocal manager
		templates = await manager.search(request.query, request.category_filter, request.limit)
		result    = {
			"query"   : request.query,
			"results" : [t.model_dump(mode="json") for t in templates],
		}
		return result


	# =========================================================================
	# SCRIPTS
	# =========================================================================

	@app.post("/scripts/create")
	async def script_create(request: ScriptCreateRequest):
		nonlocal manager
		script = await manager.create_script(request.name, request.description)
		result = {
			"script" : script.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/list")
	async def script_list():
		nonlocal manager
		result = {
			"scripts"           : await manager.list_scripts(),
			"current_script_id" : manager.project.current_script_id,
		}
		return result


	@app.post("/scripts/get/{script_id}")
	async def script_get(script_id: str):
		nonlocal manager
		try:
			script = await manager.get_script(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"script" : script.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/rename/{script_id}")
	async def script_rename(script_id: str, request: ScriptRenameRequest):
		nonlocal manager
		try:
			script = await manager.rename_script(script_id, request.name)
		except GraphError as e:
			raise _graph_error(e)
		except ValueError as e:
			raise HTTPException(status_code=400, detail=str(e))
		result = {
			"script_id" : script.id,
			"name"      : script.name,
		}
		return result


	@app.post("/scripts/duplicate/{script_id}")
	async def script_duplicate(script_id: str, request: Optional[ScriptDuplicateRequest] = None):
		nonlocal manager
		try:
			script = await manager.duplicate_script(script_id, request.name if request else None)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"script" : script.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/delete/{script_id}")
	async def script_delete(script_id: str, request: Optional[ScriptDeleteRequest] = None):
		nonlocal manager
		try:
			result = await manager.delete_script(script_id, confirmed=bool(request and request.confirmed))
		except GraphError as e:
			raise _graph_error(e)
		return result


	@app.post("/scripts/select/{script_id}")
	async def script_select(script_id: str):
		nonlocal manager
		try:
			script = await manager.select_script(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"current_script_id" : script.id if script else None,
		}
		return result


	@app.post("/scripts/compile/{script_id}")
	async def script_compile(script_id: str):
		nonlocal manager
		try:
			compiled = await manager.compile(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"result" : compiled.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/listing/{script_id}")
	async def script_listing(script_id: str):
		nonlocal manager
		try:
			text = await manager.listing(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"script_id" : script_id,
			"listing"   : text,
		}
		return result


	# =========================================================================
	# NODES, CONNECTIONS, VARIABLES
	# =========================================================================

	@app.post("/scripts/{script_id}/nodes/add")
	async def node_add(script_id: str, request: NodeAddRequest):
		nonlocal manager
		try:
			node = await manager.add_node(script_id, request.type, request.position, request.parameter_values, request.label, request.parent_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"node" : node.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/nodes/update/{node_id}")
	async def node_update(script_id: str, node_id: str, request: NodeUpdateRequest):
		nonlocal manager
		try:
			node = await manager.update_node(script_id, node_id, request.position, request.parameter_values, request.label)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"node" : node.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/nodes/delete/{node_id}")
	async def node_delete(script_id: str, node_id: str):
		nonlocal manager
		try:
			outcome = await manager.delete_node(script_id, node_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"node_id" : node_id,
			"outcome" : outcome.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/connections/add")
	async def connection_add(script_id: str, request: ConnectRequest):
		nonlocal manager
		try:
			connection = await manager.connect(script_id, request.from_node_id, request.from_port, request.to_node_id, request.to_port)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"connection" : connection.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/connections/delete/{connection_id}")
	async def connection_delete(script_id: str, connection_id: str):
		nonlocal manager
		try:
			removed = await manager.delete_connection(script_id, connection_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"connection_id"          : connection_id,
			"status"                 : "removed",
			"removed_connection_ids" : removed,
		}
		return result


	@app.post("/scripts/{script_id}/variables/add")
	async def variable_add(script_id: str, request: VariableAddRequest):
		nonlocal manager
		try:
			variable = await manager.add_variable(script_id, request.name, request.type, request.default_value, request.description)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"variable" : variable.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/variables/delete/{variable_id}")
	async def variable_delete(script_id: str, variable_id: str):
		nonlocal manager
		try:
			await manager.delete_variable(script_id, variable_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"variable_id" : variable_id,
			"status"      : "removed",
		}
		return result


	# =========================================================================
	# EDITOR
	# =========================================================================

	@app.post("/scripts/{script_id}/editor/state")
	async def editor_state(script_id: str):
		nonlocal manager
		try:
			editor = manager.editor(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : editor.state.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/click_node")
	async def editor_click_node(script_id: str, request: ClickNodeRequest):
		nonlocal manager
		try:
			state = await manager.click_node(script_id, request.node_id, request.additive)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : state.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/click_connection")
	async def editor_click_connection(script_id: str, request: ClickConnectionRequest):
		nonlocal manager
		try:
			state = await manager.click_connection(script_id, request.connection_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : state.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/click_canvas")
	async def editor_click_canvas(script_id: str):
		nonlocal manager
		try:
			state = await manager.click_canvas(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : state.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/select_all")
	async def editor_select_all(script_id: str):
		nonlocal manager
		try:
			state = await manager.select_all(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : state.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/begin_connection")
	async def editor_begin_connection(script_id: str, request: PortRequest):
		nonlocal manager
		try:
			state = await manager.begin_connection(script_id, request.node_id, request.port)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : state.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/release_connection")
	async def editor_release_connection(script_id: str, request: PortRequest):
		nonlocal manager
		try:
			connection = await manager.release_connection(script_id, request.node_id, request.port)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"connection" : connection.model_dump(mode="json") if connection else None,
		}
		return result


	@app.post("/scripts/{script_id}/editor/delete_selection")
	async def editor_delete_selection(script_id: str):
		nonlocal manager
		try:
			outcome = await manager.delete_selection(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"outcome" : outcome.model_dump(mode="json"),
		}
		return result


	@app.post("/scripts/{script_id}/editor/duplicate_selection")
	async def editor_duplicate_selection(script_id: str, request: Optional[DuplicateRequest] = None):
		nonlocal manager
		offset = request.offset if request else DEFAULT_DUPLICATE_OFFSET
		try:
			copies = await manager.duplicate_selection(script_id, offset)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"nodes" : [node.model_dump(mode="json") for node in copies],
		}
		return result


	@app.post("/scripts/{script_id}/editor/move_selection")
	async def editor_move_selection(script_id: str, request: MoveRequest):
		nonlocal manager
		try:
			moved = await manager.move_selection(script_id, request.dx, request.dy)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"nodes" : [node.model_dump(mode="json") for node in moved],
		}
		return result


	@app.post("/scripts/{script_id}/editor/rename_node")
	async def editor_rename_node(script_id: str, request: NodeRenameRequest):
		nonlocal manager
		try:
			node = await manager.rename_node(script_id, request.node_id, request.label)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"node" : node.model_dump(mode="json"),
		}
		return result


	# =========================================================================
	# COMMAND SURFACE
	# =========================================================================

	@app.post("/scripts/{script_id}/command/open")
	async def command_open(script_id: str, request: CommandOpenRequest):
		nonlocal manager
		try:
			session = await manager.open_command_surface(script_id, request.x, request.y, request.query)
		except GraphError as e:
			raise _graph_error(e)
		return _session_state(session)


	@app.post("/scripts/{script_id}/command/query")
	async def command_query(script_id: str, request: CommandQueryRequest):
		nonlocal manager
		try:
			session = manager.command_session(script_id)
		except GraphError as e:
			raise _graph_error(e)
		if request.category_filter is not None:
			session.set_filter(request.category_filter)
		if request.query is not None:
			session.set_query(request.query)
		return _session_state(session)


	@app.post("/scripts/{script_id}/command/key")
	async def command_key(script_id: str, request: CommandKeyRequest):
		nonlocal manager
		try:
			session = manager.command_session(script_id)
		except GraphError as e:
			raise _graph_error(e)
		if request.key == "Enter":
			node = await manager.commit_command(script_id)
			return {"node": node.model_dump(mode="json") if node else None}
		if request.key == "Escape":
			state = await manager.cancel_command(script_id)
			return {"state": state.model_dump(mode="json")}
		try:
			session.handle_key(request.key, request.shift)
		except ValueError:
			raise HTTPException(status_code=400, detail=f"Unsupported key: {request.key}")
		return _session_state(session)


	@app.post("/scripts/{script_id}/command/commit")
	async def command_commit(script_id: str, request: Optional[CommandCommitRequest] = None):
		nonlocal manager
		try:
			node = await manager.commit_command(script_id, request.type if request else None)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"node" : node.model_dump(mode="json") if node else None,
		}
		return result


	@app.post("/scripts/{script_id}/command/cancel")
	async def command_cancel(script_id: str):
		nonlocal manager
		try:
			state = await manager.cancel_command(script_id)
		except GraphError as e:
			raise _graph_error(e)
		result = {
			"state" : state.model_dump(mode="json"),
		}
		return result


	# =========================================================================
	# PROJECT
	# =========================================================================

	@app.post("/project/save")
	async def project_save():
		nonlocal manager
		ok     = await manager.save_project()
		result = {
			"status" : "saved" if ok else "failed",
		}
		return result


	@app.post("/project/load")
	async def project_load():
		nonlocal manager
		project = await manager.load_project()
		result  = {
			"scripts"           : len(project.scripts),
			"current_script_id" : project.current_script_id,
		}
		return result


	@app.websocket("/events")
	async def script_events(websocket: WebSocket):
		nonlocal event_bus
		await event_bus.add_websocket_client(websocket)
		try:
			while True:
				data = await websocket.receive_text()
				log_print(f"Received WebSocket message: {data}")
		except WebSocketDisconnect:
			log_print("WebSocket client disconnected")
		except Exception as e:
			log_print(f"WebSocket error: {e}")
		event_bus.remove_websocket_client(websocket)
