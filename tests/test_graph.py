# test_graph

import pytest


from   hookgraph.errors import ContextViolation, ErrorKind, NotFound, PortOccupied, TypeMismatch, UnknownNodeType
from   hookgraph.schema import Connection, Position, Project, Script, ScriptNode


def _snapshot(script):
	return script.model_dump()


# =============================================================================
# NODES
# =============================================================================

def test_add_node(graph, script):
	node = graph.add_node(script, "log", Position(x=10, y=20))
	assert script.find_node(node.id) is node
	assert node.position.x == 10 and node.position.y == 20
	assert node.parameter_values == {}


def test_add_unknown_node_type_leaves_script_untouched(graph, script):
	before = _snapshot(script)
	with pytest.raises(UnknownNodeType):
		graph.add_node(script, "does_not_exist")
	assert _snapshot(script) == before


def test_update_node_merges_parameters(graph, script):
	node = graph.add_node(script, "log", parameter_values={"message": "a"})
	graph.update_node(script, node.id, position=Position(x=5, y=6), parameter_values={"level": 2}, label="Trace")
	assert node.parameter_values == {"message": "a", "level": 2}
	assert node.position.x == 5
	assert node.label == "Trace"


def test_rename_node_blank_clears_label(graph, script):
	node = graph.add_node(script, "log", label="Old")
	graph.rename_node(script, node.id, "   ")
	assert node.label is None


def test_ids_never_reused(graph, script):
	first = graph.add_node(script, "log")
	graph.delete_node(script, first.id)
	second = graph.add_node(script, "log")
	assert second.id != first.id


# =============================================================================
# CONNECTIONS
# =============================================================================

def test_connect_adds_exactly_one(graph, script):
	event = graph.add_node(script, "event_ui")
	log   = graph.add_node(script, "log")
	nodes = _snapshot(script)["nodes"]
	connection = graph.connect(script, event.id, "exec", log.id, "exec")
	assert len(script.connections) == 1
	assert script.connections[0] is connection
	assert _snapshot(script)["nodes"] == nodes


def test_any_is_compatible(graph, script):
	event = graph.add_node(script, "event_ui")
	log   = graph.add_node(script, "log")
	graph.connect(script, event.id, "value", log.id, "message")
	assert len(script.connections) == 1


def test_type_mismatch(graph, script):
	text = graph.add_node(script, "const_string")
	math = graph.add_node(script, "math")
	with pytest.raises(TypeMismatch) as info:
		graph.connect(script, text.id, "value", math.id, "a")
	assert set(info.value.node_ids) == {text.id, math.id}
	assert script.connections == []


def test_conversion_node_adapts_scalars(graph, script):
	text    = graph.add_node(script, "const_string")
	convert = graph.add_node(script, "to_pointer")
	graph.connect(script, text.id, "value", convert.id, "value")
	assert len(script.connections) == 1


def test_flow_never_mixes_with_values(graph, script):
	event   = graph.add_node(script, "event_ui")
	log     = graph.add_node(script, "log")
	convert = graph.add_node(script, "to_string")
	with pytest.raises(TypeMismatch):
		graph.connect(script, event.id, "exec", log.id, "message")
	with pytest.raises(TypeMismatch):
		graph.connect(script, event.id, "exec", convert.id, "value")


def test_context_violation_without_bridge(graph, script):
	event = graph.add_node(script, "event_ui")
	read  = graph.add_node(script, "memory_read")
	with pytest.raises(ContextViolation) as info:
		graph.connect(script, event.id, "exec", read.id, "exec")
	assert info.value.node_ids == [event.id, read.id]
	assert script.connections == []


def test_bridge_allows_crossing(graph, script, bridged):
	assert len(script.connections) == 4


def test_target_value_needs_bridge_to_return(graph, script):
	read = graph.add_node(script, "memory_read")
	log  = graph.add_node(script, "log")
	with pytest.raises(ContextViolation):
		graph.connect(script, read.id, "value", log.id, "message")


def test_port_occupied(graph, script):
	first  = graph.add_node(script, "const_string")
	second = graph.add_node(script, "const_string")
	log    = graph.add_node(script, "log")
	existing = graph.connect(script, first.id, "value", log.id, "message")
	with pytest.raises(PortOccupied) as info:
		graph.connect(script, second.id, "value", log.id, "message")
	assert info.value.connection_ids == [existing.id]
	assert len(script.connections) == 1


def test_output_fans_out(graph, script):
	event = graph.add_node(script, "event_ui")
	a     = graph.add_node(script, "log")
	b     = graph.add_node(script, "log")
	graph.connect(script, event.id, "exec", a.id, "exec")
	graph.connect(script, event.id, "exec", b.id, "exec")
	assert len(script.connections_from(event.id, "exec")) == 2


def test_missing_endpoint(graph, script):
	log = graph.add_node(script, "log")
	with pytest.raises(NotFound) as info:
		graph.connect(script, "ghost", "exec", log.id, "exec")
	assert info.value.kind == ErrorKind.NOT_FOUND
	with pytest.raises(NotFound):
		graph.connect(script, log.id, "exec", log.id, "no_such_port")


def test_delete_connection(graph, script, bridged):
	connection = script.connections[0]
	graph.delete_connection(script, connection.id)
	assert script.find_connection(connection.id) is None
	with pytest.raises(NotFound):
		graph.delete_connection(script, connection.id)


def test_can_connect(graph, script):
	event = graph.add_node(script, "event_ui")
	read  = graph.add_node(script, "memory_read")
	log   = graph.add_node(script, "log")
	assert graph.can_connect(script, event.id, "exec", log.id, "exec")
	assert not graph.can_connect(script, event.id, "exec", read.id, "exec")


# =============================================================================
# DELETION
# =============================================================================

def test_delete_node_cascades(graph, script, bridged):
	read_id = bridged["read"].id
	removed = graph.delete_node(script, read_id)
	assert len(removed) == 3
	assert script.find_node(read_id) is None
	assert script.connections_of(read_id) == []
	assert len(script.connections) == 1


def test_deleting_bridge_edge_drops_stranded_crossings(graph, script, bridged):
	feed     = script.connection_to(bridged["read"].id, "exec")
	crossing = [c.id for c in script.connections_from(bridged["read"].id)]
	removed  = graph.delete_connection(script, feed.id)
	assert removed[0] == feed.id
	assert sorted(removed[1:]) == sorted(crossing)
	assert script.connections_from(bridged["read"].id) == []
	assert graph.check_invariants(script) == []


def test_deleting_bridge_node_drops_stranded_crossings(graph, script, bridged):
	crossing = {c.id for c in script.connections_from(bridged["read"].id)}
	removed  = graph.delete_node(script, bridged["bridge"].id)
	assert len(removed) == 4
	assert crossing <= set(removed)
	assert script.connections == []
	assert graph.check_invariants(script) == []


def test_delete_keeps_crossings_still_bridged(graph, script, bridged):
	second = graph.add_node(script, "rpc_bridge")
	graph.connect(script, bridged["event"].id, "exec", second.id, "exec")
	log    = graph.add_node(script, "log")
	graph.connect(script, second.id, "result", log.id, "message")
	removed = graph.delete_connection(script, script.connection_to(second.id, "exec").id)
	assert len(removed) == 1
	assert len(script.connections_from(bridged["read"].id)) == 2


def test_delete_missing_node(graph, script):
	with pytest.raises(NotFound):
		graph.delete_node(script, "ghost")


def test_delete_nodes_is_atomic(graph, script, bridged):
	before = _snapshot(script)
	with pytest.raises(NotFound):
		graph.delete_nodes(script, [bridged["log"].id, "ghost"])
	assert _snapshot(script) == before


def test_delete_prunes_selection(graph, script, bridged):
	script.selected_node_ids      = [bridged["log"].id, bridged["event"].id]
	script.selected_connection_id = script.connections[-1].id
	graph.delete_node(script, bridged["log"].id)
	assert script.selected_node_ids == [bridged["event"].id]
	assert script.selected_connection_id is None


def test_delete_parent_ungroups_children(graph, script):
	parent = graph.add_node(script, "function_define")
	child  = graph.add_node(script, "log", parent_id=parent.id)
	graph.delete_node(script, parent.id)
	assert child.parent_id is None


# =============================================================================
# VARIABLES
# =============================================================================

def test_variables(graph, script):
	variable = graph.add_variable(script, "counter", default_value=0)
	assert script.variables == [variable]
	graph.delete_variable(script, variable.id)
	assert script.variables == []
	with pytest.raises(NotFound):
		graph.delete_variable(script, variable.id)


# =============================================================================
# AUDIT
# =============================================================================

def test_check_invariants_clean(graph, script, bridged):
	assert graph.check_invariants(script) == []


def test_check_invariants_reports_hand_built_problems(graph):
	event = ScriptNode(type="event_ui")
	read  = ScriptNode(type="memory_read")
	log   = ScriptNode(type="log")
	weird = ScriptNode(type="retired_node")
	script = Script(
		name        = "Broken",
		nodes       = [event, read, log, weird],
		connections = [
			Connection(from_node_id=event.id, from_port="exec" , to_node_id=read.id , to_port="exec"   ),
			Connection(from_node_id=event.id, from_port="value", to_node_id=log.id  , to_port="message"),
			Connection(from_node_id=event.id, from_port="value", to_node_id=log.id  , to_port="message"),
			Connection(from_node_id=event.id, from_port="exec" , to_node_id="ghost" , to_port="exec"   ),
		],
	)
	kinds = [d.kind for d in graph.check_invariants(script)]
	assert ErrorKind.UNKNOWN_NODE_TYPE in kinds
	assert ErrorKind.CONTEXT_VIOLATION in kinds
	assert ErrorKind.PORT_OCCUPIED     in kinds
	assert ErrorKind.NOT_FOUND         in kinds


# =============================================================================
# SCRIPTS
# =============================================================================

def test_first_script_becomes_current(graph):
	project = Project()
	first   = graph.create_script(project, "One")
	graph.create_script(project, "Two")
	assert project.current_script_id == first.id
	assert project.current is first


def test_duplicate_script_topology_with_fresh_ids(graph, project, script, bridged):
	copy = graph.duplicate_script(project, script.id)
	assert copy.name == "Test Script (copy)"
	assert copy.id != script.id

	source_ids = {n.id for n in script.nodes} | {c.id for c in script.connections}
	copy_ids   = {n.id for n in copy.nodes}   | {c.id for c in copy.connections}
	assert source_ids.isdisjoint(copy_ids)

	index = {old.id: new.id for old, new in zip(script.nodes, copy.nodes)}
	assert [n.type for n in copy.nodes] == [n.type for n in script.nodes]
	assert [n.position for n in copy.nodes] == [n.position for n in script.nodes]
	assert [
		(index[c.from_node_id], c.from_port, index[c.to_node_id], c.to_port) for c in script.connections
	] == [
		(c.from_node_id, c.from_port, c.to_node_id, c.to_port) for c in copy.connections
	]
	assert graph.check_invariants(copy) == []


def test_duplicate_empty_script(graph, project, script):
	copy = graph.duplicate_script(project, script.id, "Empty")
	assert copy.name == "Empty"
	assert copy.nodes == [] and copy.connections == []
	assert len(project.scripts) == 2


def test_rename_script(graph, project, script):
	graph.rename_script(project, script.id, "  Renamed ")
	assert script.name == "Renamed"
	with pytest.raises(ValueError):
		graph.rename_script(project, script.id, "  ")
	with pytest.raises(NotFound):
		graph.rename_script(project, "ghost", "x")


def test_delete_script(graph, project, script, bridged):
	graph.delete_script(project, script.id)
	assert project.scripts == []
	assert project.current_script_id is None
	with pytest.raises(NotFound):
		graph.delete_script(project, script.id)


def test_set_current_script(graph, project, script):
	other = graph.create_script(project, "Other")
	graph.set_current_script(project, other.id)
	assert project.current is other
	with pytest.raises(NotFound):
		graph.set_current_script(project, "ghost")
	assert project.current is other
