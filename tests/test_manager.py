# test_manager

import asyncio
import json
import pytest


from   hookgraph.errors    import ContextViolation, NotFound
from   hookgraph.event_bus import EventBus, EventType
from   hookgraph.manager   import ScriptManager
from   hookgraph.schema    import Position


def run(coro):
	return asyncio.run(coro)


@pytest.fixture
def bus():
	return EventBus()


@pytest.fixture
def manager(bus):
	return ScriptManager(bus)


def _types(bus, script_id=None):
	return [e.event_type for e in bus.get_event_history(script_id=script_id)]


# =============================================================================
# SCRIPTS
# =============================================================================

def test_create_and_list_scripts(manager, bus):
	first  = run(manager.create_script("First"))
	second = run(manager.create_script("Second", "notes"))
	scripts = run(manager.list_scripts())
	assert [s["name"] for s in scripts] == ["First", "Second"]
	assert scripts[0]["current"]
	assert not scripts[1]["current"]
	assert scripts[1]["description"] == "notes"
	assert _types(bus, second.id) == [EventType.SCRIPT_CREATED]
	assert manager.project.current_script_id == first.id


def test_get_script_returns_a_copy(manager):
	script = run(manager.create_script("Main"))
	copy   = run(manager.get_script(script.id))
	copy.name = "Changed"
	assert manager.project.find_script(script.id).name == "Main"


def test_delete_script_needs_confirmation(manager, bus):
	script = run(manager.create_script("Main"))
	run(manager.add_node(script.id, "log"))

	pending = run(manager.delete_script(script.id))
	assert pending["status"] == "confirmation_required"
	assert pending["nodes"]  == 1
	assert manager.project.find_script(script.id) is not None

	done = run(manager.delete_script(script.id, confirmed=True))
	assert done["status"] == "removed"
	assert manager.project.scripts == []
	assert manager.project.current_script_id is None
	assert EventType.SCRIPT_REMOVED in _types(bus, script.id)


def test_rename_and_duplicate(manager, bus):
	script = run(manager.create_script("Main"))
	run(manager.rename_script(script.id, "Renamed"))
	clone = run(manager.duplicate_script(script.id))
	assert clone.name == "Renamed (copy)"
	assert clone.id   != script.id
	with pytest.raises(ValueError):
		run(manager.rename_script(script.id, "   "))


def test_missing_script(manager):
	with pytest.raises(NotFound):
		run(manager.add_node("ghost", "log"))
	with pytest.raises(NotFound):
		run(manager.compile())


# =============================================================================
# EDITING
# =============================================================================

def test_rejected_connection_is_published(manager, bus):
	script = run(manager.create_script("Main"))
	event  = run(manager.add_node(script.id, "event_ui"))
	read   = run(manager.add_node(script.id, "memory_read"))
	with pytest.raises(ContextViolation):
		run(manager.connect(script.id, event.id, "exec", read.id, "exec"))

	rejected = bus.get_event_history(event_type=EventType.CONNECTION_REJECTED)
	assert len(rejected) == 1
	assert rejected[0].data["kind"]     == "ContextViolation"
	assert rejected[0].data["node_ids"] == [event.id, read.id]
	assert manager.project.find_script(script.id).connections == []


def test_refused_delete_is_published(manager, bus):
	script = run(manager.create_script("Main"))
	event  = run(manager.add_node(script.id, "event_ui"))
	log    = run(manager.add_node(script.id, "log"))
	run(manager.connect(script.id, event.id, "exec", log.id, "exec"))

	run(manager.click_node(script.id, event.id))
	outcome = run(manager.delete_selection(script.id))
	assert not outcome.applied
	assert _types(bus, script.id)[-1] == EventType.DELETE_REFUSED

	run(manager.select_all(script.id))
	outcome = run(manager.delete_selection(script.id))
	assert outcome.applied
	assert manager.project.find_script(script.id).nodes == []


def test_single_node_delete_respects_event_guard(manager, bus):
	script = run(manager.create_script("Main"))
	event  = run(manager.add_node(script.id, "event_ui"))
	bridge = run(manager.add_node(script.id, "rpc_bridge"))
	log    = run(manager.add_node(script.id, "log"))
	run(manager.connect(script.id, event.id, "exec", bridge.id, "exec"))

	outcome = run(manager.delete_node(script.id, event.id))
	assert not outcome.applied
	assert outcome.reason
	assert [n.id for n in manager.project.find_script(script.id).nodes] == [event.id, bridge.id, log.id]
	assert _types(bus, script.id)[-1] == EventType.DELETE_REFUSED

	outcome = run(manager.delete_node(script.id, log.id))
	assert outcome.applied
	assert outcome.removed_node_ids == [log.id]
	assert EventType.NODE_REMOVED in _types(bus, script.id)


def test_delete_connection_publishes_stranded_crossings(manager, bus):
	script = run(manager.create_script("Main"))
	event  = run(manager.add_node(script.id, "event_ui"))
	bridge = run(manager.add_node(script.id, "rpc_bridge"))
	read   = run(manager.add_node(script.id, "memory_read", parameter_values={"address": "0x401000"}))
	log    = run(manager.add_node(script.id, "log"))
	run(manager.connect(script.id, event.id, "exec", bridge.id, "exec"))
	feed = run(manager.connect(script.id, bridge.id, "exec", read.id, "exec"))
	run(manager.connect(script.id, read.id, "exec" , log.id, "exec"   ))
	run(manager.connect(script.id, read.id, "value", log.id, "message"))

	removed = run(manager.delete_connection(script.id, feed.id))
	assert removed[0] == feed.id
	assert len(removed) == 3
	published = bus.get_event_history(event_type=EventType.CONNECTION_REMOVED)
	assert [e.connection_id for e in published] == removed
	assert len(manager.project.find_script(script.id).connections) == 1


def test_drag_connection(manager):
	script = run(manager.create_script("Main"))
	event  = run(manager.add_node(script.id, "event_ui"))
	log    = run(manager.add_node(script.id, "log"))
	run(manager.begin_connection(script.id, event.id, "exec"))
	connection = run(manager.release_connection(script.id, log.id, "exec"))
	assert connection.to_node_id == log.id

	run(manager.begin_connection(script.id, event.id, "exec"))
	assert run(manager.release_connection(script.id)) is None
	assert manager.editor(script.id).mode.value == "Idle"


def test_command_surface_records_recent(tmp_path, bus):
	manager = ScriptManager(bus, data_dir=str(tmp_path))
	run(manager.initialize())
	script = run(manager.create_script("Main"))

	session = run(manager.open_command_surface(script.id, 30, 40))
	assert manager.command_session(script.id) is session
	node = run(manager.commit_command(script.id, "memory_read"))
	assert node.position == Position(x=30, y=40)
	assert manager.recent.types() == ["memory_read"]

	with open(tmp_path / "recent_nodes.json") as f:
		assert json.load(f)["types"] == ["memory_read"]
	with pytest.raises(NotFound):
		manager.command_session(script.id)


def test_editor_is_reused(manager):
	script = run(manager.create_script("Main"))
	assert manager.editor(script.id) is manager.editor(script.id)
	assert manager.editor() is manager.editor(script.id)


# =============================================================================
# SUBSCRIBERS
# =============================================================================

def test_subscribers_receive_node_added(manager, bus):
	seen    = []
	awaited = []

	def on_added(event):
		seen.append(event.node_id)

	async def on_added_async(event):
		awaited.append(event.data["type"])

	bus.subscribe(EventType.NODE_ADDED, on_added)
	bus.subscribe(EventType.NODE_ADDED, on_added_async)

	script = run(manager.create_script("Main"))
	log    = run(manager.add_node(script.id, "log"))
	assert seen    == [log.id]
	assert awaited == ["log"]

	bus.unsubscribe(EventType.NODE_ADDED, on_added)
	bus.unsubscribe(EventType.NODE_ADDED, on_added_async)
	run(manager.add_node(script.id, "event_ui"))
	assert seen    == [log.id]
	assert awaited == ["log"]


def test_failing_subscriber_does_not_block_others(manager, bus):
	seen = []

	def broken(event):
		raise RuntimeError("boom")

	bus.subscribe(EventType.NODE_ADDED, broken)
	bus.subscribe(EventType.NODE_ADDED, lambda event: seen.append(event.node_id))

	script = run(manager.create_script("Main"))
	log    = run(manager.add_node(script.id, "log"))
	assert seen == [log.id]


# =============================================================================
# COMPILATION AND PERSISTENCE
# =============================================================================

def test_compile_publishes_outcome(manager, bus):
	script = run(manager.create_script("Main"))
	event  = run(manager.add_node(script.id, "event_ui"))
	log    = run(manager.add_node(script.id, "log"))
	run(manager.connect(script.id, event.id, "exec", log.id, "exec"))

	result = run(manager.compile(script.id))
	assert result.ok
	assert _types(bus, script.id)[-1] == EventType.SCRIPT_COMPILED

	listing = run(manager.listing(script.id))
	assert listing.startswith("# script Main")


def test_save_and_load(tmp_path, bus):
	manager = ScriptManager(bus, data_dir=str(tmp_path))
	script  = run(manager.create_script("Main"))
	run(manager.add_node(script.id, "log"))
	assert run(manager.save_project())

	other = ScriptManager(EventBus(), data_dir=str(tmp_path))
	run(other.initialize())
	assert [s.name for s in other.project.scripts] == ["Main"]
	assert other.project.current_script_id == script.id


def test_save_without_data_dir(manager):
	assert run(manager.save_project()) is False


def test_clear(manager, bus):
	run(manager.create_script("Main"))
	run(manager.clear())
	assert manager.project.scripts == []
	assert _types(bus)[-1] == EventType.MANAGER_CLEARED
