# test_store

import json


from   hookgraph.errors import ErrorKind
from   hookgraph.schema import Connection, ScriptNode
from   hookgraph.search import RecentNodes
from   hookgraph.store  import ProjectStore, RecencyStore


# =============================================================================
# PROJECT STORE
# =============================================================================

def test_project_round_trip(tmp_path, graph, project, script, bridged):
	graph.add_variable(script, "counter", default_value=3)
	script.selected_node_ids = [bridged["log"].id]

	store = ProjectStore(str(tmp_path / "data" / "project.json"), graph)
	assert not store.exists()
	assert store.save(project)
	assert store.exists()

	loaded = store.load()
	assert loaded.model_dump() == project.model_dump()
	assert loaded.current_script_id == script.id
	assert store.last_audit == {}


def test_missing_project_file_is_empty(tmp_path):
	project = ProjectStore(str(tmp_path / "none.json")).load()
	assert project.scripts == []
	assert project.current_script_id is None


def test_corrupt_project_file_is_empty(tmp_path):
	path = tmp_path / "project.json"
	path.write_text("{ not json")
	assert ProjectStore(str(path)).load().scripts == []

	path.write_text(json.dumps({"version": 1, "project": {"scripts": [{"nodes": 3}]}}))
	assert ProjectStore(str(path)).load().scripts == []


def test_dangling_current_script_is_cleared(tmp_path, project, script):
	project.current_script_id = "gone"
	store = ProjectStore(str(tmp_path / "project.json"))
	store.save(project)
	assert store.load().current_script_id is None


def test_load_audits_scripts(tmp_path, graph, project, script):
	event = ScriptNode(type="event_ui")
	read  = ScriptNode(type="memory_read")
	script.nodes       = [event, read]
	script.connections = [Connection(from_node_id=event.id, from_port="exec", to_node_id=read.id, to_port="exec")]

	store = ProjectStore(str(tmp_path / "project.json"), graph)
	store.save(project)
	loaded = store.load()

	assert len(loaded.scripts[0].connections) == 1
	issues = store.last_audit[script.id]
	assert [issue.kind for issue in issues] == [ErrorKind.CONTEXT_VIOLATION]


# =============================================================================
# RECENCY STORE
# =============================================================================

def test_recency_round_trip(tmp_path):
	store  = RecencyStore(str(tmp_path / "recent.json"))
	recent = RecentNodes()
	recent.record("log")
	recent.record("memory_read")
	assert store.save(recent)
	assert store.load().types() == ["memory_read", "log"]


def test_recency_drops_bad_entries(tmp_path, catalog):
	path = tmp_path / "recent.json"
	path.write_text(json.dumps({"version": 1, "types": ["log", 7, "gone", "log", "delay"]}))
	store = RecencyStore(str(path), known_types=frozenset(t.type for t in catalog.list()))
	assert store.load().types() == ["log", "delay"]


def test_recency_bounded(tmp_path, catalog):
	path  = tmp_path / "recent.json"
	types = [t.type for t in catalog.list()][:12]
	path.write_text(json.dumps({"version": 1, "types": types}))
	assert RecencyStore(str(path), max_size=8).load().types() == types[:8]


def test_recency_unreadable_file(tmp_path):
	path = tmp_path / "recent.json"
	path.write_text("[")
	assert RecencyStore(str(path)).load().types() == []
	assert RecencyStore(str(tmp_path / "missing.json")).load().types() == []
