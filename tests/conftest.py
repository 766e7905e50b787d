# conftest

import pytest


from   hookgraph.builtin  import build_default_catalog
from   hookgraph.compiler import ScriptCompiler
from   hookgraph.graph    import GraphModel
from   hookgraph.schema   import Position, Project


@pytest.fixture(scope="session")
def catalog():
	return build_default_catalog()


@pytest.fixture
def graph(catalog):
	return GraphModel(catalog)


@pytest.fixture
def compiler(catalog):
	return ScriptCompiler(catalog)


@pytest.fixture
def project():
	return Project()


@pytest.fixture
def script(graph, project):
	return graph.create_script(project, "Test Script")


@pytest.fixture
def bridged(graph, script):
	"""UI event -> RPC bridge -> memory read (target) -> log (host)"""
	event  = graph.add_node(script, "event_ui"   , Position(x=  0, y=0))
	bridge = graph.add_node(script, "rpc_bridge" , Position(x=200, y=0))
	read   = graph.add_node(script, "memory_read", Position(x=400, y=0), {"address": "0x401000"})
	log    = graph.add_node(script, "log"        , Position(x=600, y=0))
	graph.connect(script, event.id , "exec" , bridge.id, "exec"   )
	graph.connect(script, bridge.id, "exec" , read.id  , "exec"   )
	graph.connect(script, read.id  , "exec" , log.id   , "exec"   )
	graph.connect(script, read.id  , "value", log.id   , "message")
	return {"event": event, "bridge": bridge, "read": read, "log": log}
