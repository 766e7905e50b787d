# store
#
# JSON persistence for projects and the recent-node list.

import json
import os


from   pydantic import BaseModel, Field
from   typing   import Any, Dict, List, Optional


from   .errors  import Diagnostic
from   .graph   import GraphModel
from   .schema  import Project
from   .search  import DEFAULT_RECENT_MAX, RecentNodes
from   .utils   import get_now_str, log_print


PROJECT_FORMAT_VERSION : int = 1
DEFAULT_PROJECT_FILE   : str = "project.json"
DEFAULT_RECENT_FILE    : str = "recent_nodes.json"


# =============================================================================
# PERSISTENCE MODELS
# =============================================================================

class ProjectPersistence(BaseModel):
	"""Root persistence model for a project"""
	version  : int     = PROJECT_FORMAT_VERSION
	saved_at : str     = Field(default_factory=get_now_str)
	project  : Project = Field(default_factory=Project)


class RecencyPersistence(BaseModel):
	version : int       = 1
	types   : List[Any] = Field(default_factory=list)  # non-string entries are dropped by RecentNodes


def _write_json(path: str, data) -> bool:
	try:
		directory = os.path.dirname(path)
		if directory:
			os.makedirs(directory, exist_ok=True)
		with open(path, "w") as f:
			json.dump(data, f, indent=2)
	except Exception as e:
		log_print(f"Error writing '{path}': {e}")
		return False
	return True


# =============================================================================
# PROJECT STORE
# =============================================================================

class ProjectStore:
	"""
	Saves and loads a Project as a versioned JSON document.
	Reading never raises: a missing or unreadable file gives an empty project.
	"""

	def __init__(self, path: str, graph: Optional[GraphModel] = None):
		self.path       : str                              = path
		self.graph      : Optional[GraphModel]             = graph
		self.last_audit : Dict[str, List[Diagnostic]]      = {}


	def exists(self) -> bool:
		return os.path.exists(self.path)


	def save(self, project: Project) -> bool:
		persistence = ProjectPersistence(project=project)
		ok = _write_json(self.path, persistence.model_dump(mode="json"))
		if ok:
			log_print(f"Project saved to '{self.path}' ({len(project.scripts)} script(s))")
		return ok


	def load(self) -> Project:
		self.last_audit = {}
		if not self.exists():
			return Project()

		try:
			with open(self.path, "r") as f:
				data = json.load(f)
			persistence = ProjectPersistence.model_validate(data)
		except Exception as e:
			log_print(f"Error loading project '{self.path}': {e}")
			return Project()

		if persistence.version > PROJECT_FORMAT_VERSION:
			log_print(f"Project '{self.path}' has newer format version {persistence.version}, loading anyway")

		project = persistence.project
		if project.current_script_id and project.find_script(project.current_script_id) is None:
			project.current_script_id = None

		if self.graph is not None:
			for script in project.scripts:
				issues = self.graph.check_invariants(script)
				if issues:
					self.last_audit[script.id] = issues
					log_print(f"Script '{script.name}' loaded with {len(issues)} issue(s)")
					for issue in issues:
						log_print(f"  {issue.kind.value}: {issue.message}")

		return project


# =============================================================================
# RECENCY STORE
# =============================================================================

class RecencyStore:
	"""Recent node types, read at startup and written after each insertion"""

	def __init__(self, path: str, max_size: int = DEFAULT_RECENT_MAX, known_types: Optional[frozenset] = None):
		self.path        = path
		self.max_size    = max_size
		self.known_types = known_types


	def load(self) -> RecentNodes:
		if not os.path.exists(self.path):
			return RecentNodes(max_size=self.max_size)
		try:
			with open(self.path, "r") as f:
				data = json.load(f)
			persistence = RecencyPersistence.model_validate(data)
		except Exception as e:
			log_print(f"Ignoring unreadable recent nodes file '{self.path}': {e}")
			return RecentNodes(max_size=self.max_size)

		types = persistence.types
		if self.known_types is not None:
			types = [t for t in types if isinstance(t, str) and t in self.known_types]
		return RecentNodes(types, max_size=self.max_size)


	def save(self, recent: RecentNodes) -> bool:
		return _write_json(self.path, RecencyPersistence(types=recent.types()).model_dump())
