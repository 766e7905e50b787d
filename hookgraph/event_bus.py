# event_bus

import json


from   enum     import Enum
from   fastapi  import WebSocket
from   inspect  import iscoroutinefunction
from   pydantic import BaseModel
from   typing   import Any, Callable, Dict, List, Optional, Set


from   .utils   import get_now_str, get_timestamp_str, log_print


DEFAULT_EVENT_HISTORY : int = 1000


def _set_default_json(obj):
	if isinstance(obj, set):
		return list(obj)
	raise TypeError


class EventType(str, Enum):
	# System events
	ERROR                   = "error"
	WARNING                 = "warning"
	INFO                    = "info"

	# Manager events
	MANAGER_CLEARED         = "manager.cleared"
	MANAGER_PROJECT_SAVED   = "manager.project_saved"
	MANAGER_PROJECT_LOADED  = "manager.project_loaded"

	# Script events
	SCRIPT_CREATED          = "script.created"
	SCRIPT_DUPLICATED       = "script.duplicated"
	SCRIPT_RENAMED          = "script.renamed"
	SCRIPT_REMOVED          = "script.removed"
	SCRIPT_SELECTED         = "script.selected"
	SCRIPT_COMPILED         = "script.compiled"
	SCRIPT_COMPILE_FAILED   = "script.compile_failed"

	# Node events
	NODE_ADDED              = "node.added"
	NODE_UPDATED            = "node.updated"
	NODE_REMOVED            = "node.removed"
	NODE_DUPLICATED         = "node.duplicated"

	# Connection events
	CONNECTION_ADDED        = "connection.added"
	CONNECTION_REMOVED      = "connection.removed"
	CONNECTION_REJECTED     = "connection.rejected"

	# Variable events
	VARIABLE_ADDED          = "variable.added"
	VARIABLE_REMOVED        = "variable.removed"

	# Editor events
	SELECTION_CHANGED       = "selection.changed"
	DELETE_REFUSED          = "selection.delete_refused"
	COMMAND_SURFACE_OPENED  = "command_surface.opened"
	COMMAND_SURFACE_CLOSED  = "command_surface.closed"


class ScriptEvent(BaseModel):
	event_id      : str
	event_type    : EventType
	timestamp     : str
	script_id     : Optional[str]            = None
	node_id       : Optional[str]            = None
	connection_id : Optional[str]            = None
	data          : Optional[Dict[str, Any]] = None
	error         : Optional[str]            = None


class EventBus:
	"""
	Central event bus for editing and compile events.
	Supports both local subscribers and WebSocket clients.
	"""

	def __init__(self, max_history: int = DEFAULT_EVENT_HISTORY):
		self._subscribers       : Dict[EventType, List[Callable]] = {}
		self._websocket_clients : Set[WebSocket]                  = set()
		self._event_history     : List[ScriptEvent]               = []
		self._max_history       : int                             = max_history
		self._event_counter     : int                             = 0


	def subscribe(self, event_type: EventType, callback: Callable):
		"""Subscribe to specific event type"""
		if event_type not in self._subscribers:
			self._subscribers[event_type] = []
		self._subscribers[event_type].append(callback)


	def unsubscribe(self, event_type: EventType, callback: Callable):
		"""Unsubscribe from specific event type"""
		if event_type in self._subscribers:
			self._subscribers[event_type].remove(callback)


	async def publish(self, event: ScriptEvent):
		"""Publish event to all subscribers and WebSocket clients"""
		self._event_history.append(event)
		if len(self._event_history) > self._max_history:
			self._event_history.pop(0)

		if event.event_type in self._subscribers:
			for callback in self._subscribers[event.event_type]:
				try:
					if iscoroutinefunction(callback):
						await callback(event)
					else:
						callback(event)
				except Exception as e:
					log_print(f"Error in event subscriber: {e}")

		await self._broadcast_to_websockets(event)


	async def _broadcast_to_websockets(self, event: ScriptEvent):
		if not self._websocket_clients:
			return

		message = json.dumps({
			"type"  : "script_event",
			"event" : event.model_dump(mode="json")
		}, default=_set_default_json)

		dead_clients = set()
		for client in self._websocket_clients:
			try:
				await client.send_text(message)
			except Exception:
				dead_clients.add(client)

		self._websocket_clients -= dead_clients


	async def add_websocket_client(self, websocket: WebSocket):
		"""Add WebSocket client; it first receives the recent history"""
		await websocket.accept()
		self._websocket_clients.add(websocket)

		if self._event_history:
			history_message = json.dumps({
				"type"   : "event_history",
				"events" : [e.model_dump(mode="json") for e in self._event_history[-50:]]
			}, default=_set_default_json)
			await websocket.send_text(history_message)


	def remove_websocket_client(self, websocket: WebSocket):
		self._websocket_clients.discard(websocket)


	def get_event_history(self,
		script_id  : Optional[str]       = None,
		event_type : Optional[EventType] = None,
		limit      : int                 = 100
	) -> List[ScriptEvent]:
		"""Get filtered event history"""
		events = self._event_history

		if script_id:
			events = [e for e in events if e.script_id == script_id]
		if event_type:
			events = [e for e in events if e.event_type == event_type]

		return events[-limit:]


	def clear_history(self):
		self._event_history.clear()


	def _generate_event_id(self) -> str:
		self._event_counter += 1
		timestamp = get_timestamp_str()
		return f"evt_{timestamp}_{self._event_counter}"


	async def emit(self,
		event_type    : EventType,
		script_id     : Optional[str]            = None,
		node_id       : Optional[str]            = None,
		connection_id : Optional[str]            = None,
		data          : Optional[Dict[str, Any]] = None,
		error         : Optional[str]            = None
	):
		"""Helper to create and publish event"""
		event = ScriptEvent(
			event_id      = self._generate_event_id(),
			event_type    = event_type,
			timestamp     = get_now_str(),
			script_id     = script_id,
			node_id       = node_id,
			connection_id = connection_id,
			data          = data,
			error         = error
		)
		await self.publish(event)


# Process-scoped instance, owned by the hosting shell
_global_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
	"""Get or create global event bus instance"""
	global _global_event_bus
	if _global_event_bus is None:
		_global_event_bus = EventBus()
	return _global_event_bus


def reset_event_bus():
	"""Reset global event bus (useful for testing)"""
	global _global_event_bus
	_global_event_bus = None
