# app

import argparse
import asyncio
import os
import uvicorn


from   dotenv     import load_dotenv
from   fastapi    import FastAPI
from   typing     import Any


from   .api       import setup_api
from   .event_bus import EventBus, get_event_bus, reset_event_bus
from   .manager   import ScriptManager
from   .utils     import add_middleware, log_print


load_dotenv()


DEFAULT_APP_HOST : str = "0.0.0.0"
DEFAULT_APP_PORT : int = 8000
DEFAULT_DATA_DIR : str = "hookgraph_data"


async def run_server(args: Any):
	log_print("Server starting...")

	event_bus : EventBus      = get_event_bus()
	manager   : ScriptManager = ScriptManager(event_bus, data_dir=args.data_dir)

	await manager.initialize()

	app: FastAPI = FastAPI(title="Hookgraph")
	add_middleware(app)

	config = uvicorn.Config(app, host=args.host, port=args.port)
	server = uvicorn.Server(config)

	setup_api(server, app, event_bus, manager)

	await server  .serve        ()
	await manager .save_project ()

	reset_event_bus()
	log_print("Server shut down.")


def main():
	parser = argparse.ArgumentParser(description="Hookgraph instrumentation graph server")
	parser .add_argument("--host"    , type=str, default=DEFAULT_APP_HOST                                        , help="Listening address for control server")
	parser .add_argument("--port"    , type=int, default=int(os.getenv("HOOKGRAPH_PORT", DEFAULT_APP_PORT))      , help="Listening port for control server"   )
	parser .add_argument("--data-dir", type=str, default=os.getenv("HOOKGRAPH_DATA_DIR", DEFAULT_DATA_DIR)       , help="Directory for project and recent nodes files")
	args   = parser.parse_args()

	asyncio.run(run_server(args))


if __name__ == "__main__":
	main()
