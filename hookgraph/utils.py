# utils

from   datetime                import datetime
from   fastapi                 import FastAPI
from   fastapi.middleware.cors import CORSMiddleware


def get_now_str() -> str:
	return datetime.now().isoformat()


def get_timestamp_str() -> str:
	return datetime.now().strftime("%Y%m%d%H%M%S%f")


def log_print(*args, **kwargs):
	timestamp = datetime.now().strftime("%H:%M:%S")
	print(f"[{timestamp}]", *args, flush=True, **kwargs)


def add_middleware(app: FastAPI):
	app.add_middleware(
		CORSMiddleware,
		allow_origins     = ["*"],
		allow_credentials = False,
		allow_methods     = ["*"],
		allow_headers     = ["*"],
	)
