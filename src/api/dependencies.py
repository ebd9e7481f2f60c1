from api import state
from api.backend import BackendAPI
from api.state import Session


def get_session() -> Session:
    return state.get_session()


def get_backend() -> BackendAPI:
    return BackendAPI(state.get_session())
