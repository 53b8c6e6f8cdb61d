"""HTTP task shell: create, list, inspect and execute automation tasks."""

import logging
from typing import Callable, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import __version__
from .agent import BrowserAutomationAgent
from .config import load_settings
from .errors import TaskAlreadyRunningError, TaskNotFoundError
from .models import AutomationTask
from .task_store import TaskStore

logger = logging.getLogger(__name__)

router = APIRouter()


class TaskCreate(BaseModel):
    url: Optional[str] = None
    description: Optional[str] = None


class TaskExecutionResponse(BaseModel):
    message: str
    task: AutomationTask


def default_agent_factory() -> BrowserAutomationAgent:
    """Each execution gets its own agent and browser session"""
    return BrowserAutomationAgent(settings=load_settings())


def get_store(request: Request) -> TaskStore:
    return request.app.state.store


def get_agent_factory(request: Request) -> Callable[[], BrowserAutomationAgent]:
    return request.app.state.agent_factory


async def run_task(task_id: str, store: TaskStore, agent_factory: Callable[[], BrowserAutomationAgent]):
    """Execute a task in the background and record its outcome"""
    task = store.get(task_id)
    agent = None
    try:
        agent = agent_factory()
        await agent.initialize()
        result = await agent.execute_task(task.instruction)
    except Exception as e:
        logger.exception(f"Task execution failed: {task_id}")
        store.finish(task_id, succeeded=False, error=str(e) or type(e).__name__)
        return
    finally:
        if agent is not None:
            try:
                await agent.close()
            except Exception as e:
                logger.warning(f"Failed to close browser for task {task_id}: {e}")

    if result.succeeded:
        store.finish(task_id, succeeded=True, result=result.final_output)
    else:
        store.finish(
            task_id,
            succeeded=False,
            result=(
                f"Exceeded the maximum number of turns ({result.max_turns}). "
                f"Partial progress after {result.turns} turns is left in the browser."
            ),
        )


@router.get("/")
def index():
    return {
        "message": "Browser Automation Agent API",
        "version": __version__,
        "endpoints": {
            "POST /tasks": "Create a new automation task",
            "GET /tasks": "Get all tasks",
            "GET /tasks/{id}": "Get a specific task",
            "POST /tasks/{id}/execute": "Execute a task",
        },
    }


@router.post("/tasks", status_code=201, response_model=AutomationTask)
def create_task(payload: TaskCreate, store: TaskStore = Depends(get_store)):
    if not (payload.url and payload.url.strip()) or not (payload.description and payload.description.strip()):
        raise HTTPException(status_code=400, detail="URL and description are required")
    return store.create(payload.url.strip(), payload.description.strip())


@router.get("/tasks", response_model=List[AutomationTask])
def list_tasks(store: TaskStore = Depends(get_store)):
    return store.list()


@router.get("/tasks/{task_id}", response_model=AutomationTask)
def get_task(task_id: str, store: TaskStore = Depends(get_store)):
    try:
        return store.get(task_id)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")


@router.post("/tasks/{task_id}/execute", response_model=TaskExecutionResponse)
def execute_task(
    task_id: str,
    background_tasks: BackgroundTasks,
    store: TaskStore = Depends(get_store),
    agent_factory: Callable[[], BrowserAutomationAgent] = Depends(get_agent_factory),
):
    try:
        task = store.start(task_id)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    except TaskAlreadyRunningError:
        raise HTTPException(status_code=400, detail="Task is already in progress")

    snapshot = task.model_copy(deep=True)
    background_tasks.add_task(run_task, task_id, store, agent_factory)
    return TaskExecutionResponse(message="Task execution started", task=snapshot)


def create_app(
    agent_factory: Optional[Callable[[], BrowserAutomationAgent]] = None,
    store: Optional[TaskStore] = None,
) -> FastAPI:
    app = FastAPI(title="Browser Automation Agent API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.store = store or TaskStore()
    app.state.agent_factory = agent_factory or default_agent_factory
    app.include_router(router)
    return app


app = create_app()
