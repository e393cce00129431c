from agentfield import AgentRouter

router = AgentRouter(tags=["taskgate"])

from . import execution_agents  # noqa: E402, F401  (registers run_task and the phase reasoners)

__all__ = ["router"]
