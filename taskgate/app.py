"""AgentField app for the taskgate execution core.

Exposes (via the shared router):
  - ``run_task``: one task through implementation → review/refactor → tester → committer
  - ``merge_phase``: merge a phase's task branches with the committer agent
  - ``stabilize_phase``: stabilize a phase integration branch
"""

from __future__ import annotations

import logging
import os

from agentfield import Agent

from taskgate.reasoners import router

NODE_ID = os.getenv("NODE_ID", "taskgate")

logging.basicConfig(
    level=os.getenv("TASKGATE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = Agent(
    node_id=NODE_ID,
    version="1.0.0",
    description="Quality-gated task execution pipeline",
    agentfield_server=os.getenv("AGENTFIELD_SERVER", "http://localhost:8080"),
    api_key=os.getenv("AGENTFIELD_API_KEY"),
)

app.include_router(router)


def main():
    """Entry point for ``python -m taskgate`` and the ``taskgate`` console script."""
    app.run(port=int(os.getenv("PORT", "8004")), host="0.0.0.0")


if __name__ == "__main__":
    main()
