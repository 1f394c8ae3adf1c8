"""
Agent executor interface.

The executor is the seam between the orchestrator and whatever actually
produces text (a language model client, a scripted stub, a human). It is
called with the agent, the task, and the outputs of prior tasks, and
returns a TaskOutput or plain text.
"""

from abc import ABC, abstractmethod
from typing import Callable, TYPE_CHECKING

from agent_swarm.core.models import TaskOutput

if TYPE_CHECKING:
    from agent_swarm.agents.agent import Agent
    from agent_swarm.core.task import Task


def build_prompt(agent: "Agent", task: "Task", context: list[TaskOutput]) -> str:
    """
    Build the standard prompt for an agent working on a task.

    Includes the agent persona, summaries of prior outputs, any knowledge
    matching the task description, the task, and the tools the agent can
    call.
    """
    lines = [
        f"You are {agent.role}.",
        f"Your goal is: {agent.goal}",
        f"Your backstory: {agent.backstory}",
        "",
    ]

    if context:
        lines.append("Context from previous tasks:")
        lines.extend(f"- {output.summary}" for output in context)
        lines.append("")

    if agent.knowledge is not None:
        relevant = agent.knowledge.query(task.description)
        if relevant:
            lines.append("Relevant knowledge:")
            lines.append(relevant)
            lines.append("")

    lines.append(f"Task: {task.description}")
    if task.expected_output:
        lines.append(f"Expected Output: {task.expected_output}")

    tools = agent.tools + [t for t in task.tools if t.name not in agent.tool_names]
    if tools:
        lines.append("")
        lines.append("Available tools:")
        lines.extend(f"- {tool.name}: {tool.description}" for tool in tools)

    return "\n".join(lines) + "\n"


class AgentExecutor(ABC):
    """Pluggable backend that performs a task for an agent."""

    @abstractmethod
    def execute(
        self,
        agent: "Agent",
        task: "Task",
        context: list[TaskOutput],
    ) -> TaskOutput | str:
        """
        Perform the task.

        Args:
            agent: Agent the task is assigned to
            task: Task to perform
            context: Outputs of prior tasks visible to this task

        Returns:
            TaskOutput, or the raw response text

        Raises:
            Exception: Any failure; the agent wraps it in ExecutionError
        """
        pass


class CallableExecutor(AgentExecutor):
    """
    Executor backed by a ``prompt -> text`` function.

    Typically wraps a language model client call.
    """

    def __init__(self, func: Callable[[str], str]):
        self.func = func

    def execute(
        self,
        agent: "Agent",
        task: "Task",
        context: list[TaskOutput],
    ) -> TaskOutput:
        prompt = build_prompt(agent, task, context)
        response = self.func(prompt)
        return TaskOutput(
            task_id=task.id,
            agent_id=agent.id,
            description=task.description,
            expected_output=task.expected_output,
            raw_output=response,
            prompt=prompt,
        )
