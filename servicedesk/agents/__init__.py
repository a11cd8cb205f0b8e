from servicedesk.agents.task_agent import TaskManagementAgent
from servicedesk.agents.chat_orchestrator import ChatOrchestrator

__all__ = ["TaskManagementAgent", "ChatOrchestrator"]
