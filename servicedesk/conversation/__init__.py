from servicedesk.conversation.context import ConversationTracker, merge_extraction

__all__ = ["ConversationTracker", "merge_extraction"]
