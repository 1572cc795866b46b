from argus.llm.client import (
    ChatClient as ChatClient,
    ChatRequest as ChatRequest,
    ChatResponse as ChatResponse,
    OpenRouterChatClient as OpenRouterChatClient,
)
from argus.llm.context import ContextStore as ContextStore
from argus.llm.conversation import ConversationDriver as ConversationDriver, TurnResult as TurnResult
from argus.llm.prompts import PromptSettings as PromptSettings
