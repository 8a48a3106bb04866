from typing import TypedDict, Dict, Any, Optional, Literal
from langgraph.graph import StateGraph, END
import structlog
from datetime import datetime, timezone
import time
import uuid

from recall_agent.domain.context.context_manager import ContextManager
from recall_agent.domain.context.memory.conversation_store import ConversationStore
from recall_agent.domain.models.agent_state import ActionDirective, TurnRequest, TurnResult, TurnStatus
from recall_agent.domain.models.errors import ConversationAccessDenied, RecallAgentError
from recall_agent.domain.models.memory import Conversation, RetrievedContext
from recall_agent.domain.tool.action_parser import ActionParser
from recall_agent.domain.tool.tool_executor import ActionExecutor
from recall_agent.infrastructure.observability.logging import metrics, turn_logger
from recall_agent.infrastructure.providers.base import GenerationProvider
from recall_agent.infrastructure.security.jwt_validator import JWTValidator
from .conversation_locks import ConversationLocks
from .prompts import build_prompt

logger = structlog.get_logger(__name__)


class TurnState(TypedDict, total=False):
    """State carried through the turn graph"""
    turn_id: str
    user_id: int
    conversation_id: int
    user_text: str
    context: RetrievedContext
    prompt: str
    generated_text: str
    directive: Optional[ActionDirective]
    output: str
    note_id: Optional[int]


class AgentOrchestrator:
    """Runs one conversational turn: retrieve, prompt, generate, act, persist"""

    def __init__(
        self,
        context_manager: ContextManager,
        generation_provider: GenerationProvider,
        action_parser: ActionParser,
        action_executor: ActionExecutor,
        conversation_store: ConversationStore,
        token_validator: Optional[JWTValidator] = None,
        enforce_conversation_ownership: bool = False,
        serialize_conversation_turns: bool = True
    ):
        self.context_manager = context_manager
        self.generation_provider = generation_provider
        self.action_parser = action_parser
        self.action_executor = action_executor
        self.conversation_store = conversation_store
        self.token_validator = token_validator
        self.enforce_conversation_ownership = enforce_conversation_ownership
        self.serialize_conversation_turns = serialize_conversation_turns
        self.locks = ConversationLocks()
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the turn graph; steps always run in this fixed order"""

        workflow = StateGraph(TurnState)

        workflow.add_node("retrieve_context", self.retrieval_node)
        workflow.add_node("build_prompt", self.prompt_node)
        workflow.add_node("generate", self.generation_node)
        workflow.add_node("detect_action", self.action_detection_node)
        workflow.add_node("execute_action", self.action_execution_node)
        workflow.add_node("persist_turn", self.persistence_node)

        workflow.set_entry_point("retrieve_context")

        workflow.add_edge("retrieve_context", "build_prompt")
        workflow.add_edge("build_prompt", "generate")
        workflow.add_edge("generate", "detect_action")

        workflow.add_conditional_edges(
            "detect_action",
            self.route_on_directive,
            {
                "directive": "execute_action",
                "plain_reply": "persist_turn"
            }
        )

        workflow.add_edge("execute_action", "persist_turn")
        workflow.add_edge("persist_turn", END)

        return workflow.compile()

    async def retrieval_node(self, state: TurnState) -> Dict[str, Any]:
        """Fetch the notes most relevant to the user's text"""

        context = await self.context_manager.build_context(state["user_id"], state["user_text"])
        turn_logger.log_turn_event("retrieve_context", state["turn_id"], {"notes": len(context.notes)})
        return {"context": context}

    async def prompt_node(self, state: TurnState) -> Dict[str, Any]:
        """Combine instruction, memory and user text"""

        prompt = build_prompt(state["user_text"], state["context"].fragment)
        return {"prompt": prompt}

    async def generation_node(self, state: TurnState) -> Dict[str, Any]:
        """Ask the model for a reply; failures end the turn"""

        generated_text = await self.generation_provider.generate(state["prompt"])
        turn_logger.log_turn_event("generate", state["turn_id"], {"length": len(generated_text)})
        return {"generated_text": generated_text}

    async def action_detection_node(self, state: TurnState) -> Dict[str, Any]:
        """Look for a directive at the start of the reply"""

        directive = self.action_parser.parse(state["generated_text"])
        if directive is None:
            return {"directive": None, "output": state["generated_text"], "note_id": None}
        return {"directive": directive}

    async def action_execution_node(self, state: TurnState) -> Dict[str, Any]:
        """Execute the directive; its confirmation replaces the raw reply"""

        directive = state["directive"]
        outcome = await self.action_executor.execute(directive, state["user_id"])
        note_id = outcome.note.id if outcome.note else None

        turn_logger.log_action(
            state["turn_id"],
            directive.kind.value,
            executed=outcome.note is not None,
            details={"note_id": note_id}
        )
        return {"output": outcome.output, "note_id": note_id}

    async def persistence_node(self, state: TurnState) -> Dict[str, Any]:
        """Append the user and assistant messages as one unit"""

        await self.conversation_store.append_turn(
            state["conversation_id"],
            state["user_text"],
            state["output"]
        )
        turn_logger.log_turn_event("persist_turn", state["turn_id"])
        return {}

    def route_on_directive(self, state: TurnState) -> Literal["directive", "plain_reply"]:
        return "directive" if state.get("directive") is not None else "plain_reply"

    async def resolve_conversation(self, request: TurnRequest) -> Conversation:
        """Use the supplied conversation or the user's implicit one"""

        if request.conversation_id is None:
            return await self.conversation_store.get_or_create_for_user(request.user_id)

        conversation = await self.conversation_store.get(request.conversation_id)
        if self.enforce_conversation_ownership:
            if conversation is None or conversation.user_id != request.user_id:
                raise ConversationAccessDenied(
                    f"Conversation {request.conversation_id} is not accessible to user {request.user_id}"
                )

        if conversation is None:
            # No ownership check: the id is taken as-is
            return Conversation(
                id=request.conversation_id,
                user_id=request.user_id,
                created_at=datetime.now(timezone.utc)
            )
        return conversation

    async def run_turn(self, request: TurnRequest) -> TurnResult:
        """Execute one turn end to end; either every step succeeds or the turn fails"""

        turn_id = str(uuid.uuid4())
        start = time.monotonic()
        structlog.contextvars.bind_contextvars(turn_id=turn_id, user_id=request.user_id)

        try:
            if request.conversation_id is None:
                # One implicit conversation per user, even for overlapping first turns
                async with self.locks.hold(("user", request.user_id)):
                    conversation = await self.resolve_conversation(request)
            else:
                conversation = await self.resolve_conversation(request)
            structlog.contextvars.bind_contextvars(conversation_id=conversation.id)

            initial_state: TurnState = {
                "turn_id": turn_id,
                "user_id": request.user_id,
                "conversation_id": conversation.id,
                "user_text": request.text,
            }

            if self.serialize_conversation_turns:
                async with self.locks.hold(conversation.id):
                    final_state = await self.workflow.ainvoke(initial_state)
            else:
                final_state = await self.workflow.ainvoke(initial_state)

        except Exception as e:
            error_code = e.error_code if isinstance(e, RecallAgentError) else RecallAgentError.error_code
            metrics.increment_counter(f"turns.{TurnStatus.FAILED.value}", tags={"error": error_code})
            logger.error("Turn failed", error_code=error_code, error=str(e), exc_info=not isinstance(e, RecallAgentError))
            raise
        finally:
            metrics.record_latency("turn", (time.monotonic() - start) * 1000)
            structlog.contextvars.unbind_contextvars("turn_id", "user_id", "conversation_id")

        metrics.increment_counter(f"turns.{TurnStatus.SUCCEEDED.value}")
        logger.info("Turn completed", turn_id=turn_id, note_id=final_state.get("note_id"))

        return TurnResult(
            output=final_state["output"],
            conversation_id=conversation.id,
            note_id=final_state.get("note_id")
        )

    async def run_authenticated_turn(
        self,
        token: Optional[str],
        text: str,
        conversation_id: Optional[int] = None
    ) -> TurnResult:
        """Verify the session token, then run the turn as its user"""

        if self.token_validator is None:
            raise RuntimeError("AgentOrchestrator has no token validator configured")

        claims = self.token_validator.verify(token)
        return await self.run_turn(
            TurnRequest(user_id=claims.user_id, conversation_id=conversation_id, text=text)
        )
