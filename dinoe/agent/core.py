"""
Agent Core
==========

The agent loop: one user message in, one final answer out.

Agent Loop:
    User Message
         │
         ▼
    Append to conversation, reset loop guard
         │
         ▼
    ┌─► Compact history if too long
    │        │
    │        ▼
    │   Build prompt (persona, tools, runtime, memory, skills, history)
    │        │
    │        ▼
    │   Provider request (streamed fragments merged first)
    │        │
    │   ┌─── Tool calls? ───┐
    │   │                   │
    │   Yes                 No
    │   │                   │
    │   ▼                   ▼
    │   For each call:      Append answer, report turn to memory,
    │   loop guard, run,    return it
    │   append result
    │   │
    └───┘  (at most max_iterations rounds)

A model-written history summary, when enabled, counts as a round-trip.

When the round budget runs out the turn ends gracefully with the last
assistant text of the turn, or ITERATION_LIMIT_FALLBACK if there was none.

Failures:
- provider errors end the turn and propagate to the caller
- tool failures, malformed arguments and detected loops become failure
  results the model can react to
- memory failures are logged and ignored
"""

from pathlib import Path
from typing import TYPE_CHECKING, Callable

from dinoe.agent.context import ContextBuilder, WorkspaceFacts
from dinoe.agent.conversation import ConversationState, Message, transcript
from dinoe.agent.loop_guard import LoopGuard, fingerprint_call
from dinoe.agent.tools_executor import ToolCallResult, ToolExecutor
from dinoe.errors import AgentBusyError, AgentError, AgentErrorKind, ProviderError
from dinoe.memory import DAILY_CATEGORY
from dinoe.providers import ProviderAdapter, ToolCall
from dinoe.tools import ToolRegistry, ToolResult
from dinoe.utils.config import AgentConfig
from dinoe.utils.logger import Logger

if TYPE_CHECKING:
    from dinoe.memory import MarkdownMemory
    from dinoe.skills import SkillLoader

logger = Logger("Agent")

ITERATION_LIMIT_FALLBACK = "Iteration limit reached"
_TURN_LOG_CHARS = 500

SUMMARIZE_PROMPT = (
    "Summarize the following conversation excerpt in a few sentences. "
    "Keep facts, decisions, file names and open questions. Reply with the summary only."
)


class Agent:
    """
    Drives one conversation with a model and its tools.

    Example:
        agent = Agent(
            provider=create_provider(config.provider),
            registry=registry,
            workspace_dir=config.workspace_dir,
            config=config.agent,
            memory=memory,
            skills=SkillLoader(config.workspace_dir)
        )

        answer = await agent.run("Read README.md")
        print(answer)
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        registry: ToolRegistry,
        workspace_dir: Path,
        config: AgentConfig | None = None,
        memory: "MarkdownMemory | None" = None,
        skills: "SkillLoader | None" = None,
        on_token: Callable[[str], None] | None = None,
        parallel_tools: bool = False,
        fail_on_iteration_limit: bool = False,
    ):
        """
        Initialize the agent.

        Args:
            provider: Adapter for the configured model backend
            registry: Tools the model may call
            workspace_dir: Working directory reported to the model
            config: Iteration, history and loop limits
            memory: Optional memory collaborator (search + turn log)
            skills: Optional skill loader
            on_token: Called with each streamed text delta, for display only
            parallel_tools: Run adjacent read-only calls of one round concurrently
            fail_on_iteration_limit: Raise AgentError instead of returning
                the fallback text when the round budget runs out
        """
        self.provider = provider
        self.registry = registry
        self.workspace_dir = workspace_dir
        self.config = config or AgentConfig()
        self.memory = memory
        self.skills = skills
        self.on_token = on_token
        self.parallel_tools = parallel_tools
        self.fail_on_iteration_limit = fail_on_iteration_limit

        self.conversation = ConversationState()
        self.loop_guard = LoopGuard(threshold=self.config.loop_threshold)
        self.tool_executor = ToolExecutor(registry)
        self.context_builder = ContextBuilder(
            workspace_dir,
            registry.schema(),
            memory_snippet_limit=self.config.memory_snippet_limit,
        )

        # Provider round-trips made by the most recent run()
        self.round_trips = 0
        self._busy = False

        logger.info(
            f"Agent initialized with model: {provider.model} "
            f"({len(registry)} tools, max {self.config.max_iterations} iterations)"
        )

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def run(self, user_message: str) -> str:
        """
        Process one user message and return the final answer.

        Args:
            user_message: The user's message

        Returns:
            The model's final text, or the iteration-limit fallback

        Raises:
            AgentBusyError: If a turn is already running on this agent
            ProviderError: If the provider fails; the turn is abandoned
            AgentError: On iteration limit, only with fail_on_iteration_limit
        """
        if self._busy:
            raise AgentBusyError()

        self._busy = True
        try:
            return await self._run_turn(user_message)
        finally:
            self._busy = False

    async def _run_turn(self, user_message: str) -> str:
        logger.info(f"Turn started ({len(user_message)} chars)")

        self.conversation.append_user(user_message)
        self.loop_guard.reset()
        self.round_trips = 0

        memory_hits = await self.context_builder.gather_memory(self.memory, user_message)
        skills = self.skills.load_all() if self.skills is not None else []
        last_text = ""

        while self.round_trips < self.config.max_iterations:
            await self._compact_history()

            prompt = self.context_builder.build(
                self.conversation,
                WorkspaceFacts.now(self.workspace_dir),
                memory_hits,
                skills,
            )

            self.round_trips += 1
            logger.debug(f"Round-trip {self.round_trips}/{self.config.max_iterations}")
            response = await self.provider.send(
                prompt.to_messages(),
                prompt.tools,
                on_token=self.on_token,
            )

            if response.is_terminal:
                self.conversation.append_assistant(response.content)
                logger.info(f"Turn finished after {self.round_trips} round-trip(s)")
                await self._report_turn(user_message, response.content)
                return response.content

            if response.content.strip():
                last_text = response.content

            self.conversation.append_assistant(response.content, response.calls)
            for result in await self._dispatch(list(response.calls)):
                self.conversation.append_tool_result(
                    result.tool_call_id,
                    result.name,
                    result.result.payload,
                )

        logger.warning(
            f"Iteration limit reached after {self.round_trips} round-trip(s) without a final answer"
        )
        if self.fail_on_iteration_limit:
            raise AgentError(
                AgentErrorKind.ITERATION_LIMIT_REACHED,
                f"No final answer after {self.config.max_iterations} iterations",
            )

        answer = last_text or ITERATION_LIMIT_FALLBACK
        await self._report_turn(user_message, answer)
        return answer

    async def _dispatch(self, calls: list[ToolCall]) -> list[ToolCallResult]:
        """
        Run one round's calls, returning one result per call in request order.

        Every call passes the loop guard first; looping calls are answered
        without touching the registry.
        """
        results: list[ToolCallResult | None] = [None] * len(calls)
        runnable: list[tuple[int, ToolCall]] = []

        for index, call in enumerate(calls):
            if self.loop_guard.observe_call(call):
                seen = self.loop_guard.count(call.name, fingerprint_call(call))
                results[index] = ToolCallResult(
                    tool_call_id=call.id,
                    name=call.name,
                    result=ToolResult.failure(
                        f"Loop detected: '{call.name}' was requested {seen} times "
                        "with identical arguments this turn. "
                        "It was not executed again. Try a different approach."
                    ),
                )
            else:
                runnable.append((index, call))

        if self.parallel_tools:
            executed = await self.tool_executor.execute_parallel([call for _, call in runnable])
            for (index, _), result in zip(runnable, executed):
                results[index] = result
        else:
            for index, call in runnable:
                results[index] = await self.tool_executor.execute_one(call)

        return results

    async def _compact_history(self) -> None:
        dropped = self.conversation.compact(self.config.max_history)
        if not dropped or not self.config.summarize_history:
            return

        # A summary request is a round-trip too, and the round after it needs one more
        if self.round_trips + 2 > self.config.max_iterations:
            logger.debug("No round left for a model summary, keeping the transcript summary")
            return
        await self._summarize(dropped)

    async def _summarize(self, dropped: list[Message]) -> None:
        """Replace the transcript summary with a model-written one, if possible."""
        self.round_trips += 1
        excerpt = transcript(dropped)
        if self.conversation.summary and self.conversation.summary != excerpt:
            excerpt = f"Earlier summary:\n{self.conversation.summary}\n\nNew excerpt:\n{excerpt}"

        try:
            response = await self.provider.send(
                [
                    {"role": "system", "content": SUMMARIZE_PROMPT},
                    {"role": "user", "content": excerpt},
                ],
                [],
                stream=False,
            )
        except ProviderError as e:
            logger.warning(f"History summarization failed, keeping transcript summary: {e}")
            return

        if response.is_terminal and response.content.strip():
            self.conversation.summary = response.content.strip()

    async def _report_turn(self, user_message: str, answer: str) -> None:
        """Log the turn to the memory collaborator; failures are not fatal."""
        if self.memory is None:
            return
        try:
            if user_message.strip():
                await self.memory.append(f"User: {user_message[:_TURN_LOG_CHARS]}", category=DAILY_CATEGORY)
            if answer.strip():
                await self.memory.append(f"Assistant: {answer[:_TURN_LOG_CHARS]}", category=DAILY_CATEGORY)
        except Exception as e:
            logger.error("Failed to store turn in memory", e)

    def clear_conversation(self) -> None:
        """Start fresh: drop the history and its summary."""
        self.conversation.clear()
        self.loop_guard.reset()
        logger.info("Cleared conversation")
