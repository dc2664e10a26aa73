
"""
Agent communication for the agentic society
Direct delivery between agents with a local fallback queue and conversations
"""

from datetime import datetime
from typing import Dict, List, Optional, Any, Protocol, TYPE_CHECKING
from pydantic import BaseModel, Field
from loguru import logger

from ..errors import NotFoundError, PermissionDeniedError
from ..models import AgentRole, ConversationStatus, generate_id, utc_now

if TYPE_CHECKING:
    from .agent import Agent


QUEUED_RESPONSE_CONTENT = "Message queued for delivery. Recipient is currently unavailable."
DEFAULT_JOIN_ROLES = (AgentRole.CEO, AgentRole.COO)


class AgentMessage(BaseModel):
    """Message delivered to an agent's process_message"""

    id: str = Field(default_factory=lambda: generate_id("msg"))
    sender_id: str = Field(..., description="ID of sending agent")
    recipient_id: Optional[str] = Field(None, description="ID of receiving agent")
    content: str = Field(..., description="Message text")
    context: List[str] = Field(default_factory=list, description="Context snippets attached on receipt")
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AgentResponse(BaseModel):
    """Reply produced by an agent, or a placeholder for a queued delivery"""

    id: str = Field(default_factory=lambda: generate_id("response"))
    sender_id: str = Field(..., description="ID of the responding agent")
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_queued(self) -> bool:
        return self.metadata.get("delivery_status") == "queued"


class ConversationMessage(BaseModel):
    id: str = Field(default_factory=lambda: generate_id("msg"))
    sender_id: str
    content: str
    timestamp: datetime = Field(default_factory=utc_now)


class Conversation(BaseModel):
    """Exchange between agents on one topic"""

    id: str = Field(default_factory=lambda: generate_id("conv"))
    participants: List[str] = Field(default_factory=list)
    topic: str
    start_time: datetime = Field(default_factory=utc_now)
    messages: List[ConversationMessage] = Field(default_factory=list)
    status: ConversationStatus = ConversationStatus.ACTIVE
    context: Dict[str, Any] = Field(default_factory=dict)


class AgentDirectory(Protocol):
    """Looks up live agents by ID"""

    def resolve(self, agent_id: str) -> "Agent":
        """Return the agent or raise NotFoundError"""
        ...


class DetachedDirectory:
    """Directory for an agent outside any organization"""

    def resolve(self, agent_id: str) -> "Agent":
        raise NotFoundError(f"Agent {agent_id} not found: agent is not attached to an organization")


class CommunicationManager:
    """
    Per-agent messaging.

    Sends are delivered straight to the recipient's process_message. When the
    recipient can't be resolved or fails, the message is kept in a local queue
    and a placeholder response is returned; process_message_queue retries it.
    """

    def __init__(
        self,
        agent: "Agent",
        directory: Optional[AgentDirectory] = None,
        join_roles: Optional[List[AgentRole]] = None
    ):
        self.agent = agent
        self.directory: AgentDirectory = directory or DetachedDirectory()
        self.join_roles = set(join_roles if join_roles is not None else DEFAULT_JOIN_ROLES)

        self.message_queue: List[AgentMessage] = []
        self.active_conversations: Dict[str, Conversation] = {}

    @property
    def agent_id(self) -> str:
        return self.agent.identity.id

    def _build_message(self, recipient_id: str, content: str, context: Optional[Dict[str, Any]]) -> AgentMessage:
        return AgentMessage(
            sender_id=self.agent_id,
            recipient_id=recipient_id,
            content=content,
            metadata={
                "sender_role": self.agent.identity.role.value,
                "sender_name": self.agent.identity.name,
                **(context or {})
            }
        )

    async def send_message(
        self,
        recipient_id: str,
        content: str,
        context: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> AgentResponse:
        """
        Send a message to another agent

        Args:
            recipient_id: ID of receiving agent
            content: Message text
            context: Extra metadata carried with the message
            timeout: Optional deadline in seconds for the recipient's reply

        Returns:
            The recipient's response, or a queued placeholder if delivery failed
        """

        message = self._build_message(recipient_id, content, context)

        try:
            recipient = self.directory.resolve(recipient_id)
            response = await recipient.process_message(message, timeout=timeout)
            logger.debug(f"Message {message.id} delivered: {self.agent_id} -> {recipient_id}")
            return response

        except Exception as e:
            logger.warning(f"Direct delivery of {message.id} to {recipient_id} failed, queueing: {e}")
            self.enqueue(message)

            return AgentResponse(
                sender_id=recipient_id,
                content=QUEUED_RESPONSE_CONTENT,
                metadata={"delivery_status": "queued", "message_id": message.id}
            )

    async def broadcast_message(
        self,
        recipients: List[str],
        content: str,
        context: Optional[Dict[str, Any]] = None
    ) -> List[AgentResponse]:
        """Send the same message to each recipient independently"""

        responses = []

        for recipient_id in recipients:
            try:
                responses.append(await self.send_message(recipient_id, content, context))
            except Exception as e:
                logger.error(f"Error sending message to {recipient_id}: {e}")

        return responses

    async def start_conversation(self, recipient_id: str, topic: str, initial_message: str) -> Conversation:
        """Open a conversation and record the first exchange"""

        conversation = Conversation(
            participants=[self.agent_id, recipient_id],
            topic=topic,
            context={"topic": topic}
        )
        self.active_conversations[conversation.id] = conversation

        response = await self.send_message(recipient_id, initial_message, {"topic": topic})

        conversation.messages.append(ConversationMessage(sender_id=self.agent_id, content=initial_message))
        conversation.messages.append(ConversationMessage(sender_id=recipient_id, content=response.content))

        logger.info(f"Conversation {conversation.id} started: {self.agent_id} -> {recipient_id} ({topic})")
        return conversation

    def _find_conversation(self, conversation_id: str, owner_id: Optional[str]) -> Conversation:
        conversation = self.active_conversations.get(conversation_id)
        if conversation is not None:
            return conversation

        if owner_id is not None and owner_id != self.agent_id:
            owner = self.directory.resolve(owner_id)
            conversation = owner.communication.active_conversations.get(conversation_id)
            if conversation is not None:
                return conversation

        raise NotFoundError(f"Conversation {conversation_id} not found")

    async def join_conversation(self, conversation_id: str, owner_id: Optional[str] = None) -> Conversation:
        """
        Join a conversation

        Participants get the conversation back unchanged. Anyone else needs a
        role from the join set.

        Args:
            conversation_id: Conversation to join
            owner_id: Agent that started the conversation, when it isn't this agent
        """

        conversation = self._find_conversation(conversation_id, owner_id)

        if self.agent_id in conversation.participants:
            return conversation

        if self.agent.identity.role not in self.join_roles:
            raise PermissionDeniedError(
                f"Agent {self.agent_id} does not have permission to join conversation {conversation_id}"
            )

        conversation.participants.append(self.agent_id)
        logger.info(f"Agent {self.agent_id} joined conversation {conversation_id}")
        return conversation

    def enqueue(self, message: AgentMessage):
        """Hold a message for the next process_message_queue call"""
        self.message_queue.append(message)

    async def process_message_queue(self) -> int:
        """
        Retry queued messages in FIFO order

        Only messages queued before the call are handled; anything queued while
        draining waits for the next call. Failures turn into an error reply to
        the sender and are never raised.

        Returns:
            Number of messages taken off the queue
        """

        pending = self.message_queue
        self.message_queue = []

        for message in pending:
            try:
                await self._handle_queued_message(message)
            except Exception as e:
                logger.error(f"Error processing message {message.id}: {e}")
                await self._return_error_message(message, f"Error processing message: {e}")

        return len(pending)

    async def _handle_queued_message(self, message: AgentMessage):
        if message.recipient_id and message.recipient_id != self.agent_id:
            recipient = self.directory.resolve(message.recipient_id)
            await recipient.process_message(message)
            logger.debug(f"Forwarded queued message {message.id} to {message.recipient_id}")
            return

        response = await self.agent.process_message(message)

        # send_message only queues this agent's own sends; messages from other
        # senders reach the queue when placed there directly by other code
        if message.sender_id and message.sender_id != self.agent_id:
            await self.send_message(message.sender_id, response.content, {"in_reply_to": message.id})

    async def _return_error_message(self, original_message: AgentMessage, error: str):
        if not original_message.sender_id:
            return

        await self.send_message(
            original_message.sender_id,
            f"Error: {error}",
            {"original_message_id": original_message.id, "error": error}
        )

    async def check_for_messages(self) -> List[AgentMessage]:
        """Queued messages addressed to this agent, newest first"""
        return [
            message for message in reversed(self.message_queue)
            if message.recipient_id is None or message.recipient_id == self.agent_id
        ]

    def get_active_conversations(self) -> List[Conversation]:
        return list(self.active_conversations.values())

    def end_conversation(self, conversation_id: str) -> bool:
        conversation = self.active_conversations.pop(conversation_id, None)
        if conversation is None:
            return False

        conversation.status = ConversationStatus.ENDED
        return True
